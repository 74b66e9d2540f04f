from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from services.api.app.db.database import db_session
from services.api.app.db.models import StorageSlot
from sqlalchemy.orm import Session


class SlotStorage(Protocol):
    """Named, app-private slots holding one serialized document each."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemorySlotStorage:
    def __init__(self) -> None:
        self._slots: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._slots.get(key)

    def set(self, key: str, value: str) -> None:
        self._slots[key] = value


class SqlSlotStorage:
    """Slots persisted in the ``storage_slots`` table.

    Errors from the database propagate as SQLAlchemy exceptions; callers decide how to
    degrade.
    """

    def __init__(self, session_factory: Callable[[], Session] = db_session) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        db = self._session_factory()
        try:
            row = db.get(StorageSlot, key)
            return None if row is None else row.value
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self._session_factory()
        try:
            row = db.get(StorageSlot, key)
            if row is None:
                db.add(StorageSlot(key=key, value=value))
            else:
                row.value = value
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

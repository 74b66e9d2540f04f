from __future__ import annotations

import os

from services.api.app.db.database import get_engine
from services.api.app.db.models import Base
from sqlalchemy import Engine


def auto_create_enabled() -> bool:
    return os.getenv("TUWAS_DB_AUTO_CREATE", "true").strip().lower() in {"1", "true", "yes", "y"}


def init_db(engine: Engine | None = None) -> None:
    """Create the storage tables unless TUWAS_DB_AUTO_CREATE is switched off."""

    if not auto_create_enabled():
        return

    Base.metadata.create_all(bind=engine or get_engine())

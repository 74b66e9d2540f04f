from __future__ import annotations

import logging
import threading

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError
from services.api.app.models.order import Order, OrderPatch
from services.api.app.services.slot_storage import SlotStorage
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

ORDERS_SLOT = "pending_orders"

_orders_adapter = TypeAdapter(list[Order])


class PersistenceError(Exception):
    """Reading or writing the local order slot failed."""


class DuplicateOrderError(PersistenceError):
    def __init__(self, order_ref: str) -> None:
        super().__init__(f"Order {order_ref} is already in the local queue")
        self.order_ref = order_ref


class LocalOrderQueue:
    """Every order created on this device, kept in a single storage slot.

    Each mutation reads the whole list, changes it and writes the whole list back. There
    is no index and no partial write, which is fine for a device's order history (tens to
    low hundreds of orders) but will not scale to a large queue. The lock makes the
    read-modify-write a critical section within one process only; two processes sharing
    the same slot can still lose an update.
    """

    def __init__(self, storage: SlotStorage, *, slot: str = ORDERS_SLOT) -> None:
        self._storage = storage
        self._slot = slot
        self._lock = threading.Lock()

    def append(self, order: Order) -> Order:
        with self._lock:
            orders = self._read()
            if any(o.order_ref == order.order_ref for o in orders):
                raise DuplicateOrderError(order.order_ref)
            orders.append(order)
            self._write(orders)
        logger.info("Queued order %s locally", order.order_ref)
        return order

    def update(self, order_ref: str, patch: OrderPatch) -> Order | None:
        """Replace the order matching ``order_ref`` with the patched version.

        Returns None without writing when no order matches; the caller may be acting on
        an order that is no longer stored.
        """

        with self._lock:
            orders = self._read()
            for index, existing in enumerate(orders):
                if existing.order_ref == order_ref:
                    updated = patch.apply(existing)
                    orders[index] = updated
                    self._write(orders)
                    return updated

        logger.warning("Order %s not found in local queue; update skipped", order_ref)
        return None

    def get(self, order_ref: str) -> Order | None:
        with self._lock:
            orders = self._read()
        for order in orders:
            if order.order_ref == order_ref:
                return order
        return None

    def list(self) -> list[Order]:
        with self._lock:
            orders = self._read()
        # sort is stable, so equal timestamps keep insertion order
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._read())

    def _read(self) -> list[Order]:
        try:
            raw = self._storage.get(self._slot)
        except (OSError, SQLAlchemyError) as e:
            raise PersistenceError(f"Could not read slot {self._slot!r}: {e}") from e

        if not raw:
            return []

        try:
            return _orders_adapter.validate_json(raw)
        except SchemaError:
            logger.warning("Slot %r is not a valid order list; treating it as empty", self._slot)
            return []

    def _write(self, orders: list[Order]) -> None:
        payload = _orders_adapter.dump_json(orders).decode("utf-8")
        try:
            self._storage.set(self._slot, payload)
        except (OSError, SQLAlchemyError) as e:
            raise PersistenceError(f"Could not write slot {self._slot!r}: {e}") from e

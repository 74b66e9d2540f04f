from __future__ import annotations

import logging
import os
import threading

from packages.shared.schemas.order_v1 import RemoteOrderItemV1, RemoteOrderRequestV1
from services.api.app.models.order import Order
from services.api.app.services.sync_base import (
    RemoteOrderClient,
    SyncError,
    SyncInFlightError,
    SyncResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Mobile Customer"
DEFAULT_CUSTOMER_EMAIL = "mobile@user.com"


def build_remote_request(order: Order) -> RemoteOrderRequestV1:
    address = order.shipping_address
    email = address.email or os.getenv("TUWAS_CUSTOMER_EMAIL", DEFAULT_CUSTOMER_EMAIL)
    return RemoteOrderRequestV1(
        order_ref=order.order_ref,
        customer_name=address.full_name or DEFAULT_CUSTOMER_NAME,
        customer_email=email,
        customer_phone=address.phone_number,
        shipping_address=address.one_line(),
        payment_method=order.payment_method,
        items=[
            RemoteOrderItemV1(
                product_id=item.product_id,
                quantity=item.quantity,
                price=float(item.price),
            )
            for item in order.items
        ],
        subtotal=float(order.subtotal),
        shipping_fee=float(order.shipping_fee),
        total=float(order.total),
    )


class RemoteSyncClient:
    """Best-effort submission of local orders to the order service.

    Never raises for remote failures: every call returns a SyncResult and the caller
    decides what to do with the local record. At most one submission per order_ref is in
    flight at a time.
    """

    def __init__(self, client: RemoteOrderClient) -> None:
        self._client = client
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    @property
    def client_name(self) -> str:
        return self._client.name

    def submit(self, order: Order) -> SyncResult:
        with self._lock:
            if order.order_ref in self._in_flight:
                return SyncResult(error=SyncInFlightError(order.order_ref))
            self._in_flight.add(order.order_ref)

        try:
            payload = build_remote_request(order)
            remote_id = self._client.create_order(payload)
        except SyncError as e:
            logger.warning(
                "Submitting order %s failed (transient=%s): %s", order.order_ref, e.transient, e
            )
            return SyncResult(error=e)
        except Exception as e:
            logger.exception("Unexpected error submitting order %s", order.order_ref)
            return SyncResult(error=SyncError(str(e)))
        finally:
            with self._lock:
                self._in_flight.discard(order.order_ref)

        logger.info("Order %s accepted by %s as %s", order.order_ref, self.client_name, remote_id)
        return SyncResult(remote_id=remote_id)

    def fetch_status(self, order: Order) -> tuple[str | None, SyncError | None]:
        """Return the service-side status string for an order that has a remote_id."""

        if order.remote_id is None:
            return None, SyncError(f"Order {order.order_ref} has not been submitted yet")
        try:
            return self._client.fetch_status(order.remote_id).status, None
        except SyncError as e:
            logger.warning("Status check for order %s failed: %s", order.order_ref, e)
            return None, e

    def cancel(self, order: Order) -> SyncError | None:
        if order.remote_id is None:
            return None
        try:
            self._client.cancel_order(order.remote_id)
        except SyncError as e:
            logger.warning("Remote cancel for order %s failed: %s", order.order_ref, e)
            return e
        return None

    def is_in_flight(self, order_ref: str) -> bool:
        with self._lock:
            return order_ref in self._in_flight

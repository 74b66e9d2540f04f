from __future__ import annotations

from uuid import uuid4

from packages.shared.schemas.order_v1 import (
    OrderStatusV1,
    RemoteOrderRequestV1,
    RemoteOrderStatusV1,
)
from services.api.app.services.sync_base import SyncError, SyncHTTPError


class MockRemoteOrderClient:
    """In-process stand-in for the order service.

    Keeps submitted orders in memory so status polling and cancellation behave like the
    real service. Set ``fail_with`` to make every call raise that error.
    """

    name = "REMOTE_MOCK"

    def __init__(self, *, fail_with: SyncError | None = None) -> None:
        self.fail_with = fail_with
        self.requests: list[RemoteOrderRequestV1] = []
        self._statuses: dict[str, str] = {}

    def create_order(self, payload: RemoteOrderRequestV1) -> str:
        self._maybe_fail()
        self.requests.append(payload)
        remote_id = f"srv_{uuid4().hex[:10]}"
        self._statuses[remote_id] = OrderStatusV1.PENDING_CONFIRMATION.value
        return remote_id

    def fetch_status(self, remote_id: str) -> RemoteOrderStatusV1:
        self._maybe_fail()
        status = self._statuses.get(remote_id)
        if status is None:
            raise SyncHTTPError(404, "Order not found")
        return RemoteOrderStatusV1(id=remote_id, status=status)

    def cancel_order(self, remote_id: str) -> None:
        self._maybe_fail()
        if remote_id not in self._statuses:
            raise SyncHTTPError(404, "Order not found")
        self._statuses[remote_id] = OrderStatusV1.CANCELLED.value

    def set_status(self, remote_id: str, status: str) -> None:
        """Simulate an admin-side change (payment verified, shipped, ...)."""

        self._statuses[remote_id] = status

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

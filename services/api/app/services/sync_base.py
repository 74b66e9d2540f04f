from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from packages.shared.schemas.order_v1 import RemoteOrderRequestV1, RemoteOrderStatusV1


class SyncError(Exception):
    """Base class for remote order service errors.

    ``transient`` marks failures worth retrying later (network down, timeout, server
    overloaded). Everything else needs a human to look at it.
    """

    transient: bool = False

    def __init__(self, message: str, *, transient: bool | None = None) -> None:
        super().__init__(message)
        if transient is not None:
            self.transient = transient


class SyncNetworkError(SyncError):
    transient = True


class SyncTimeoutError(SyncNetworkError):
    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"Remote order service did not answer within {timeout_s:g}s")
        self.timeout_s = timeout_s


class SyncHTTPError(SyncError):
    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(
            f"Remote order service returned HTTP {status_code}: {body[:200]}",
            transient=status_code == 429 or status_code >= 500,
        )
        self.status_code = status_code
        self.body = body


class SyncResponseError(SyncError):
    """The service answered 2xx but the body was not what we expected."""


class SyncInFlightError(SyncError):
    def __init__(self, order_ref: str) -> None:
        super().__init__(f"Order {order_ref} is already being submitted", transient=True)
        self.order_ref = order_ref


@dataclass(frozen=True, slots=True)
class SyncResult:
    remote_id: str | None = None
    error: SyncError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.remote_id is not None


class RemoteOrderClient(Protocol):
    name: str

    def create_order(self, payload: RemoteOrderRequestV1) -> str: ...

    def fetch_status(self, remote_id: str) -> RemoteOrderStatusV1: ...

    def cancel_order(self, remote_id: str) -> None: ...

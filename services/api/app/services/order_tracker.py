from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field

from packages.shared.schemas.order_v1 import OrderStatusV1
from services.api.app.models.order import Order, OrderPatch
from services.api.app.services.order_queue import LocalOrderQueue, PersistenceError
from services.api.app.services.sync import RemoteSyncClient
from services.api.app.services.sync_base import SyncInFlightError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 10.0


@dataclass(frozen=True, slots=True)
class StatusDisplay:
    category: str
    label: str
    color: str
    # Lower sorts first when the app groups orders by urgency.
    priority: int


STATUS_DISPLAY: dict[OrderStatusV1, StatusDisplay] = {
    OrderStatusV1.PENDING_PAYMENT: StatusDisplay("pending", "Pending Payment", "#FF9800", 0),
    OrderStatusV1.PENDING_CONFIRMATION: StatusDisplay(
        "pending", "Awaiting Confirmation", "#FF9800", 0
    ),
    OrderStatusV1.PAYMENT_VERIFIED: StatusDisplay("verified", "Payment Verified", "#2196F3", 1),
    OrderStatusV1.PROCESSING: StatusDisplay("processing", "Processing", "#9C27B0", 2),
    OrderStatusV1.SHIPPED: StatusDisplay("shipped", "Shipped", "#00BCD4", 3),
    OrderStatusV1.DELIVERED: StatusDisplay("delivered", "Delivered", "#4CAF50", 4),
    OrderStatusV1.CANCELLED: StatusDisplay("cancelled", "Cancelled", "#F44336", 5),
}

UNKNOWN_DISPLAY = StatusDisplay("unknown", "Unknown", "#757575", 99)


def display_for(status: OrderStatusV1 | str | None) -> StatusDisplay:
    try:
        return STATUS_DISPLAY[OrderStatusV1(status)]
    except (ValueError, KeyError):
        return UNKNOWN_DISPLAY


def poll_interval_from_env() -> float:
    interval = float(os.getenv("TUWAS_POLL_INTERVAL_S", str(DEFAULT_POLL_INTERVAL_S)))
    if interval <= 0:
        raise ValueError(f"TUWAS_POLL_INTERVAL_S must be positive, got {interval}")
    return interval


@dataclass
class ReconcileReport:
    submitted: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


class OrderTracker:
    def __init__(self, queue: LocalOrderQueue, sync: RemoteSyncClient | None = None) -> None:
        self._queue = queue
        self._sync = sync
        self._last_seen: list[Order] = []

    def refresh(self) -> list[Order]:
        """Re-read the local queue, newest first.

        Falls back to the last list read successfully if storage is unavailable.
        """

        try:
            self._last_seen = self._queue.list()
        except PersistenceError:
            logger.exception("Could not read local orders; showing last known list")
        return list(self._last_seen)

    def display(self, status: OrderStatusV1 | str | None) -> StatusDisplay:
        return display_for(status)

    def reconcile(self, *, retry_rejected: bool = False) -> ReconcileReport:
        """Bring local orders in line with the order service, on demand.

        Orders never accepted by the service are submitted again; orders that were
        accepted get their status refreshed. Cancelled orders are left alone, and so are
        orders the service refused outright unless ``retry_rejected`` is set.
        """

        report = ReconcileReport()
        if self._sync is None:
            return report

        for order in self.refresh():
            if order.status == OrderStatusV1.CANCELLED:
                continue
            if order.sync_rejected and not retry_rejected:
                report.skipped.append(order.order_ref)
                continue
            try:
                if order.remote_id is None:
                    self._resubmit(order, report)
                else:
                    self._pull_status(order, report)
            except PersistenceError as e:
                logger.exception("Could not save reconciled order %s", order.order_ref)
                report.failed[order.order_ref] = str(e)

        if report.submitted or report.updated:
            self.refresh()
        return report

    def start_polling(self, interval_s: float | None = None) -> StatusPoller:
        poller = StatusPoller(self, interval_s or poll_interval_from_env())
        poller.start()
        return poller

    def _resubmit(self, order: Order, report: ReconcileReport) -> None:
        assert self._sync is not None
        result = self._sync.submit(order)
        if not result.ok:
            report.failed[order.order_ref] = str(result.error)
            # A concurrent submission of this order records its own outcome.
            if not isinstance(result.error, SyncInFlightError):
                self._queue.update(
                    order.order_ref,
                    OrderPatch(
                        sync_rejected=not result.error.transient,
                        last_sync_error=str(result.error),
                    ),
                )
            return

        self._queue.update(
            order.order_ref,
            OrderPatch(
                status=OrderStatusV1.PENDING_CONFIRMATION,
                remote_id=result.remote_id,
                sync_rejected=False,
                last_sync_error=None,
            ),
        )
        report.submitted.append(order.order_ref)

    def _pull_status(self, order: Order, report: ReconcileReport) -> None:
        assert self._sync is not None
        remote_status, error = self._sync.fetch_status(order)
        if error is not None:
            report.failed[order.order_ref] = str(error)
            return

        try:
            status = OrderStatusV1(remote_status)
        except ValueError:
            logger.warning(
                "Order %s has unrecognised remote status %r; keeping %s",
                order.order_ref,
                remote_status,
                order.status.value,
            )
            return

        if status != order.status:
            self._queue.update(order.order_ref, OrderPatch(status=status))
            report.updated.append(order.order_ref)


class StatusPoller:
    """Runs OrderTracker.reconcile on a fixed interval in a daemon thread.

    cancel() stops further polls. A reconcile that has already started, including its
    queue writes, runs to completion.
    """

    def __init__(self, tracker: OrderTracker, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._tracker = tracker
        self.interval_s = interval_s
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None
        self.runs = 0

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="order-status-poller", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stopped.set()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped.wait(self.interval_s):
            try:
                self._tracker.reconcile()
            except Exception:
                logger.exception("Order status poll failed")
            self.runs += 1

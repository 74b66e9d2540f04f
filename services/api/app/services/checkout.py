from __future__ import annotations

import logging
from dataclasses import dataclass, field

from packages.shared.schemas.order_v1 import OrderStatusV1, PaymentMethodV1
from services.api.app.models.order import Order, OrderPatch, ShippingAddress
from services.api.app.services.cart_store import CartStore
from services.api.app.services.order_factory import OrderFactory
from services.api.app.services.order_queue import (
    DuplicateOrderError,
    LocalOrderQueue,
    PersistenceError,
)
from services.api.app.services.sync import RemoteSyncClient
from services.api.app.services.sync_base import SyncError

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = frozenset(
    {OrderStatusV1.PENDING_PAYMENT, OrderStatusV1.PENDING_CONFIRMATION}
)

# Fresh references to try when a generated one is already in the local queue.
MAX_REF_ATTEMPTS = 5


class OrderNotFoundError(Exception):
    def __init__(self, order_ref: str) -> None:
        super().__init__(f"Order {order_ref} not found")
        self.order_ref = order_ref


class OrderNotCancellableError(Exception):
    def __init__(self, order_ref: str, status: OrderStatusV1) -> None:
        super().__init__(f"Order {order_ref} cannot be cancelled while {status.value}")
        self.order_ref = order_ref
        self.status = status


@dataclass
class CheckoutResult:
    """Outcome of placing and submitting an order.

    ``order`` is always the freshest in-memory version, even when it could not be
    written locally or sent to the order service. ``stored`` says whether that order is
    in the local queue, so later writes never touch some other order's record.
    """

    order: Order
    stored: bool = False
    sync_error: SyncError | None = None
    persistence_error: PersistenceError | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def synced(self) -> bool:
        return self.order.remote_id is not None

    @property
    def saved_locally(self) -> bool:
        return self.stored


@dataclass
class CancelResult:
    order: Order
    remote_error: SyncError | None = None
    persistence_error: PersistenceError | None = None


class CheckoutService:
    def __init__(
        self,
        *,
        factory: OrderFactory,
        queue: LocalOrderQueue,
        sync: RemoteSyncClient,
    ) -> None:
        self._factory = factory
        self._queue = queue
        self._sync = sync

    def place_order(
        self,
        cart: CartStore,
        shipping_address: ShippingAddress,
        payment_method: str | PaymentMethodV1,
    ) -> CheckoutResult:
        """Create the order from a cart snapshot and queue it locally.

        ValidationError propagates before anything is written. If the generated
        reference is already taken, the order is given a fresh one. A failed local write
        is reported on the result; the order itself is still returned.
        """

        order = self._factory.create_order(cart.items(), shipping_address, payment_method)
        result = CheckoutResult(order=order)

        for _attempt in range(MAX_REF_ATTEMPTS):
            try:
                self._queue.append(result.order)
            except DuplicateOrderError as e:
                logger.warning("Order ref %s already queued; generating a new one", e.order_ref)
                result.persistence_error = e
                result.order = result.order.model_copy(
                    update={"order_ref": self._factory.next_ref()}
                )
                continue
            except PersistenceError as e:
                logger.exception("Could not save order %s locally", result.order.order_ref)
                result.persistence_error = e
                break
            result.stored = True
            result.persistence_error = None
            break

        if not result.stored:
            result.warnings.append("Order could not be saved on this device.")
        return result

    def submit_order(self, result: CheckoutResult) -> CheckoutResult:
        """Send a placed order to the order service and record the outcome locally.

        Either way the order moves to ``pending_confirmation``; only a successful
        submission attaches ``remote_id``. A rejection the service will not accept on
        retry marks the order so reconcile leaves it alone.
        """

        order = result.order
        sync = self._sync.submit(order)

        if sync.ok:
            patch = OrderPatch(
                status=OrderStatusV1.PENDING_CONFIRMATION,
                remote_id=sync.remote_id,
                sync_rejected=False,
                last_sync_error=None,
            )
        else:
            patch = OrderPatch(
                status=OrderStatusV1.PENDING_CONFIRMATION,
                sync_rejected=not sync.error.transient,
                last_sync_error=str(sync.error),
            )
            result.sync_error = sync.error
            result.warnings.append(
                "Order saved on your device. It will sync when connection is restored."
            )

        result.order = patch.apply(order)
        if not result.stored:
            return result

        try:
            self._queue.update(order.order_ref, patch)
        except PersistenceError as e:
            logger.exception("Could not record submission of order %s", order.order_ref)
            result.persistence_error = result.persistence_error or e
        return result

    def checkout(
        self,
        cart: CartStore,
        shipping_address: ShippingAddress,
        payment_method: str | PaymentMethodV1,
    ) -> CheckoutResult:
        result = self.place_order(cart, shipping_address, payment_method)
        result = self.submit_order(result)
        cart.clear()
        return result

    def cancel_order(self, order_ref: str) -> CancelResult:
        """Cancel a pending order locally and, if it was submitted, on the service.

        A failed local write after the remote cancel is logged and reported on the
        result; the returned order is the cancelled in-memory version.
        """

        order = self._queue.get(order_ref)
        if order is None:
            raise OrderNotFoundError(order_ref)
        if order.status not in CANCELLABLE_STATUSES:
            raise OrderNotCancellableError(order_ref, order.status)

        patch = OrderPatch(status=OrderStatusV1.CANCELLED)
        result = CancelResult(order=patch.apply(order), remote_error=self._sync.cancel(order))
        try:
            updated = self._queue.update(order_ref, patch)
        except PersistenceError as e:
            logger.exception("Could not record cancellation of order %s", order_ref)
            result.persistence_error = e
            return result

        if updated is not None:
            result.order = updated
        return result

from __future__ import annotations

from decimal import Decimal

import pytest
from packages.shared.schemas.order_v1 import OrderStatusV1
from services.api.app.models.cart import Product
from services.api.app.models.order import OrderPatch, ShippingAddress
from services.api.app.services.cart_store import CartStore
from services.api.app.services.checkout import (
    CheckoutService,
    OrderNotCancellableError,
    OrderNotFoundError,
)
from services.api.app.services.order_factory import (
    OrderFactory,
    OrderRefGenerator,
    ValidationError,
)
from services.api.app.services.order_queue import LocalOrderQueue
from services.api.app.services.slot_storage import InMemorySlotStorage
from services.api.app.services.sync import RemoteSyncClient
from services.api.app.services.sync_base import SyncHTTPError, SyncTimeoutError
from services.api.app.services.sync_mock import MockRemoteOrderClient


class _FailingWrites(InMemorySlotStorage):
    def set(self, key: str, value: str) -> None:
        raise OSError("read-only filesystem")


def _service(
    remote: MockRemoteOrderClient, storage: InMemorySlotStorage | None = None
) -> tuple[CheckoutService, LocalOrderQueue]:
    queue = LocalOrderQueue(storage or InMemorySlotStorage())
    service = CheckoutService(
        factory=OrderFactory(shipping_fee=Decimal("5.00")),
        queue=queue,
        sync=RemoteSyncClient(remote),
    )
    return service, queue


@pytest.fixture()
def cart() -> CartStore:
    cart = CartStore(authenticated=True)
    cart.add_item(Product(product_id="1", name="Yakan Bag", price=Decimal("50.00")), 2)
    return cart


def test_checkout_success_attaches_remote_id(cart: CartStore, address: ShippingAddress) -> None:
    service, queue = _service(MockRemoteOrderClient())

    result = service.checkout(cart, address, "gcash")

    assert result.synced
    assert result.saved_locally
    assert result.sync_error is None
    assert result.order.status == OrderStatusV1.PENDING_CONFIRMATION
    assert result.order.total == Decimal("105.00")
    assert queue.list() == [result.order]
    assert cart.items() == ()


def test_checkout_with_failing_remote_keeps_order_locally(
    cart: CartStore, address: ShippingAddress
) -> None:
    service, queue = _service(MockRemoteOrderClient(fail_with=SyncTimeoutError(30)))

    result = service.checkout(cart, address, "gcash")

    assert not result.synced
    assert result.sync_error is not None and result.sync_error.transient
    assert result.warnings
    stored = queue.list()
    assert len(stored) == 1
    assert stored[0].order_ref == result.order.order_ref
    assert stored[0].status == OrderStatusV1.PENDING_CONFIRMATION
    assert stored[0].remote_id is None


def test_validation_failure_writes_nothing(cart: CartStore, address: ShippingAddress) -> None:
    remote = MockRemoteOrderClient()
    service, queue = _service(remote)
    bad = address.model_copy(update={"postal_code": ""})

    with pytest.raises(ValidationError) as exc:
        service.checkout(cart, bad, "gcash")

    assert exc.value.field == "postal_code"
    assert len(queue) == 0
    assert remote.requests == []
    assert len(cart) == 1


def test_empty_cart_is_rejected(address: ShippingAddress) -> None:
    service, queue = _service(MockRemoteOrderClient())
    with pytest.raises(ValidationError) as exc:
        service.checkout(CartStore(authenticated=True), address, "gcash")
    assert exc.value.field == "items"
    assert len(queue) == 0


def test_local_write_failure_is_not_fatal(cart: CartStore, address: ShippingAddress) -> None:
    service, _queue = _service(MockRemoteOrderClient(), storage=_FailingWrites())

    result = service.checkout(cart, address, "credit_card")

    assert not result.saved_locally
    assert result.synced
    assert result.order.total == Decimal("130.00")
    assert cart.items() == ()


def test_order_snapshot_ignores_later_cart_changes(
    cart: CartStore, address: ShippingAddress
) -> None:
    service, queue = _service(MockRemoteOrderClient())
    placed = service.place_order(cart, address, "gcash")

    cart.add_item(Product(product_id="9", name="Malong", price=Decimal("900.00")), 1)

    assert queue.get(placed.order.order_ref).items == placed.order.items
    assert queue.get(placed.order.order_ref).total == Decimal("105.00")


def test_cancel_pending_order(cart: CartStore, address: ShippingAddress) -> None:
    remote = MockRemoteOrderClient()
    service, queue = _service(remote)
    result = service.checkout(cart, address, "gcash")

    cancelled = service.cancel_order(result.order.order_ref)
    order = cancelled.order

    assert cancelled.remote_error is None
    assert cancelled.persistence_error is None
    assert order.status == OrderStatusV1.CANCELLED
    assert queue.get(order.order_ref).status == OrderStatusV1.CANCELLED
    assert remote.fetch_status(order.remote_id).status == "cancelled"
    assert len(queue) == 1


def test_cancel_rejects_shipped_and_unknown(cart: CartStore, address: ShippingAddress) -> None:
    service, queue = _service(MockRemoteOrderClient())
    result = service.checkout(cart, address, "gcash")
    queue.update(result.order.order_ref, OrderPatch(status=OrderStatusV1.SHIPPED))

    with pytest.raises(OrderNotCancellableError):
        service.cancel_order(result.order.order_ref)
    with pytest.raises(OrderNotFoundError):
        service.cancel_order("ORD-00000000")


def test_duplicate_ref_gets_a_fresh_ref_and_leaves_existing_order_alone(
    cart: CartStore, address: ShippingAddress
) -> None:
    queue = LocalOrderQueue(InMemorySlotStorage())
    remote = MockRemoteOrderClient()

    def _device() -> CheckoutService:
        # Frozen clock: both devices generate the same first reference.
        return CheckoutService(
            factory=OrderFactory(
                shipping_fee=Decimal("5.00"), ref_generator=OrderRefGenerator(clock=lambda: 1.0)
            ),
            queue=queue,
            sync=RemoteSyncClient(remote),
        )

    first = _device().checkout(cart, address, "gcash")
    queue.update(first.order.order_ref, OrderPatch(status=OrderStatusV1.SHIPPED))

    other_cart = CartStore(authenticated=True)
    other_cart.add_item(Product(product_id="2", name="Malong", price=Decimal("900.00")), 1)
    second = _device().checkout(other_cart, address, "gcash")

    assert first.order.order_ref == "ORD-00001000"
    assert second.order.order_ref != first.order.order_ref
    assert second.saved_locally
    assert second.persistence_error is None

    existing = queue.get(first.order.order_ref)
    assert existing.status == OrderStatusV1.SHIPPED
    assert existing.remote_id == first.order.remote_id
    assert existing.total == Decimal("105.00")

    stored = queue.get(second.order.order_ref)
    assert stored == second.order
    assert stored.remote_id is not None and stored.remote_id != existing.remote_id
    assert len(queue) == 2


def test_submit_without_local_record_does_not_write(
    cart: CartStore, address: ShippingAddress
) -> None:
    service, queue = _service(MockRemoteOrderClient(), storage=_FailingWrites())
    placed = service.place_order(cart, address, "gcash")
    assert not placed.stored

    result = service.submit_order(placed)

    assert result.synced
    assert len(queue) == 0


def test_refused_order_is_marked_rejected(cart: CartStore, address: ShippingAddress) -> None:
    service, queue = _service(
        MockRemoteOrderClient(fail_with=SyncHTTPError(422, '{"error":"bad phone"}'))
    )

    result = service.checkout(cart, address, "gcash")

    stored = queue.get(result.order.order_ref)
    assert not result.synced
    assert stored.sync_rejected
    assert "HTTP 422" in stored.last_sync_error
    assert stored.remote_id is None


def test_transient_failure_is_not_marked_rejected(
    cart: CartStore, address: ShippingAddress
) -> None:
    service, queue = _service(MockRemoteOrderClient(fail_with=SyncHTTPError(503)))

    result = service.checkout(cart, address, "gcash")

    stored = queue.get(result.order.order_ref)
    assert not stored.sync_rejected
    assert stored.last_sync_error is not None


def test_cancel_survives_local_write_failure(
    cart: CartStore, address: ShippingAddress, monkeypatch: pytest.MonkeyPatch
) -> None:
    remote = MockRemoteOrderClient()
    storage = InMemorySlotStorage()
    service, queue = _service(remote, storage=storage)
    placed = service.checkout(cart, address, "gcash")

    def broken_set(key: str, value: str) -> None:
        raise OSError("read-only filesystem")

    monkeypatch.setattr(storage, "set", broken_set)

    result = service.cancel_order(placed.order.order_ref)

    assert result.order.status == OrderStatusV1.CANCELLED
    assert result.order.remote_id == placed.order.remote_id
    assert result.remote_error is None
    assert result.persistence_error is not None
    assert remote.fetch_status(placed.order.remote_id).status == "cancelled"
    assert queue.get(placed.order.order_ref).status == OrderStatusV1.PENDING_CONFIRMATION

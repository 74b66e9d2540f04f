from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from services.api.app.models.cart import CartItem
from services.api.app.models.order import Order, ShippingAddress
from services.api.app.services.order_factory import OrderFactory, OrderRefGenerator

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def address() -> ShippingAddress:
    return ShippingAddress(
        street="12 Yakan Lane",
        city="Lamitan",
        province="Basilan",
        postal_code="7302",
        phone_number="0917-123-4567",
        full_name="Amina Hataman",
    )


@pytest.fixture()
def make_order(address: ShippingAddress) -> Callable[..., Order]:
    factory = OrderFactory(shipping_fee=Decimal("5.00"), ref_generator=OrderRefGenerator())
    counter = iter(range(10_000))

    def _make(minutes: int | None = None, payment_method: str = "gcash") -> Order:
        offset = next(counter) if minutes is None else minutes
        items = [CartItem(product_id="1", name="Yakan Bag", price=Decimal("50.00"), quantity=2)]
        return factory.create_order(
            items, address, payment_method, now=BASE_TIME + timedelta(minutes=offset)
        )

    return _make

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from packages.shared.schemas.order_v1 import OrderStatusV1, PaymentMethodV1
from services.api.app.models.cart import CartItem
from services.api.app.models.order import ShippingAddress
from services.api.app.services.order_factory import (
    OrderFactory,
    OrderRefGenerator,
    ValidationError,
)


def _address(**overrides: str) -> ShippingAddress:
    fields = {
        "street": "12 Yakan Lane",
        "city": "Lamitan",
        "province": "Basilan",
        "postal_code": "7302",
        "phone_number": "0917-123-4567",
    }
    fields.update(overrides)
    return ShippingAddress(**fields)


def _items() -> list[CartItem]:
    return [
        CartItem(product_id="1", name="Yakan Table Runner", price=Decimal("50.00"), quantity=2)
    ]


def test_create_order_computes_totals_for_gcash() -> None:
    factory = OrderFactory(shipping_fee=Decimal("5.00"))
    order = factory.create_order(_items(), _address(), "gcash")

    assert order.subtotal == Decimal("100.00")
    assert order.shipping_fee == Decimal("5.00")
    assert order.payment_fee == Decimal("0.00")
    assert order.total == Decimal("105.00")
    assert order.status == OrderStatusV1.PENDING_PAYMENT
    assert order.remote_id is None
    assert order.order_ref.startswith("ORD-")
    assert order.created_at.tzinfo is not None


def test_credit_card_adds_payment_fee() -> None:
    factory = OrderFactory(shipping_fee=Decimal("5.00"))
    order = factory.create_order(_items(), _address(), PaymentMethodV1.CREDIT_CARD)
    assert order.payment_fee == Decimal("25.00")
    assert order.total == Decimal("130.00")


def test_legacy_bank_tag_maps_to_bank_transfer() -> None:
    order = OrderFactory().create_order(_items(), _address(), "bank")
    assert order.payment_method == PaymentMethodV1.BANK_TRANSFER


def test_shipping_fee_can_come_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TUWAS_SHIPPING_FEE", "7.5")
    order = OrderFactory().create_order(_items(), _address(), "gcash")
    assert order.shipping_fee == Decimal("7.50")
    assert order.total == Decimal("107.50")


def test_empty_cart_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc:
        OrderFactory().create_order([], _address(), "gcash")
    assert exc.value.field == "items"


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"street": ""}, "street"),
        ({"city": "   "}, "city"),
        ({"province": ""}, "province"),
        ({"postal_code": ""}, "postal_code"),
        ({"phone_number": ""}, "phone_number"),
        ({"city": "", "phone_number": ""}, "city"),
    ],
)
def test_first_missing_address_field_is_named(overrides: dict, field: str) -> None:
    with pytest.raises(ValidationError) as exc:
        OrderFactory().create_order(_items(), _address(**overrides), "gcash")
    assert exc.value.field == field


def test_unknown_payment_method_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc:
        OrderFactory().create_order(_items(), _address(), "paypal")
    assert exc.value.field == "payment_method"


def test_created_at_can_be_supplied() -> None:
    when = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)
    order = OrderFactory().create_order(_items(), _address(), "gcash", now=when)
    assert order.created_at == when


def test_order_ref_generator_never_repeats_within_same_millisecond() -> None:
    generate = OrderRefGenerator(clock=lambda: 1_700_000_123.5)
    refs = [generate() for _ in range(5)]

    assert refs[0] == "ORD-00123500"
    assert len(set(refs)) == 5
    assert refs == sorted(refs)

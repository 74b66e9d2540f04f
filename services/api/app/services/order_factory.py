from __future__ import annotations

import os
import threading
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal

from packages.shared.schemas.order_v1 import OrderStatusV1, PaymentMethodV1
from services.api.app.models.cart import CartItem, money
from services.api.app.models.order import REQUIRED_ADDRESS_FIELDS, Order, ShippingAddress

DEFAULT_SHIPPING_FEE = Decimal("5.00")

PAYMENT_METHOD_FEES: dict[PaymentMethodV1, Decimal] = {
    PaymentMethodV1.GCASH: Decimal("0.00"),
    PaymentMethodV1.BANK_TRANSFER: Decimal("0.00"),
    PaymentMethodV1.CREDIT_CARD: Decimal("25.00"),
}

# Older app builds sent "bank" for bank transfers.
_PAYMENT_ALIASES = {"bank": PaymentMethodV1.BANK_TRANSFER}


class ValidationError(Exception):
    """The order cannot be created until the named field is corrected."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Missing required field: {field}")
        self.field = field


def parse_payment_method(tag: str | PaymentMethodV1) -> PaymentMethodV1:
    if isinstance(tag, PaymentMethodV1):
        return tag

    normalized = (tag or "").strip().lower()
    if normalized in _PAYMENT_ALIASES:
        return _PAYMENT_ALIASES[normalized]
    try:
        return PaymentMethodV1(normalized)
    except ValueError as e:
        expected = ", ".join(m.value for m in PaymentMethodV1)
        raise ValidationError(
            "payment_method",
            f"Unknown payment method {tag!r}. Expected one of: {expected}",
        ) from e


def default_shipping_fee() -> Decimal:
    return money(os.getenv("TUWAS_SHIPPING_FEE", str(DEFAULT_SHIPPING_FEE)))


class OrderRefGenerator:
    """Time-derived order references: ``ORD-`` plus the last 8 digits of epoch millis.

    Two calls in the same millisecond would collide, so the numeric part is bumped past
    the last one issued by this generator. That only protects a single process; refs
    from different devices can still collide.
    """

    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._last = -1
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            candidate = int(self._clock() * 1000) % 100_000_000
            if candidate <= self._last:
                candidate = (self._last + 1) % 100_000_000
            self._last = candidate
            return f"ORD-{candidate:08d}"


class OrderFactory:
    def __init__(
        self,
        *,
        shipping_fee: Decimal | None = None,
        ref_generator: OrderRefGenerator | None = None,
    ) -> None:
        self._shipping_fee = money(shipping_fee) if shipping_fee is not None else None
        self._next_ref = ref_generator or OrderRefGenerator()

    @property
    def shipping_fee(self) -> Decimal:
        if self._shipping_fee is not None:
            return self._shipping_fee
        return default_shipping_fee()

    def next_ref(self) -> str:
        return self._next_ref()

    def create_order(
        self,
        cart_snapshot: Sequence[CartItem],
        shipping_address: ShippingAddress,
        payment_method: str | PaymentMethodV1,
        *,
        now: datetime | None = None,
    ) -> Order:
        """Validate the checkout inputs and build a new ``pending_payment`` order.

        Raises ValidationError naming the first problem: ``items`` for an empty cart,
        then the address fields in form order, then ``payment_method``.
        """

        items = tuple(cart_snapshot)
        if not items:
            raise ValidationError("items", "Your cart is empty.")

        for field in REQUIRED_ADDRESS_FIELDS:
            if not (getattr(shipping_address, field) or "").strip():
                raise ValidationError(field)

        method = parse_payment_method(payment_method)

        subtotal = money(sum((item.price * item.quantity for item in items), Decimal(0)))
        shipping_fee = self.shipping_fee
        payment_fee = PAYMENT_METHOD_FEES[method]

        return Order(
            order_ref=self.next_ref(),
            created_at=now or datetime.now(timezone.utc),
            items=items,
            shipping_address=shipping_address,
            payment_method=method,
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            payment_fee=payment_fee,
            total=money(subtotal + shipping_fee + payment_fee),
            status=OrderStatusV1.PENDING_PAYMENT,
        )

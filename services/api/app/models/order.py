from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from packages.shared.schemas.order_v1 import OrderStatusV1, PaymentMethodV1
from pydantic import BaseModel, ConfigDict, Field
from services.api.app.models.cart import CartItem


class ShippingAddress(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    # Required before an order may be created. Kept permissive here so the factory can
    # report which field is missing instead of a generic schema error.
    street: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    phone_number: str = ""

    full_name: str | None = None
    email: str | None = None

    def one_line(self) -> str:
        return f"{self.street}, {self.city}, {self.province} {self.postal_code}"


REQUIRED_ADDRESS_FIELDS: tuple[str, ...] = (
    "street",
    "city",
    "province",
    "postal_code",
    "phone_number",
)


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_ref: str
    created_at: datetime

    items: tuple[CartItem, ...]
    shipping_address: ShippingAddress
    payment_method: PaymentMethodV1

    subtotal: Decimal
    shipping_fee: Decimal
    payment_fee: Decimal
    total: Decimal

    status: OrderStatusV1 = OrderStatusV1.PENDING_PAYMENT
    remote_id: str | None = None

    # Set when the order service refused the order outright; reconcile stops retrying.
    sync_rejected: bool = False
    last_sync_error: str | None = None


class OrderPatch(BaseModel):
    """Fields that may change after an order is created."""

    status: OrderStatusV1 | None = None
    remote_id: str | None = None
    sync_rejected: bool | None = None
    last_sync_error: str | None = None

    def apply(self, order: Order) -> Order:
        # Only fields passed explicitly change; last_sync_error=None clears it.
        changes = {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key == "last_sync_error"
        }
        if not changes:
            return order
        return order.model_copy(update=changes)


class CheckoutRequest(BaseModel):
    shipping_address: ShippingAddress
    payment_method: str = Field(..., min_length=1)


class CheckoutResponse(BaseModel):
    order: Order
    synced: bool
    saved_locally: bool
    message: str
    warnings: list[str] = Field(default_factory=list)


class TrackedOrderOut(BaseModel):
    order: Order
    category: str
    label: str
    color: str
    priority: int


class ReconcileResponse(BaseModel):
    submitted: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list)

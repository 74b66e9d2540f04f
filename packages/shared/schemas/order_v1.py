"""Shared order schema (v1).

The mobile app and the remote order service exchange these payloads. Status values are
the same strings the app stores locally, so both sides agree on the lifecycle.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class OrderStatusV1(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PENDING_CONFIRMATION = "pending_confirmation"
    PAYMENT_VERIFIED = "payment_verified"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethodV1(str, Enum):
    GCASH = "gcash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"


class RemoteOrderItemV1(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float


class RemoteOrderRequestV1(BaseModel):
    order_ref: str

    customer_name: str
    customer_email: str
    customer_phone: str

    # Single line: "{street}, {city}, {province} {postal_code}"
    shipping_address: str
    payment_method: PaymentMethodV1

    items: list[RemoteOrderItemV1] = Field(..., min_length=1)
    subtotal: float
    shipping_fee: float
    total: float
    # The app only places orders after the customer has paid.
    payment_status: str = "paid"
    notes: str = "Order from mobile app"


class RemoteOrderStatusV1(BaseModel):
    id: str
    status: str

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

CENTS = Decimal("0.01")


def money(value: Decimal | int | float | str) -> Decimal:
    """Quantize an amount to two decimal places."""

    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str = Field(..., min_length=1)
    name: str
    price: Decimal = Field(..., ge=0)

    @field_validator("price")
    @classmethod
    def _quantize_price(cls, v: Decimal) -> Decimal:
        return money(v)


class CartItem(Product):
    quantity: int = Field(..., ge=1)

    @property
    def line_total(self) -> Decimal:
        return money(self.price * self.quantity)


class CartItemAddRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    name: str
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class CartItemUpdateRequest(BaseModel):
    # Zero or negative removes the line.
    quantity: int


class CartResponse(BaseModel):
    authenticated: bool
    items: list[CartItem]
    item_count: int
    total: Decimal

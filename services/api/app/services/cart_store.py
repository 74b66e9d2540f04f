from __future__ import annotations

from decimal import Decimal

from services.api.app.models.cart import CartItem, Product, money


class CartStore:
    """Cart line items plus the session's authentication flag.

    One instance per session; callers get it injected rather than reaching for a
    module-level cart. Quantities are validated at the boundary, so every operation here
    completes without raising.
    """

    def __init__(self, *, authenticated: bool = False) -> None:
        self._items: dict[str, CartItem] = {}
        self._authenticated = authenticated

    def is_authenticated(self) -> bool:
        return self._authenticated

    def login(self) -> None:
        self._authenticated = True

    def logout(self) -> None:
        self._authenticated = False
        self.clear()

    def add_item(self, product: Product, quantity: int = 1) -> CartItem:
        quantity = max(int(quantity), 1)
        existing = self._items.get(product.product_id)
        if existing is not None:
            item = existing.model_copy(update={"quantity": existing.quantity + quantity})
        else:
            item = CartItem(
                product_id=product.product_id,
                name=product.name,
                price=product.price,
                quantity=quantity,
            )
        # dict keeps first-insertion order, so merged lines stay in place.
        self._items[product.product_id] = item
        return item

    def remove_item(self, product_id: str) -> None:
        self._items.pop(product_id, None)

    def update_quantity(self, product_id: str, quantity: int) -> CartItem | None:
        existing = self._items.get(product_id)
        if existing is None:
            return None
        if quantity <= 0:
            self.remove_item(product_id)
            return None
        item = existing.model_copy(update={"quantity": int(quantity)})
        self._items[product_id] = item
        return item

    def clear(self) -> None:
        self._items.clear()

    def items(self) -> tuple[CartItem, ...]:
        return tuple(self._items.values())

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    def total(self) -> Decimal:
        total = Decimal(0)
        for item in self._items.values():
            total += item.price * item.quantity
        return money(total)

    def __len__(self) -> int:
        return len(self._items)

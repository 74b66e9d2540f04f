from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from services.api.app.deps import get_cart, require_authenticated_cart
from services.api.app.models.cart import (
    CartItemAddRequest,
    CartItemUpdateRequest,
    CartResponse,
    Product,
)
from services.api.app.services.cart_store import CartStore

router = APIRouter()


def _cart_response(cart: CartStore) -> CartResponse:
    return CartResponse(
        authenticated=cart.is_authenticated(),
        items=list(cart.items()),
        item_count=cart.item_count(),
        total=cart.total(),
    )


@router.post("/v1/session/login", response_model=CartResponse)
def login(cart: CartStore = Depends(get_cart)) -> CartResponse:
    cart.login()
    return _cart_response(cart)


@router.post("/v1/session/logout", response_model=CartResponse)
def logout(cart: CartStore = Depends(get_cart)) -> CartResponse:
    cart.logout()
    return _cart_response(cart)


@router.get("/v1/cart", response_model=CartResponse)
def get_cart_contents(cart: CartStore = Depends(get_cart)) -> CartResponse:
    return _cart_response(cart)


@router.post("/v1/cart/items", response_model=CartResponse)
def add_cart_item(
    payload: CartItemAddRequest,
    cart: CartStore = Depends(require_authenticated_cart),
) -> CartResponse:
    product = Product(product_id=payload.product_id, name=payload.name, price=payload.price)
    cart.add_item(product, payload.quantity)
    return _cart_response(cart)


@router.patch("/v1/cart/items/{product_id}", response_model=CartResponse)
def update_cart_item(
    product_id: str,
    payload: CartItemUpdateRequest,
    cart: CartStore = Depends(require_authenticated_cart),
) -> CartResponse:
    if product_id not in {item.product_id for item in cart.items()}:
        raise HTTPException(status_code=404, detail="Item not in cart")
    cart.update_quantity(product_id, payload.quantity)
    return _cart_response(cart)


@router.delete("/v1/cart/items/{product_id}", response_model=CartResponse)
def remove_cart_item(
    product_id: str,
    cart: CartStore = Depends(require_authenticated_cart),
) -> CartResponse:
    cart.remove_item(product_id)
    return _cart_response(cart)


@router.delete("/v1/cart", response_model=CartResponse)
def clear_cart(cart: CartStore = Depends(get_cart)) -> CartResponse:
    cart.clear()
    return _cart_response(cart)

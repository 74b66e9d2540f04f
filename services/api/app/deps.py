from __future__ import annotations

import threading

from fastapi import Depends, Header, HTTPException, Request
from services.api.app.db.init_db import init_db
from services.api.app.services.cart_store import CartStore
from services.api.app.services.storefront import Storefront, build_storefront

_build_lock = threading.Lock()


def get_storefront(request: Request) -> Storefront:
    storefront = getattr(request.app.state, "storefront", None)
    if storefront is not None:
        return storefront

    with _build_lock:
        storefront = getattr(request.app.state, "storefront", None)
        if storefront is None:
            init_db()
            storefront = build_storefront()
            request.app.state.storefront = storefront
    return storefront


def get_cart(
    x_session_id: str = Header("default"),
    storefront: Storefront = Depends(get_storefront),
) -> CartStore:
    return storefront.cart_for(x_session_id)


def require_authenticated_cart(cart: CartStore = Depends(get_cart)) -> CartStore:
    if not cart.is_authenticated():
        raise HTTPException(status_code=403, detail="Please log in to add items to your cart")
    return cart

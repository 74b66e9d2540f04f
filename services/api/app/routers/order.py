from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from services.api.app.deps import get_cart, get_storefront
from services.api.app.models.order import (
    CheckoutRequest,
    CheckoutResponse,
    Order,
    ReconcileResponse,
    TrackedOrderOut,
)
from services.api.app.services.cart_store import CartStore
from services.api.app.services.checkout import (
    OrderNotCancellableError,
    OrderNotFoundError,
)
from services.api.app.services.order_factory import ValidationError
from services.api.app.services.order_queue import PersistenceError
from services.api.app.services.storefront import Storefront

router = APIRouter()


def _raise_order_http_error(e: Exception) -> None:
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=422, detail={"field": e.field, "message": str(e)}) from e

    if isinstance(e, OrderNotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, OrderNotCancellableError):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, PersistenceError):
        raise HTTPException(status_code=503, detail="Order storage unavailable") from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def _tracked(storefront: Storefront, order: Order) -> TrackedOrderOut:
    display = storefront.tracker.display(order.status)
    return TrackedOrderOut(
        order=order,
        category=display.category,
        label=display.label,
        color=display.color,
        priority=display.priority,
    )


@router.post("/v1/checkout", response_model=CheckoutResponse)
def checkout(
    payload: CheckoutRequest,
    cart: CartStore = Depends(get_cart),
    storefront: Storefront = Depends(get_storefront),
) -> CheckoutResponse:
    try:
        result = storefront.checkout.checkout(
            cart, payload.shipping_address, payload.payment_method
        )
    except Exception as e:
        _raise_order_http_error(e)

    if result.synced:
        message = "Your order has been sent to the shop!"
    else:
        message = "Order saved on your device. It will sync when connection is restored."

    return CheckoutResponse(
        order=result.order,
        synced=result.synced,
        saved_locally=result.saved_locally,
        message=message,
        warnings=result.warnings,
    )


@router.get("/v1/orders", response_model=list[TrackedOrderOut])
def list_orders(storefront: Storefront = Depends(get_storefront)) -> list[TrackedOrderOut]:
    return [_tracked(storefront, order) for order in storefront.tracker.refresh()]


@router.post("/v1/orders/reconcile", response_model=ReconcileResponse)
def reconcile_orders(
    retry_rejected: bool = False, storefront: Storefront = Depends(get_storefront)
) -> ReconcileResponse:
    report = storefront.tracker.reconcile(retry_rejected=retry_rejected)
    return ReconcileResponse(
        submitted=report.submitted,
        updated=report.updated,
        failed=report.failed,
        skipped=report.skipped,
    )


@router.get("/v1/orders/{order_ref}", response_model=TrackedOrderOut)
def get_order(order_ref: str, storefront: Storefront = Depends(get_storefront)) -> TrackedOrderOut:
    order = next((o for o in storefront.tracker.refresh() if o.order_ref == order_ref), None)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return _tracked(storefront, order)


@router.post("/v1/orders/{order_ref}/cancel", response_model=TrackedOrderOut)
def cancel_order(
    order_ref: str, storefront: Storefront = Depends(get_storefront)
) -> TrackedOrderOut:
    try:
        result = storefront.checkout.cancel_order(order_ref)
    except Exception as e:
        _raise_order_http_error(e)
    return _tracked(storefront, result.order)

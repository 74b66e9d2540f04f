"""Tuwas storefront API entrypoint."""

from __future__ import annotations

from fastapi import FastAPI
from services.api.app.db.init_db import init_db
from services.api.app.routers.cart import router as cart_router
from services.api.app.routers.order import router as order_router
from services.api.app.services.storefront import Storefront, build_storefront


def create_app(storefront: Storefront | None = None) -> FastAPI:
    app = FastAPI(title="Tuwas Storefront API")
    if storefront is not None:
        app.state.storefront = storefront

    app.include_router(cart_router)
    app.include_router(order_router)

    @app.on_event("startup")
    def _startup() -> None:
        if getattr(app.state, "storefront", None) is None:
            init_db()
            app.state.storefront = build_storefront()

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()

"""
Cart proxy API

Exposes the reconciled cart over HTTP for a single storefront session. Every
cart response carries the price-complete CartView; failures return the last
known view alongside the error so clients can keep rendering.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cartsync.api.schemas import (
    AddItemBody,
    CouponBody,
    RemoveItemBody,
    ShippingBody,
    UpdateItemBody,
)
from cartsync.application.dtos.cart_dtos import CartOperationResponse
from cartsync.application.use_cases.cart_sync_engine import CartSyncEngine
from cartsync.domain.entities.cart import CartView
from cartsync.infrastructure.container.dependency_injection import DependencyContainer
from cartsync.infrastructure.logging.logging_config import get_performance_metrics
from cartsync.infrastructure.utilities.exceptions import (
    CartSyncError,
    UpstreamRejected,
    UpstreamUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _status_for(error: CartSyncError) -> int:
    if isinstance(error, ValidationError):
        return 422
    if isinstance(error, UpstreamRejected):
        return error.status_code
    if isinstance(error, UpstreamUnavailable):
        return 503
    return 500


def _cart_response(view: CartView) -> dict:
    return CartOperationResponse(success=True, cart=view).to_dict()


def create_app(container: DependencyContainer, dispose_on_shutdown: bool = True) -> FastAPI:
    """Build the proxy application around an already configured container"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for FastAPI app"""
        container.initialize()
        logger.info("🚀 Cart proxy started")
        yield
        if dispose_on_shutdown:
            await container.dispose()
            logger.info("Cart proxy shutdown completed")

    app = FastAPI(title="cartsync", lifespan=lifespan)

    def engine() -> CartSyncEngine:
        return container.get_cart_sync_engine()

    @app.exception_handler(CartSyncError)
    async def cart_error_handler(request: Request, exc: CartSyncError):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error("💥 %s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("⚠️ %s %s rejected: %s", request.method, request.url.path, exc)
        cached: Optional[CartView] = engine().cached_view()
        body = CartOperationResponse(
            success=False,
            cart=cached,
            error_message=exc.user_message,
            error_code=exc.error_code,
            retryable=exc.retryable,
        ).to_dict()
        if isinstance(exc, UpstreamRejected):
            body["upstream_code"] = exc.code
        if isinstance(exc, ValidationError) and exc.field:
            body["field"] = exc.field
        return JSONResponse(status_code=status_code, content=body)

    @app.get("/api/cart")
    async def get_cart(refresh: bool = False, allow_stale: bool = False):
        """Reconciled cart, from cache unless stale or ``refresh`` is set"""
        if refresh:
            view = await engine().refresh()
        else:
            view = await engine().get_cart_view(allow_stale=allow_stale)
        return _cart_response(view)

    @app.post("/api/cart/add-item")
    async def add_item(body: AddItemBody):
        view = await engine().add_item(
            body.product_id,
            quantity=body.quantity,
            selections=body.addon_inputs(),
            variation_id=body.variation_id,
        )
        return _cart_response(view)

    @app.post("/api/cart/update-item")
    async def update_item(body: UpdateItemBody):
        view = await engine().update_item_quantity(body.key, body.quantity)
        return _cart_response(view)

    @app.post("/api/cart/remove-item")
    async def remove_item(body: RemoveItemBody):
        view = await engine().remove_item(body.key)
        return _cart_response(view)

    @app.delete("/api/cart/items")
    async def empty_cart():
        view = await engine().empty_cart()
        return _cart_response(view)

    @app.post("/api/cart/apply-coupon")
    async def apply_coupon(body: CouponBody):
        view = await engine().apply_coupon(body.code)
        return _cart_response(view)

    @app.post("/api/cart/remove-coupon")
    async def remove_coupon(body: CouponBody):
        view = await engine().remove_coupon(body.code)
        return _cart_response(view)

    @app.post("/api/cart/select-shipping-rate")
    async def select_shipping_rate(body: ShippingBody):
        view = await engine().select_shipping_rate(body.package_id, body.rate_id)
        return _cart_response(view)

    @app.get("/api/cart/items/{key}/addons")
    async def item_addons(key: str):
        """Add-ons the ledger holds for a line"""
        return {
            "key": key,
            "addons": [selection.to_dict() for selection in engine().addons_for(key)],
        }

    @app.get("/health")
    async def health_check():
        """Liveness plus cache and upstream metrics"""
        sync_engine = engine()
        return {
            "status": "ok",
            "state": sync_engine.state.value,
            "ledger_entries": len(sync_engine.ledger),
            "cache": container.get_cache_manager().get_all_stats(),
            "upstream": get_performance_metrics(),
        }

    return app

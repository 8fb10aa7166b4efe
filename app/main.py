import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from app.config import Settings, settings as default_settings
from app.database import create_db_and_tables, create_db_engine
from app.exceptions import StoreError
from app.routes import cart, delivery, health, inventory, orders
from app.services.payment_gateway import PaymentGateway
from app.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # an engine or gateway attached before startup is kept as is
        owns_engine = not hasattr(app.state, "engine")
        if owns_engine:
            app.state.engine = create_db_engine(settings.database_url)
        if not hasattr(app.state, "payment_gateway"):
            app.state.payment_gateway = PaymentGateway.from_settings(settings)

        # Run DB creation ONLY in local
        if settings.ENV == "local":
            create_db_and_tables(app.state.engine)

        logger.info(f"Storefront API started (env={settings.ENV})")
        yield
        if owns_engine:
            app.state.engine.dispose()

    app = FastAPI(title="Storefront Orders API", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.url.path}")
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    app.include_router(orders.router, prefix="/orders", tags=["Orders"])
    app.include_router(cart.router, prefix="/cart", tags=["Cart"])
    app.include_router(inventory.router, prefix="/inventory", tags=["Inventory"])
    app.include_router(delivery.router, prefix="/delivery", tags=["Delivery"])
    app.include_router(health.router, prefix="/health", tags=["Health"])

    @app.get("/")
    def root():
        return {
            "order_endpoints": [
                "/orders", "/orders/{order_id}", "/orders/cart/{cart_id}/order",
                "/orders/payment/place", "/orders/payment/validate", "/orders/webhook",
            ],
            "admin_order_endpoints": [
                "/orders/admin/orders", "/orders/admin/orders/{id}/status",
                "/orders/admin/orders/{id}/assign",
            ],
            "cart": ["/cart", "/cart/add", "/cart/items/{id}"],
            "inventory": [
                "/inventory/stock/restock", "/inventory/stock/reserve",
                "/inventory/transactions/{product_id}",
            ],
            "delivery": [
                "/delivery/orders/get-assigned-delivery",
                "/delivery/orders/{delivery_id}/status",
            ],
        }

    return app


app = create_app()

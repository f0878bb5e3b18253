"""FastAPI application entrypoint for the ShopCore API.

Mounts the store and payments routers in one process and wires the shared
collaborators (event bus, notifier, payment orchestrator) onto ``app.state``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.events import EventBus
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from libs.common.notifications import ArqNotifier, Notifier, NullNotifier
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.payments_service.config import PaymentsConfig
from services.payments_service.routers import payments_router
from services.payments_service.services.orchestrator import PaymentOrchestrator
from services.payments_service.services.payment_events import (
    register_payment_handlers,
)
from services.store_service.routers import (
    catalog_router,
    customers_router,
    orders_router,
)
from services.store_service.services.order_events import register_order_handlers

logger = get_logger(__name__)


def build_notifier() -> Notifier:
    """Queue-backed notifier, or a no-op one under test."""
    if get_settings().ENVIRONMENT == "test":
        return NullNotifier()
    return ArqNotifier()


def build_event_bus(notifier: Notifier) -> EventBus:
    bus = EventBus()
    register_order_handlers(bus, notifier)
    register_payment_handlers(bus, notifier)
    return bus


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting ShopCore API")
    yield
    notifier = app.state.notifier
    if isinstance(notifier, ArqNotifier):
        await notifier.close()
    logger.info("ShopCore API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    app = FastAPI(
        title="ShopCore API",
        version="0.1.0",
        description="Orders, inventory and multi-gateway payments.",
        lifespan=lifespan,
    )

    # Add rate limiter state to app
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Add global exception handlers for consistent error responses
    add_exception_handlers(app)

    notifier = build_notifier()
    app.state.notifier = notifier
    app.state.events = build_event_bus(notifier)
    app.state.orchestrator = PaymentOrchestrator(PaymentsConfig.from_settings(settings))

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple readiness endpoint."""
        return {"status": "ok", "environment": settings.ENVIRONMENT}

    app.include_router(catalog_router, prefix="/api/v1")
    app.include_router(customers_router, prefix="/api/v1")
    app.include_router(orders_router, prefix="/api/v1")
    app.include_router(payments_router, prefix="/api/v1")

    return app


app = create_app()

"""Routers package."""

from services.payments_service.routers.payments import router as payments_router

__all__ = ["payments_router"]

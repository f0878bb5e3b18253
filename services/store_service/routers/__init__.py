"""Store service routers package."""

from services.store_service.routers.catalog import router as catalog_router
from services.store_service.routers.customers import router as customers_router
from services.store_service.routers.orders import router as orders_router

__all__ = [
    "catalog_router",
    "customers_router",
    "orders_router",
]

"""Store Service models package."""

from services.store_service.models.catalog import Customer, Product
from services.store_service.models.commerce import Order, OrderItem
from services.store_service.models.enums import OrderStatus

__all__ = [
    "Customer",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
]

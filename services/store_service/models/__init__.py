"""Store Service models package."""

from services.store_service.models.accounts import Role, User
from services.store_service.models.catalog import (
    Category,
    Manufacturer,
    Product,
    Supplier,
)
from services.store_service.models.commerce import (
    NEW_ORDER_STATUS,
    Order,
    OrderItem,
    OrderStatus,
)

__all__ = [
    "NEW_ORDER_STATUS",
    "Category",
    "Manufacturer",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "Role",
    "Supplier",
    "User",
]

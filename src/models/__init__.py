"""Database model type definitions."""

from src.models.catalog import ProductRecord, VariantRecord
from src.models.order import OrderLineRecord, OrderRecord, OrderStatusUpdate

__all__ = [
    "ProductRecord",
    "VariantRecord",
    "OrderLineRecord",
    "OrderRecord",
    "OrderStatusUpdate",
]

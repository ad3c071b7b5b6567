"""Catalog model type definitions, read-only from this service."""

from typing import Any, TypedDict


class ProductRecord(TypedDict, total=False):
    """Products table row representation."""

    product_id: str
    name: str
    image_urls: list[str]


class VariantRecord(TypedDict, total=False):
    """Variants table row representation.

    price is in minor units (paise). stock and maximum_in_order are
    None when the variant does not track them.
    """

    variant_id: str
    product_id: str
    name: str
    price: Any
    stock: int | float | None
    maximum_in_order: int | float | None

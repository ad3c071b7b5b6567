"""Cart normalization and authoritative pricing."""

import asyncio
import logging
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from src.api.middleware.error_handler import NotFoundError, ValidationError
from src.models.catalog import ProductRecord, VariantRecord
from src.models.order import OrderLineRecord
from src.schemas.checkout import CheckoutItemInput
from src.services.catalog_service import CatalogReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedItem:
    """A cart line that survived normalization."""

    product_id: str
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class PricedCart:
    """Priced lines and their subtotal, in minor units."""

    lines: list[OrderLineRecord]
    subtotal: int


def _whole_quantity(value: Any) -> int | None:
    """Return value as a positive int, or None if it is not a positive whole number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and math.isfinite(value) and value.is_integer() and value > 0:
        return int(value)
    return None


def normalize_items(items: Iterable[CheckoutItemInput]) -> list[NormalizedItem]:
    """Drop malformed lines and merge duplicates.

    Lines with a blank product/variant id or a quantity that is not a
    positive whole number are skipped silently. Lines sharing
    (product_id, variant_id) are merged by summing quantities; output keeps
    the order of first occurrence.

    Args:
        items: Raw checkout lines.

    Returns:
        list[NormalizedItem]: Deduplicated lines.

    Raises:
        ValidationError: EMPTY_CART if no line survives.
    """
    merged: dict[tuple[str, str], int] = {}

    for item in items:
        quantity = _whole_quantity(item.quantity)
        product_id = item.product_id.strip()
        variant_id = item.variant_id.strip()
        if quantity is None or not product_id or not variant_id:
            continue

        key = (product_id, variant_id)
        merged[key] = merged.get(key, 0) + quantity

    if not merged:
        raise ValidationError("No valid checkout items", code="EMPTY_CART")

    return [
        NormalizedItem(product_id=product_id, variant_id=variant_id, quantity=quantity)
        for (product_id, variant_id), quantity in merged.items()
    ]


def minor_units(price: Any) -> int | None:
    """Coerce a catalog price to positive integer minor units.

    Returns None for missing, non-numeric, non-finite, non-positive or
    fractional values.
    """
    if price is None or isinstance(price, bool):
        return None
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value <= 0 or value != value.to_integral_value():
        return None
    return int(value)


def _tracked_limit(value: Any) -> int | float | Decimal | None:
    # numeric columns arrive as floats; None means the limit is not tracked
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    if isinstance(value, int):
        return value
    if not math.isfinite(value):
        return None
    return int(value) if value == int(value) else value


class PricingService:
    """Prices normalized lines from the catalog; never from client input."""

    def __init__(self, catalog: CatalogReader) -> None:
        """Initialize pricing service.

        Args:
            catalog: Catalog reader used for every lookup.
        """
        self.catalog = catalog

    async def _fetch(self, item: NormalizedItem) -> tuple[ProductRecord | None, VariantRecord | None]:
        product, variant = await asyncio.gather(
            self.catalog.get_product(item.product_id),
            self.catalog.get_variant(item.variant_id),
        )
        return product, variant

    async def price_items(self, items: list[NormalizedItem]) -> PricedCart:
        """Fetch and price every line.

        Every lookup is gathered before any line is validated; validation
        then runs in line order so the reported failure is deterministic.

        Args:
            items: Normalized lines.

        Returns:
            PricedCart: Priced lines and subtotal.

        Raises:
            NotFoundError: PRODUCT_NOT_FOUND / VARIANT_NOT_FOUND.
            ValidationError: VARIANT_MISMATCH, INVALID_QUANTITY, INVALID_PRICE or EMPTY_CART.
        """
        if not items:
            raise ValidationError("No valid checkout items", code="EMPTY_CART")

        fetched = await asyncio.gather(*(self._fetch(item) for item in items))

        lines: list[OrderLineRecord] = []
        subtotal = 0
        for item, (product, variant) in zip(items, fetched):
            line = self._price_line(item, product, variant)
            subtotal += line["line_total"]
            lines.append(line)

        return PricedCart(lines=lines, subtotal=subtotal)

    def _price_line(
        self,
        item: NormalizedItem,
        product: ProductRecord | None,
        variant: VariantRecord | None,
    ) -> OrderLineRecord:
        if not product:
            raise NotFoundError(f"Product not found: {item.product_id}", code="PRODUCT_NOT_FOUND")
        if not variant:
            raise NotFoundError(f"Variant not found: {item.variant_id}", code="VARIANT_NOT_FOUND")
        if variant.get("product_id") != item.product_id:
            raise ValidationError(
                f"Variant {item.variant_id} does not belong to product {item.product_id}",
                code="VARIANT_MISMATCH",
            )

        name = product.get("name") or item.product_id
        stock = _tracked_limit(variant.get("stock"))
        if stock is not None and item.quantity > stock:
            raise ValidationError(f"Only {stock} units available for {name}", code="INVALID_QUANTITY")

        maximum = _tracked_limit(variant.get("maximum_in_order"))
        if maximum is not None and item.quantity > maximum:
            raise ValidationError(
                f"Maximum quantity per order is {maximum} for {name}",
                code="INVALID_QUANTITY",
            )

        unit_price = minor_units(variant.get("price"))
        if unit_price is None:
            logger.warning("Variant %s has an unusable price: %r", item.variant_id, variant.get("price"))
            raise ValidationError(f"Invalid price for {name}", code="INVALID_PRICE")

        image_urls = product.get("image_urls") or []
        return OrderLineRecord(
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            unit_price=unit_price,
            line_total=unit_price * item.quantity,
            product_name=name,
            variant_name=variant.get("name") or "",
            image_url=image_urls[0] if image_urls else "",
        )

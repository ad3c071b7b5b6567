"""Read-only catalog lookups used for pricing."""

from typing import Protocol

from src.core.config import Settings, get_settings
from src.core.supabase import get_supabase_client
from src.models.catalog import ProductRecord, VariantRecord


class CatalogReader(Protocol):
    """Point lookups of products and variants by id."""

    async def get_product(self, product_id: str) -> ProductRecord | None: ...

    async def get_variant(self, variant_id: str) -> VariantRecord | None: ...


class SupabaseCatalogReader:
    """Catalog reader backed by the products and variants tables."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize catalog reader with the Supabase client.

        Args:
            settings: Optional settings override for table names.
        """
        self.client = get_supabase_client()
        self.settings = settings or get_settings()

    async def get_product(self, product_id: str) -> ProductRecord | None:
        """Get a product by id.

        Args:
            product_id: The product id.

        Returns:
            ProductRecord | None: The product row or None if not found.
        """
        response = (
            self.client.table(self.settings.products_table)
            .select("product_id, name, image_urls")
            .eq("product_id", product_id)
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def get_variant(self, variant_id: str) -> VariantRecord | None:
        """Get a variant by id.

        Args:
            variant_id: The variant id.

        Returns:
            VariantRecord | None: The variant row or None if not found.
        """
        response = (
            self.client.table(self.settings.variants_table)
            .select("variant_id, product_id, name, price, stock, maximum_in_order")
            .eq("variant_id", variant_id)
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

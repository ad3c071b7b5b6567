"""Order persistence keyed by (user_id, created_at)."""

import logging
from typing import Any, Protocol

from postgrest.exceptions import APIError as PostgrestAPIError

from src.core.config import Settings, get_settings
from src.core.supabase import get_supabase_client
from src.models.order import OrderRecord, OrderStatusUpdate

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


class OrderKeyConflictError(Exception):
    """Raised when an order with the same (user_id, created_at) already exists."""

    def __init__(self, user_id: str, created_at: int) -> None:
        self.user_id = user_id
        self.created_at = created_at
        super().__init__(f"Order key already exists: ({user_id}, {created_at})")


class OrderStore(Protocol):
    """Storage operations the checkout flow needs."""

    async def get_order(self, user_id: str, created_at: int) -> OrderRecord | None: ...

    async def put_order(self, order: OrderRecord) -> OrderRecord: ...

    async def update_order(
        self,
        user_id: str,
        created_at: int,
        fields: OrderStatusUpdate,
        expected: dict[str, Any] | None = None,
    ) -> OrderRecord | None: ...

    async def list_orders_for_user(self, user_id: str) -> list[OrderRecord]: ...

    async def list_all_orders(self) -> list[OrderRecord]: ...


class SupabaseOrderStore:
    """Order store backed by the Supabase orders table.

    The table's primary key is (user_id, created_at), so a plain insert
    fails instead of overwriting an existing order.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize order store with the Supabase client."""
        self.client = get_supabase_client()
        self.settings = settings or get_settings()

    @property
    def _table(self) -> str:
        return self.settings.orders_table

    async def get_order(self, user_id: str, created_at: int) -> OrderRecord | None:
        """Get an order by its key.

        Args:
            user_id: Owning principal id.
            created_at: Creation time in epoch ms.

        Returns:
            OrderRecord | None: The order or None if not found.
        """
        response = (
            self.client.table(self._table)
            .select("*")
            .eq("user_id", user_id)
            .eq("created_at", created_at)
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def put_order(self, order: OrderRecord) -> OrderRecord:
        """Insert a new order.

        Args:
            order: Complete order snapshot.

        Returns:
            OrderRecord: The stored row.

        Raises:
            OrderKeyConflictError: If the key is already taken.
            PostgrestAPIError: For any other storage failure.
        """
        try:
            response = self.client.table(self._table).insert(dict(order)).execute()
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise OrderKeyConflictError(order["user_id"], order["created_at"]) from e
            raise

        return response.data[0] if response.data else order

    async def update_order(
        self,
        user_id: str,
        created_at: int,
        fields: OrderStatusUpdate,
        expected: dict[str, Any] | None = None,
    ) -> OrderRecord | None:
        """Update an order, optionally only if current column values match.

        The match conditions are part of the same UPDATE statement, so two
        concurrent callers cannot both pass them.

        Args:
            user_id: Owning principal id.
            created_at: Creation time in epoch ms.
            fields: Columns to set.
            expected: Column values the row must currently hold.

        Returns:
            OrderRecord | None: The updated row, or None if no row matched.
        """
        query = (
            self.client.table(self._table)
            .update(dict(fields))
            .eq("user_id", user_id)
            .eq("created_at", created_at)
        )
        for column, value in (expected or {}).items():
            query = query.eq(column, value)

        response = query.execute()
        return response.data[0] if response.data else None

    async def list_orders_for_user(self, user_id: str) -> list[OrderRecord]:
        """Get all orders of one principal, most recent first."""
        response = (
            self.client.table(self._table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )

        return response.data or []

    async def list_all_orders(self) -> list[OrderRecord]:
        """Get every order, most recent first."""
        response = (
            self.client.table(self._table)
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )

        return response.data or []

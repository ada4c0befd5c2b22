"""
Campaign Service Data Repository

Data access layer - Supabase (PostgREST + auth + remote procedures, Async)
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from .protocols import StorageError

logger = logging.getLogger(__name__)

# PostgREST code for "JSON object requested, multiple (or no) rows returned"
SINGLE_ROW_ERROR_CODE = "PGRST116"


class CampaignRepository:
    """Campaign service data repository - Supabase (Async)

    Implements both DataStoreProtocol and RemoteProcedureInvokerProtocol.
    Every store failure surfaces as StorageError carrying the store's message.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

        # Table names
        self.campaigns_table = "campaigns"
        self.messages_table = "campaign_messages"
        self.promo_codes_table = "promo_codes"
        self.metrics_table = "campaign_metrics"
        self.tags_table = "customer_tags"
        self.tag_assignments_table = "customer_tag_assignments"
        self.consent_table = "customer_consent"
        self.audit_log_table = "campaign_audit_log"
        self.customers_table = "customers"
        self.restaurants_table = "restaurants"

    async def initialize(self):
        """Initialize repository"""
        logger.info("Campaign repository initialized with Supabase")

    async def close(self):
        """Close repository"""
        logger.info("Campaign repository closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        try:
            await self._execute(
                self.client.table(self.campaigns_table).select("id").limit(1),
                f"checking {self.campaigns_table}",
            )
            return True
        except StorageError as e:
            logger.error(f"Health check failed: {e}")
            return False

    # ====================
    # Table operations
    # ====================

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        columns: str = "*",
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """Select rows matching equality filters"""
        query = self._apply_filters(self.client.table(table).select(columns), filters)
        if order_by:
            query = query.order(order_by, desc=descending)

        result = await self._execute(query, f"selecting from {table}")
        return result.data or []

    async def select_one(
        self,
        table: str,
        filters: Dict[str, Any],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Select zero or one row, more than one match is an error"""
        query = self._apply_filters(self.client.table(table).select(columns), filters).limit(2)

        result = await self._execute(query, f"selecting one from {table}")
        rows = result.data or []
        if len(rows) > 1:
            raise StorageError(
                f"Expected at most one row in {table} for {filters}, got several",
                code=SINGLE_ROW_ERROR_CODE,
            )
        return rows[0] if rows else None

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored"""
        result = await self._execute(
            self.client.table(table).insert(row),
            f"inserting into {table}",
        )
        return self._single_row(table, result.data)

    async def update(
        self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Patch exactly one row and return it as stored"""
        query = self._apply_filters(self.client.table(table).update(patch), filters)

        result = await self._execute(query, f"updating {table}")
        return self._single_row(table, result.data)

    async def upsert(
        self, table: str, row: Dict[str, Any], on_conflict: str
    ) -> Dict[str, Any]:
        """Insert or merge a row on its natural key"""
        result = await self._execute(
            self.client.table(table).upsert(row, on_conflict=on_conflict),
            f"upserting into {table}",
        )
        return self._single_row(table, result.data)

    async def delete(self, table: str, filters: Dict[str, Any]) -> None:
        """Delete rows matching equality filters"""
        query = self._apply_filters(self.client.table(table).delete(), filters)
        await self._execute(query, f"deleting from {table}")

    # ====================
    # Remote procedures
    # ====================

    async def call_procedure(self, name: str, params: Dict[str, Any]) -> Any:
        """Invoke a Postgres function through PostgREST"""
        result = await self._execute(
            self.client.rpc(name, params),
            f"calling procedure {name}",
        )
        return result.data

    # ====================
    # Auth
    # ====================

    async def get_current_user_id(self) -> Optional[str]:
        """Identity of the authenticated session, None when unresolvable"""
        try:
            response = await self.client.auth.get_user()
        except Exception as e:
            logger.warning(f"Could not resolve current user: {e}")
            return None

        if response and response.user:
            return response.user.id
        return None

    # ====================
    # Helpers
    # ====================

    @staticmethod
    def _apply_filters(query, filters: Optional[Dict[str, Any]]):
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        return query

    @staticmethod
    def _single_row(table: str, rows: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
        if not rows or len(rows) != 1:
            raise StorageError(
                f"Expected exactly one row from {table}, got {len(rows or [])}",
                code=SINGLE_ROW_ERROR_CODE,
            )
        return rows[0]

    async def _execute(self, query, description: str):
        try:
            return await query.execute()
        except APIError as e:
            message = e.message or str(e)
            logger.error(f"Error {description}: {message}")
            raise StorageError(message, code=e.code, details=e.details) from e
        except httpx.HTTPError as e:
            logger.error(f"Transport error {description}: {e}")
            raise StorageError(str(e)) from e


__all__ = ["CampaignRepository", "SINGLE_ROW_ERROR_CODE"]

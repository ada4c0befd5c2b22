"""
Component Test Fixtures for Campaign Service

Provides an in-memory data store and remote procedure doubles so the
CampaignService business logic runs without a Supabase project.
"""

import pytest
import re
from copy import deepcopy
from datetime import datetime, timezone, timedelta
from typing import List, Optional, Dict, Any
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config import CampaignConfig
from microservices.campaign_service.campaign_service import CampaignService
from microservices.campaign_service.protocols import StorageError

from tests.contracts.campaign.data_contract import CampaignStatus, CampaignTestDataFactory


# ====================
# Mock Data Store
# ====================

# Embedded selects supported by the mock: embedded table -> foreign key column
EMBEDDED_RELATIONS = {"customer_tags": "tag_id"}

TIMESTAMP_COLUMNS = {"campaign_audit_log": "timestamp"}


class MockCampaignDataStore:
    """In-memory DataStoreProtocol for component testing

    Rows get an id and a strictly increasing timestamp on insert so that
    ordering assertions are deterministic.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.current_user_id: Optional[str] = None
        self.identity_error: Optional[Exception] = None
        self.failing_tables: Dict[str, Exception] = {}
        self._counter = 0
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # ----- Test helpers -----

    def seed(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Place a row without recording a call"""
        self.tables.setdefault(table, []).append(deepcopy(row))
        return row

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])

    def fail_on(self, table: str, error: Optional[Exception] = None):
        """Make every write to a table raise"""
        self.failing_tables[table] = error or StorageError(f"write to {table} rejected", code="42501")

    def calls_for(self, table: str) -> List[tuple]:
        return [call for call in self.calls if call[1] == table]

    def _next_id(self, table: str) -> str:
        self._counter += 1
        return f"{table}_{self._counter:04d}"

    def _tick(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def _check_failure(self, table: str):
        if table in self.failing_tables:
            raise self.failing_tables[table]

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        return all(row.get(column) == value for column, value in (filters or {}).items())

    def _project(self, row: Dict[str, Any], columns: str) -> Dict[str, Any]:
        embedded = re.fullmatch(r"(\w+)\(\*\)", columns)
        if not embedded:
            return deepcopy(row)

        relation = embedded.group(1)
        foreign_key = EMBEDDED_RELATIONS[relation]
        target = next(
            (r for r in self.rows(relation) if r.get("id") == row.get(foreign_key)),
            None,
        )
        return {relation: deepcopy(target)}

    # ----- DataStoreProtocol -----

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        columns: str = "*",
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        self.calls.append(("select", table, filters))
        results = [row for row in self.rows(table) if self._matches(row, filters)]
        if order_by:
            results.sort(
                key=lambda row: (row.get(order_by) is None, row.get(order_by) or ""),
                reverse=descending,
            )
        return [self._project(row, columns) for row in results]

    async def select_one(
        self,
        table: str,
        filters: Dict[str, Any],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        self.calls.append(("select_one", table, filters))
        results = [row for row in self.rows(table) if self._matches(row, filters)]
        if len(results) > 1:
            raise StorageError(f"multiple rows in {table}", code="PGRST116")
        return self._project(results[0], columns) if results else None

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("insert", table, row))
        self._check_failure(table)

        stored = deepcopy(row)
        stored.setdefault("id", self._next_id(table))
        stored.setdefault(TIMESTAMP_COLUMNS.get(table, "created_at"), self._tick())
        self.tables.setdefault(table, []).append(stored)
        return deepcopy(stored)

    async def update(
        self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        self.calls.append(("update", table, filters, patch))
        self._check_failure(table)

        matches = [row for row in self.rows(table) if self._matches(row, filters)]
        if len(matches) != 1:
            raise StorageError(
                f"Expected exactly one row from {table}, got {len(matches)}", code="PGRST116"
            )
        matches[0].update(deepcopy(patch))
        matches[0]["updated_at"] = self._tick()
        return deepcopy(matches[0])

    async def upsert(
        self, table: str, row: Dict[str, Any], on_conflict: str
    ) -> Dict[str, Any]:
        self.calls.append(("upsert", table, row, on_conflict))
        self._check_failure(table)

        keys = {key.strip(): row.get(key.strip()) for key in on_conflict.split(",")}
        existing = next((r for r in self.rows(table) if self._matches(r, keys)), None)
        if existing is None:
            stored = deepcopy(row)
            stored.setdefault("id", self._next_id(table))
            stored["updated_at"] = self._tick()
            self.tables.setdefault(table, []).append(stored)
            return deepcopy(stored)

        existing.update(deepcopy(row))
        existing["updated_at"] = self._tick()
        return deepcopy(existing)

    async def delete(self, table: str, filters: Dict[str, Any]) -> None:
        self.calls.append(("delete", table, filters))
        self._check_failure(table)
        self.tables[table] = [row for row in self.rows(table) if not self._matches(row, filters)]

    async def get_current_user_id(self) -> Optional[str]:
        if self.identity_error:
            raise self.identity_error
        return self.current_user_id


# ====================
# Mock Remote Procedures
# ====================


class MockCampaignProcedures:
    """In-memory CampaignProceduresProtocol"""

    def __init__(self, data_store: MockCampaignDataStore):
        self.data_store = data_store
        self.calls: List[tuple] = []
        self.audience_size: Optional[int] = 0
        self.validation_result: Any = {"valid": True, "discount_amount": 7.5}
        self.redeem_error: Optional[Exception] = None
        self._code_counter = 0
        self._redemption_counter = 0

    async def resolve_audience_size(
        self, restaurant_id: str, audience_type: str, audience_filter: Dict[str, Any]
    ) -> Optional[int]:
        self.calls.append(("resolve_audience_size", restaurant_id, audience_type, audience_filter))
        return self.audience_size

    async def generate_code(self, restaurant_id: str, prefix: str) -> str:
        self.calls.append(("generate_code", restaurant_id, prefix))
        self._code_counter += 1
        return f"{prefix}-x{self._code_counter:05d}"

    async def validate_code(self, restaurant_id, customer_id, code, order_amount) -> Any:
        self.calls.append(("validate_code", restaurant_id, customer_id, code, order_amount))
        return self.validation_result

    async def redeem(
        self, promo_code_id, customer_id, restaurant_id, order_amount, discount_applied
    ) -> str:
        self.calls.append(
            ("redeem", promo_code_id, customer_id, restaurant_id, order_amount, discount_applied)
        )
        if self.redeem_error:
            raise self.redeem_error
        self._redemption_counter += 1
        return f"red_{self._redemption_counter:04d}"

    async def recompute_metrics(self, campaign_id: str) -> None:
        self.calls.append(("recompute_metrics", campaign_id))
        sent = len(self.data_store.rows(f"sent_messages_{campaign_id}"))
        existing = next(
            (r for r in self.data_store.rows("campaign_metrics") if r["campaign_id"] == campaign_id),
            None,
        )
        if existing:
            existing["total_sent"] = sent
        else:
            self.data_store.seed("campaign_metrics", {
                "id": f"met_{campaign_id}",
                "campaign_id": campaign_id,
                "total_sent": sent,
            })


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory():
    """Provide CampaignTestDataFactory"""
    return CampaignTestDataFactory


@pytest.fixture
def data_store():
    """Fresh in-memory data store for each test"""
    return MockCampaignDataStore()


@pytest.fixture
def procedures(data_store):
    return MockCampaignProcedures(data_store)


@pytest.fixture
def make_service(data_store, procedures):
    """Build a CampaignService with config overrides"""

    def _make(**config_overrides) -> CampaignService:
        return CampaignService(
            data_store=data_store,
            procedures=procedures,
            config=CampaignConfig(**config_overrides),
        )

    return _make


@pytest.fixture
def campaign_service(make_service):
    """CampaignService with default (permissive) policy"""
    return make_service()


@pytest.fixture
def strict_service(make_service):
    """CampaignService enforcing transitions and audit writes"""
    return make_service(enforce_transitions=True, audit_strict=True)


@pytest.fixture
def seed_campaign(data_store, factory):
    """Place a campaign row in a given status"""

    def _seed(status=None, **overrides) -> Dict[str, Any]:
        row = factory.make_campaign_row(status=status or CampaignStatus.DRAFT, **overrides)
        return data_store.seed("campaigns", row)

    return _seed

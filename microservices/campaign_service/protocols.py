"""
Campaign Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from typing import Any, Dict, List, Optional, Protocol, Union
from decimal import Decimal

from .models import CampaignStatus


# ====================
# Data Store Protocol
# ====================


class DataStoreProtocol(Protocol):
    """Table-scoped storage plus the session identity accessor"""

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        columns: str = "*",
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """Select rows matching equality filters"""
        ...

    async def select_one(
        self,
        table: str,
        filters: Dict[str, Any],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Select zero or one row matching equality filters"""
        ...

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored"""
        ...

    async def update(
        self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Patch exactly one row and return it as stored"""
        ...

    async def upsert(
        self, table: str, row: Dict[str, Any], on_conflict: str
    ) -> Dict[str, Any]:
        """Insert or merge a row on its natural key"""
        ...

    async def delete(self, table: str, filters: Dict[str, Any]) -> None:
        """Delete rows matching equality filters"""
        ...

    async def get_current_user_id(self) -> Optional[str]:
        """Identity of the authenticated session, if any"""
        ...


# ====================
# Remote Procedure Protocols
# ====================


class RemoteProcedureInvokerProtocol(Protocol):
    """Named server-side function calls"""

    async def call_procedure(self, name: str, params: Dict[str, Any]) -> Any:
        """Invoke a procedure and return its raw result"""
        ...


class CampaignProceduresProtocol(Protocol):
    """Delegated audience, promo code and metrics logic"""

    async def resolve_audience_size(
        self,
        restaurant_id: str,
        audience_type: str,
        audience_filter: Dict[str, Any],
    ) -> Optional[int]:
        """Count customers matching an audience definition"""
        ...

    async def generate_code(self, restaurant_id: str, prefix: str) -> str:
        """Produce a collision-free promo code"""
        ...

    async def validate_code(
        self,
        restaurant_id: str,
        customer_id: str,
        code: str,
        order_amount: Union[Decimal, float],
    ) -> Any:
        """Check a promo code for an order, read-only"""
        ...

    async def redeem(
        self,
        promo_code_id: str,
        customer_id: str,
        restaurant_id: str,
        order_amount: Union[Decimal, float],
        discount_applied: Union[Decimal, float],
    ) -> str:
        """Atomically record a redemption, returns its id"""
        ...

    async def recompute_metrics(self, campaign_id: str) -> None:
        """Rebuild the metrics row of a campaign"""
        ...


# ====================
# Custom Exceptions
# ====================


class CampaignServiceError(Exception):
    """Base exception for campaign service errors"""
    pass


class StorageError(CampaignServiceError):
    """Raised when the data store or a remote procedure reports a failure"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details


class NotFoundError(CampaignServiceError):
    """Raised when a required record is missing"""
    pass


class CampaignNotFoundError(NotFoundError):
    """Raised when campaign or its messages are not found"""
    pass


class CustomerNotFoundError(NotFoundError):
    """Raised when customer is not found"""
    pass


class InvalidCampaignStateError(CampaignServiceError):
    """Raised when campaign is in invalid state for operation"""

    def __init__(
        self,
        message: str,
        current_status: Optional[CampaignStatus] = None,
        target_status: Optional[CampaignStatus] = None,
    ):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class CampaignValidationError(CampaignServiceError):
    """Raised when campaign validation fails"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class AuditLogError(CampaignServiceError):
    """Raised in strict audit mode when the audit insert fails"""

    def __init__(self, message: str, campaign_id: Optional[str] = None, action: Optional[str] = None):
        super().__init__(message)
        self.campaign_id = campaign_id
        self.action = action


__all__ = [
    "DataStoreProtocol",
    "RemoteProcedureInvokerProtocol",
    "CampaignProceduresProtocol",
    "CampaignServiceError",
    "StorageError",
    "NotFoundError",
    "CampaignNotFoundError",
    "CustomerNotFoundError",
    "InvalidCampaignStateError",
    "CampaignValidationError",
    "AuditLogError",
]

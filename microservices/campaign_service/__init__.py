"""
Campaign Service

Restaurant marketing campaign administration providing:
- Campaign CRUD and lifecycle (schedule, pause, resume, cancel)
- Per-channel message templates and personalized previews
- Promo code generation, validation and redemption
- Customer tags and per-channel contact consent
- Append-only campaign audit trail
"""

from .campaign_service import CampaignService
from .factory import CampaignServiceFactory, close_factory, get_factory
from .procedures import CampaignProcedures
from .protocols import (
    AuditLogError,
    CampaignNotFoundError,
    CampaignServiceError,
    CampaignValidationError,
    CustomerNotFoundError,
    InvalidCampaignStateError,
    NotFoundError,
    StorageError,
)

__version__ = "1.0.0"
__service__ = "campaign_service"

__all__ = [
    "CampaignService",
    "CampaignServiceFactory",
    "CampaignProcedures",
    "get_factory",
    "close_factory",
    "CampaignServiceError",
    "StorageError",
    "NotFoundError",
    "CampaignNotFoundError",
    "CustomerNotFoundError",
    "InvalidCampaignStateError",
    "CampaignValidationError",
    "AuditLogError",
]

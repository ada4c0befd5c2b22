"""
Campaign Service Data Models

Canonical data structures for the restaurant campaign service: stored rows,
write requests, typed configuration variants and preview results.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================

class CampaignType(str, Enum):
    """Campaign execution type"""
    ONE_TIME = "one_time"
    SCHEDULED = "scheduled"
    RECURRING = "recurring"
    AB_TEST = "ab_test"


class CampaignStatus(str, Enum):
    """Campaign lifecycle status"""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class ChannelType(str, Enum):
    """Delivery channel type"""
    PUSH = "push"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    SMS = "sms"


class AudienceType(str, Enum):
    """How the campaign audience is selected"""
    ALL = "all"
    TAGGED = "tagged"
    CUSTOM_FILTER = "custom_filter"
    LOCATION_RADIUS = "location_radius"
    LAST_ORDER_DATE = "last_order_date"
    WALLET_STATUS = "wallet_status"


class ABVariant(str, Enum):
    """A/B test arm"""
    A = "A"
    B = "B"


class DiscountType(str, Enum):
    """Promo code discount type"""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class PromoOrderType(str, Enum):
    """Order types a promo code applies to"""
    ALL = "all"
    EATS_ONLY = "eats_only"
    DELIVERY_ONLY = "delivery_only"


class AuditAction(str, Enum):
    """Audit log action labels"""
    CREATED = "created"
    EDITED = "edited"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    PAUSED = "paused"
    RESUMED = "resumed"
    PREVIEW = "preview"


class RecurringFrequency(str, Enum):
    """Recurring campaign cadence"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class WinnerMetric(str, Enum):
    """Metric used to pick the winning A/B arm"""
    OPEN_RATE = "open_rate"
    CLICK_RATE = "click_rate"
    CONVERSION_RATE = "conversion_rate"


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseContract(BaseModel):
    """Base model for all contracts"""

    model_config = ConfigDict(from_attributes=True)


class StrictContract(BaseContract):
    """Base for typed configuration maps, unknown keys are rejected"""

    model_config = ConfigDict(from_attributes=True, extra="forbid")


class AudienceFilterContract(BaseContract):
    """Base for audience filters, typed keys are checked and the rest pass through"""

    model_config = ConfigDict(from_attributes=True, extra="allow")


# =============================================================================
# TYPED CONFIGURATION VARIANTS
# =============================================================================

class AllAudienceFilter(AudienceFilterContract):
    """Every customer of the restaurant"""
    pass


class TaggedAudienceFilter(AudienceFilterContract):
    """Customers carrying one or more tags"""
    tag_ids: List[str] = Field(..., min_length=1)
    match: str = Field(default="any", pattern="^(any|all)$")


class CustomAudienceFilter(AudienceFilterContract):
    """Free-form filter evaluated by the audience procedure"""
    pass


class LocationRadiusAudienceFilter(AudienceFilterContract):
    """Customers within a radius of a point"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_km: float = Field(..., gt=0)


class LastOrderDateAudienceFilter(AudienceFilterContract):
    """Customers selected by the date of their last order"""
    days_since_last_order: Optional[int] = Field(None, ge=0)
    ordered_after: Optional[datetime] = None
    ordered_before: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_window(self):
        if self.days_since_last_order is None and not (self.ordered_after or self.ordered_before):
            raise ValueError("Provide days_since_last_order or an ordered_after/ordered_before window")
        if self.ordered_after and self.ordered_before and self.ordered_after > self.ordered_before:
            raise ValueError("ordered_after must not be later than ordered_before")
        return self


class WalletStatusAudienceFilter(AudienceFilterContract):
    """Customers selected by loyalty wallet state"""
    has_wallet: Optional[bool] = None
    min_balance: Optional[Decimal] = Field(None, ge=0)
    max_balance: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def validate_balance_range(self):
        if self.min_balance is not None and self.max_balance is not None:
            if self.min_balance > self.max_balance:
                raise ValueError("min_balance must not exceed max_balance")
        return self


AUDIENCE_FILTER_MODELS: Dict[AudienceType, Type[AudienceFilterContract]] = {
    AudienceType.ALL: AllAudienceFilter,
    AudienceType.TAGGED: TaggedAudienceFilter,
    AudienceType.CUSTOM_FILTER: CustomAudienceFilter,
    AudienceType.LOCATION_RADIUS: LocationRadiusAudienceFilter,
    AudienceType.LAST_ORDER_DATE: LastOrderDateAudienceFilter,
    AudienceType.WALLET_STATUS: WalletStatusAudienceFilter,
}


def parse_audience_filter(audience_type: AudienceType, audience_filter: Dict[str, Any]) -> AudienceFilterContract:
    """Validate an audience filter map against its audience type.

    Raises pydantic.ValidationError when the map does not fit the variant.
    """
    model = AUDIENCE_FILTER_MODELS[AudienceType(audience_type)]
    return model.model_validate(audience_filter or {})


class RecurringConfig(StrictContract):
    """Cadence of a recurring campaign"""
    frequency: RecurringFrequency
    interval: int = Field(default=1, ge=1)
    days_of_week: List[int] = Field(default_factory=list)
    send_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    ends_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_days(self):
        if any(day < 0 or day > 6 for day in self.days_of_week):
            raise ValueError("days_of_week entries must be between 0 (Monday) and 6 (Sunday)")
        return self


class ABTestConfig(StrictContract):
    """A/B split settings"""
    split_percentage: int = Field(default=50, ge=1, le=99)
    winner_metric: WinnerMetric = WinnerMetric.CLICK_RATE
    test_duration_hours: int = Field(default=24, ge=1)
    auto_send_winner: bool = False


# =============================================================================
# STORED ROWS
# =============================================================================

class Campaign(BaseContract):
    """Campaign row"""
    id: str
    restaurant_id: str
    name: str
    description: Optional[str] = None

    type: CampaignType = CampaignType.ONE_TIME
    status: CampaignStatus = CampaignStatus.DRAFT

    primary_channel: ChannelType
    fallback_channel: Optional[ChannelType] = None

    audience_type: AudienceType = AudienceType.ALL
    audience_filter: Dict[str, Any] = Field(default_factory=dict)
    estimated_audience_size: int = 0

    scheduled_at: Optional[datetime] = None
    recurring_config: Optional[Dict[str, Any]] = None
    ab_test_config: Optional[Dict[str, Any]] = None

    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None


class CampaignMessage(BaseContract):
    """Per-channel message template of a campaign"""
    id: str
    campaign_id: str
    channel: ChannelType
    subject: Optional[str] = None
    message_template: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    ab_variant: Optional[ABVariant] = None
    created_at: Optional[datetime] = None


class PromoCode(BaseContract):
    """Redeemable discount code"""
    id: str
    campaign_id: Optional[str] = None
    restaurant_id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    min_spend: Decimal = Decimal("0")
    max_uses: Optional[int] = None
    max_uses_per_customer: int = 1
    total_uses: int = 0
    order_type: PromoOrderType = PromoOrderType.ALL
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True
    created_at: Optional[datetime] = None


class CampaignMetrics(BaseContract):
    """Funnel rollup for one campaign"""
    id: str
    campaign_id: str
    total_targeted: int = 0
    total_sent: int = 0
    total_delivered: int = 0
    total_failed: int = 0
    total_bounced: int = 0
    total_opened: int = 0
    total_clicked: int = 0
    total_conversions: int = 0
    total_redemptions: int = 0
    total_revenue_generated: Decimal = Decimal("0")
    cost_per_send: Decimal = Decimal("0")
    roi: Decimal = Decimal("0")
    updated_at: Optional[datetime] = None


class CustomerTag(BaseContract):
    """Restaurant-scoped customer label"""
    id: str
    restaurant_id: str
    name: str
    color: str
    created_at: Optional[datetime] = None


class CustomerTagAssignment(BaseContract):
    """Customer to tag join row"""
    customer_id: str
    tag_id: str


class CustomerConsent(BaseContract):
    """Per-channel contact consent of a customer at a restaurant"""
    id: str
    customer_id: str
    restaurant_id: str
    push_notifications: bool = False
    whatsapp: bool = False
    email: bool = False
    sms: bool = False
    consent_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CampaignAuditLogEntry(BaseContract):
    """Append-only audit record"""
    id: str
    campaign_id: str
    action: str
    performed_by: Optional[str] = None
    changes: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None


# =============================================================================
# PREVIEW
# =============================================================================

class RenderedCampaignMessage(CampaignMessage):
    """Campaign message with placeholders substituted"""
    rendered_message: str


class CampaignPreview(BaseContract):
    """Result of rendering a campaign for one customer"""
    campaign: Campaign
    messages: List[RenderedCampaignMessage]
    customer: Dict[str, Any]


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CampaignCreateRequest(BaseContract):
    """Campaign creation request"""
    restaurant_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)

    type: CampaignType = CampaignType.ONE_TIME
    status: CampaignStatus = CampaignStatus.DRAFT

    primary_channel: ChannelType
    fallback_channel: Optional[ChannelType] = None

    audience_type: AudienceType = AudienceType.ALL
    audience_filter: Dict[str, Any] = Field(default_factory=dict)
    estimated_audience_size: int = Field(default=0, ge=0)

    scheduled_at: Optional[datetime] = None
    recurring_config: Optional[Dict[str, Any]] = None
    ab_test_config: Optional[Dict[str, Any]] = None


class CampaignUpdateRequest(BaseContract):
    """Partial campaign update, only explicitly set fields are written"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)

    type: Optional[CampaignType] = None
    status: Optional[CampaignStatus] = None

    primary_channel: Optional[ChannelType] = None
    fallback_channel: Optional[ChannelType] = None

    audience_type: Optional[AudienceType] = None
    audience_filter: Optional[Dict[str, Any]] = None
    estimated_audience_size: Optional[int] = Field(None, ge=0)

    scheduled_at: Optional[datetime] = None
    recurring_config: Optional[Dict[str, Any]] = None
    ab_test_config: Optional[Dict[str, Any]] = None
    sent_at: Optional[datetime] = None


class CampaignMessageCreateRequest(BaseContract):
    """New message template for a campaign"""
    campaign_id: str = Field(..., min_length=1)
    channel: ChannelType
    subject: Optional[str] = Field(None, max_length=255)
    message_template: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    ab_variant: Optional[ABVariant] = None


class CampaignMessageUpdateRequest(BaseContract):
    """Partial message update"""
    channel: Optional[ChannelType] = None
    subject: Optional[str] = Field(None, max_length=255)
    message_template: Optional[str] = None
    variables: Optional[Dict[str, Any]] = None
    ab_variant: Optional[ABVariant] = None


class PromoCodeCreateRequest(BaseContract):
    """New promo code"""
    restaurant_id: str = Field(..., min_length=1)
    campaign_id: Optional[str] = None
    code: str = Field(..., min_length=1, max_length=64)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    min_spend: Decimal = Field(default=Decimal("0"), ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    max_uses_per_customer: int = Field(default=1, ge=1)
    order_type: PromoOrderType = PromoOrderType.ALL
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True

    @model_validator(mode="after")
    def validate_promo(self):
        if self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discounts cannot exceed 100")
        return self


class CustomerTagCreateRequest(BaseContract):
    """New customer tag"""
    restaurant_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(default="#6B7280", pattern=r"^#[0-9A-Fa-f]{6}$")


class CustomerConsentUpdateRequest(BaseContract):
    """Partial consent patch, merged onto the (customer, restaurant) row"""
    push_notifications: Optional[bool] = None
    whatsapp: Optional[bool] = None
    email: Optional[bool] = None
    sms: Optional[bool] = None
    consent_date: Optional[datetime] = None


__all__ = [
    # Enums
    "CampaignType",
    "CampaignStatus",
    "ChannelType",
    "AudienceType",
    "ABVariant",
    "DiscountType",
    "PromoOrderType",
    "AuditAction",
    "RecurringFrequency",
    "WinnerMetric",
    # Typed configuration
    "AllAudienceFilter",
    "TaggedAudienceFilter",
    "CustomAudienceFilter",
    "LocationRadiusAudienceFilter",
    "LastOrderDateAudienceFilter",
    "WalletStatusAudienceFilter",
    "AUDIENCE_FILTER_MODELS",
    "parse_audience_filter",
    "RecurringConfig",
    "ABTestConfig",
    # Rows
    "Campaign",
    "CampaignMessage",
    "PromoCode",
    "CampaignMetrics",
    "CustomerTag",
    "CustomerTagAssignment",
    "CustomerConsent",
    "CampaignAuditLogEntry",
    # Preview
    "RenderedCampaignMessage",
    "CampaignPreview",
    # Requests
    "CampaignCreateRequest",
    "CampaignUpdateRequest",
    "CampaignMessageCreateRequest",
    "CampaignMessageUpdateRequest",
    "PromoCodeCreateRequest",
    "CustomerTagCreateRequest",
    "CustomerConsentUpdateRequest",
]

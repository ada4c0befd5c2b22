"""
Campaign Service Business Logic

Administration facade over campaigns, message templates, promo codes,
customer tags, consent and the campaign audit trail. Data lives in the
data store; audience sizing, promo code logic and metrics rollups are
delegated to remote procedures.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import TypeAdapter, ValidationError

from core.config import CampaignConfig

from .models import (
    Campaign,
    CampaignMessage,
    PromoCode,
    CampaignMetrics,
    CustomerTag,
    CustomerConsent,
    CampaignAuditLogEntry,
    RenderedCampaignMessage,
    CampaignPreview,
    CampaignCreateRequest,
    CampaignUpdateRequest,
    CampaignMessageCreateRequest,
    CampaignMessageUpdateRequest,
    PromoCodeCreateRequest,
    CustomerTagCreateRequest,
    CustomerConsentUpdateRequest,
    CampaignStatus,
    AudienceType,
    AuditAction,
    ABTestConfig,
    RecurringConfig,
    parse_audience_filter,
)
from .protocols import (
    DataStoreProtocol,
    CampaignProceduresProtocol,
    StorageError,
    CampaignNotFoundError,
    CustomerNotFoundError,
    InvalidCampaignStateError,
    CampaignValidationError,
    AuditLogError,
)

logger = logging.getLogger(__name__)

_DATETIME_ADAPTER = TypeAdapter(datetime)


PREVIEW_PLACEHOLDERS = ("customer_name", "restaurant_name", "promo_code")
PLACEHOLDER_PATTERN = re.compile(
    r"\{\{(" + "|".join(PREVIEW_PLACEHOLDERS) + r")\}\}"
)


def substitute_placeholders(template: str, values: Dict[str, str]) -> str:
    """Replace known {{token}} placeholders in a single pass.

    Substituted values are not scanned again and unknown tokens are kept.
    """
    if not template:
        return template

    def replace_token(match):
        return values.get(match.group(1), match.group(0))

    return PLACEHOLDER_PATTERN.sub(replace_token, template)


def customer_display_name(customer: Dict[str, Any]) -> str:
    parts = (customer.get("first_name"), customer.get("last_name"))
    return " ".join(str(part) for part in parts if part)


class CampaignService:
    """Campaign service business logic layer"""

    # Lifecycle table. sending/sent are driven by the external sender.
    VALID_TRANSITIONS = {
        CampaignStatus.DRAFT: [CampaignStatus.SCHEDULED, CampaignStatus.CANCELLED],
        CampaignStatus.SCHEDULED: [
            CampaignStatus.SCHEDULED,
            CampaignStatus.SENDING,
            CampaignStatus.PAUSED,
            CampaignStatus.CANCELLED,
        ],
        CampaignStatus.SENDING: [CampaignStatus.SENT, CampaignStatus.PAUSED, CampaignStatus.CANCELLED],
        CampaignStatus.PAUSED: [CampaignStatus.SCHEDULED, CampaignStatus.CANCELLED],
        CampaignStatus.SENT: [],  # Terminal state
        CampaignStatus.CANCELLED: [],  # Terminal state
    }

    # resume shares its target with schedule but only leaves a paused campaign
    RESUMABLE_STATUSES = (CampaignStatus.PAUSED,)

    def __init__(
        self,
        data_store: DataStoreProtocol,
        procedures: CampaignProceduresProtocol,
        config: Optional[CampaignConfig] = None,
    ):
        self.data_store = data_store
        self.procedures = procedures
        self.config = config or CampaignConfig()

    # ====================
    # Campaign CRUD
    # ====================

    async def list_campaigns(self, restaurant_id: str) -> List[Campaign]:
        """Campaigns of a restaurant, most recently created first"""
        rows = await self.data_store.select(
            "campaigns",
            {"restaurant_id": restaurant_id},
            order_by="created_at",
            descending=True,
        )
        return [Campaign.model_validate(row) for row in rows]

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get campaign by ID, None when absent"""
        row = await self.data_store.select_one("campaigns", {"id": campaign_id})
        return Campaign.model_validate(row) if row else None

    async def create_campaign(
        self,
        request: CampaignCreateRequest,
        performed_by: Optional[str] = None,
    ) -> Campaign:
        """
        Create a new campaign

        Stamps created_by with the acting user. An unresolvable identity
        leaves created_by unset and the audit entry unattributed.
        """
        self._validate_campaign_config(
            request.audience_type,
            request.audience_filter,
            request.recurring_config,
            request.ab_test_config,
        )

        actor = await self._resolve_actor(performed_by)

        row = request.model_dump(mode="json", exclude_none=True)
        if actor is not None:
            row["created_by"] = actor

        campaign = Campaign.model_validate(await self.data_store.insert("campaigns", row))

        await self._log_audit_action(campaign.id, AuditAction.CREATED, actor, {})

        logger.info(f"Campaign created: {campaign.id} for restaurant {campaign.restaurant_id}")
        return campaign

    async def update_campaign(
        self,
        campaign_id: str,
        request: CampaignUpdateRequest,
        performed_by: Optional[str] = None,
    ) -> Campaign:
        """
        Apply a partial update

        The audit entry records the patch exactly as written, not a diff
        against the previous values.
        """
        patch = request.model_dump(mode="json", exclude_unset=True)

        if not patch:
            campaign = await self.get_campaign(campaign_id)
            if not campaign:
                raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
            return campaign

        if "audience_type" in patch or "audience_filter" in patch:
            # Validate the pair the row will hold after the write
            current = await self.get_campaign(campaign_id)
            if not current:
                raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
            self._validate_audience_filter(
                patch.get("audience_type") or current.audience_type,
                patch["audience_filter"] if "audience_filter" in patch else current.audience_filter,
            )
        self._validate_campaign_config(
            None,
            None,
            patch.get("recurring_config"),
            patch.get("ab_test_config"),
        )

        actor = await self._resolve_actor(performed_by)

        row = await self.data_store.update("campaigns", {"id": campaign_id}, patch)
        campaign = Campaign.model_validate(row)

        await self._log_audit_action(campaign_id, AuditAction.EDITED, actor, patch)

        logger.info(f"Campaign updated: {campaign_id} ({', '.join(patch)})")
        return campaign

    async def delete_campaign(self, campaign_id: str) -> None:
        """Hard delete, no audit entry is written"""
        await self.data_store.delete("campaigns", {"id": campaign_id})
        logger.info(f"Campaign deleted: {campaign_id}")

    # ====================
    # Audience
    # ====================

    async def calculate_audience_size(
        self,
        restaurant_id: str,
        audience_type: Union[AudienceType, str],
        audience_filter: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Advisory audience count from the audience procedure, 0 when empty"""
        audience_type = self._validate_audience_filter(audience_type, audience_filter or {})

        size = await self.procedures.resolve_audience_size(
            restaurant_id, audience_type.value, audience_filter or {}
        )
        return int(size or 0)

    # ====================
    # Messages
    # ====================

    async def get_campaign_messages(self, campaign_id: str) -> List[CampaignMessage]:
        """Message templates of a campaign, oldest first"""
        rows = await self.data_store.select(
            "campaign_messages",
            {"campaign_id": campaign_id},
            order_by="created_at",
        )
        return [CampaignMessage.model_validate(row) for row in rows]

    async def create_campaign_message(
        self, request: CampaignMessageCreateRequest
    ) -> CampaignMessage:
        row = await self.data_store.insert(
            "campaign_messages", request.model_dump(mode="json", exclude_none=True)
        )
        return CampaignMessage.model_validate(row)

    async def update_campaign_message(
        self, message_id: str, request: CampaignMessageUpdateRequest
    ) -> CampaignMessage:
        row = await self.data_store.update(
            "campaign_messages",
            {"id": message_id},
            request.model_dump(mode="json", exclude_unset=True),
        )
        return CampaignMessage.model_validate(row)

    # ====================
    # Promo Codes
    # ====================

    async def generate_promo_code(self, restaurant_id: str, prefix: Optional[str] = None) -> str:
        """Ask the generator procedure for a fresh code, returned unaltered"""
        code = await self.procedures.generate_code(
            restaurant_id, prefix or self.config.default_promo_prefix
        )
        if code is None:
            raise StorageError(f"Promo code generation returned no code for restaurant {restaurant_id}")
        return code

    async def create_promo_code(self, request: PromoCodeCreateRequest) -> PromoCode:
        row = await self.data_store.insert(
            "promo_codes", request.model_dump(mode="json", exclude_none=True)
        )
        promo_code = PromoCode.model_validate(row)
        logger.info(f"Promo code created: {promo_code.code} ({promo_code.id})")
        return promo_code

    async def get_promo_codes(self, restaurant_id: str) -> List[PromoCode]:
        """Promo codes of a restaurant, newest first"""
        rows = await self.data_store.select(
            "promo_codes",
            {"restaurant_id": restaurant_id},
            order_by="created_at",
            descending=True,
        )
        return [PromoCode.model_validate(row) for row in rows]

    async def validate_promo_code(
        self,
        restaurant_id: str,
        customer_id: str,
        code: str,
        order_amount: Union[Decimal, float],
    ) -> Any:
        """Read-only check, the result payload is defined by the procedure"""
        return await self.procedures.validate_code(restaurant_id, customer_id, code, order_amount)

    async def redeem_promo_code(
        self,
        promo_code_id: str,
        customer_id: str,
        restaurant_id: str,
        order_amount: Union[Decimal, float],
        discount_applied: Union[Decimal, float],
    ) -> str:
        """Record a redemption, usage caps are enforced by the procedure"""
        redemption_id = await self.procedures.redeem(
            promo_code_id, customer_id, restaurant_id, order_amount, discount_applied
        )
        logger.info(f"Promo code {promo_code_id} redeemed by customer {customer_id}: {redemption_id}")
        return redemption_id

    # ====================
    # Metrics
    # ====================

    async def get_campaign_metrics(self, campaign_id: str) -> Optional[CampaignMetrics]:
        """Current metrics row, None until the rollup has created it"""
        row = await self.data_store.select_one("campaign_metrics", {"campaign_id": campaign_id})
        return CampaignMetrics.model_validate(row) if row else None

    async def update_campaign_metrics(self, campaign_id: str) -> None:
        """Trigger a full recomputation, re-fetch to observe the result"""
        await self.procedures.recompute_metrics(campaign_id)

    # ====================
    # Customer Tags
    # ====================

    async def get_all_tags(self, restaurant_id: str) -> List[CustomerTag]:
        """Tags of a restaurant in alphabetical order"""
        rows = await self.data_store.select(
            "customer_tags",
            {"restaurant_id": restaurant_id},
            order_by="name",
        )
        return [CustomerTag.model_validate(row) for row in rows]

    async def create_customer_tag(self, request: CustomerTagCreateRequest) -> CustomerTag:
        row = await self.data_store.insert("customer_tags", request.model_dump(mode="json"))
        return CustomerTag.model_validate(row)

    async def assign_tag_to_customer(self, customer_id: str, tag_id: str) -> None:
        """Duplicate assignments are governed by the store's constraints"""
        await self.data_store.insert(
            "customer_tag_assignments",
            {"customer_id": customer_id, "tag_id": tag_id},
        )

    async def remove_tag_from_customer(self, customer_id: str, tag_id: str) -> None:
        await self.data_store.delete(
            "customer_tag_assignments",
            {"customer_id": customer_id, "tag_id": tag_id},
        )

    async def get_customer_tags(self, customer_id: str) -> List[CustomerTag]:
        """Tags of a customer, joined through the assignment table"""
        rows = await self.data_store.select(
            "customer_tag_assignments",
            {"customer_id": customer_id},
            columns="customer_tags(*)",
        )
        # Assignments whose tag no longer exists come back with a null tag
        return [
            CustomerTag.model_validate(row["customer_tags"])
            for row in rows
            if row.get("customer_tags")
        ]

    # ====================
    # Consent
    # ====================

    async def get_customer_consent(
        self, customer_id: str, restaurant_id: str
    ) -> Optional[CustomerConsent]:
        row = await self.data_store.select_one(
            "customer_consent",
            {"customer_id": customer_id, "restaurant_id": restaurant_id},
        )
        return CustomerConsent.model_validate(row) if row else None

    async def update_customer_consent(
        self,
        customer_id: str,
        restaurant_id: str,
        request: CustomerConsentUpdateRequest,
    ) -> CustomerConsent:
        """Merge a consent patch onto the (customer, restaurant) row, creating it if absent"""
        row = {
            "customer_id": customer_id,
            "restaurant_id": restaurant_id,
            **request.model_dump(mode="json", exclude_unset=True),
        }
        stored = await self.data_store.upsert(
            "customer_consent", row, on_conflict="customer_id,restaurant_id"
        )
        return CustomerConsent.model_validate(stored)

    # ====================
    # Campaign Lifecycle
    # ====================

    async def schedule_campaign(
        self,
        campaign_id: str,
        scheduled_at: Union[datetime, str],
        performed_by: Optional[str] = None,
    ) -> Campaign:
        """Set status to scheduled with a send time"""
        scheduled_at_iso = self._normalize_timestamp(scheduled_at, "scheduled_at")
        return await self._apply_lifecycle_action(
            campaign_id,
            CampaignStatus.SCHEDULED,
            AuditAction.SCHEDULED,
            performed_by,
            fields={"scheduled_at": scheduled_at_iso},
            changes={"scheduled_at": scheduled_at_iso},
        )

    async def cancel_campaign(
        self, campaign_id: str, performed_by: Optional[str] = None
    ) -> Campaign:
        return await self._apply_lifecycle_action(
            campaign_id, CampaignStatus.CANCELLED, AuditAction.CANCELLED, performed_by
        )

    async def pause_campaign(
        self, campaign_id: str, performed_by: Optional[str] = None
    ) -> Campaign:
        return await self._apply_lifecycle_action(
            campaign_id, CampaignStatus.PAUSED, AuditAction.PAUSED, performed_by
        )

    async def resume_campaign(
        self, campaign_id: str, performed_by: Optional[str] = None
    ) -> Campaign:
        """
        Resume a campaign

        Sets status to scheduled. Without transition enforcement this happens
        regardless of the current status.
        """
        return await self._apply_lifecycle_action(
            campaign_id, CampaignStatus.SCHEDULED, AuditAction.RESUMED, performed_by
        )

    @classmethod
    def can_transition(cls, current: CampaignStatus, target: CampaignStatus) -> bool:
        """Check if transition is allowed by the lifecycle table"""
        return target in cls.VALID_TRANSITIONS.get(current, [])

    async def _apply_lifecycle_action(
        self,
        campaign_id: str,
        target: CampaignStatus,
        action: AuditAction,
        performed_by: Optional[str],
        fields: Optional[Dict[str, Any]] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> Campaign:
        if self.config.enforce_transitions:
            await self._check_transition(campaign_id, target, action)

        actor = await self._resolve_actor(performed_by)

        patch = {"status": target.value, **(fields or {})}
        row = await self.data_store.update("campaigns", {"id": campaign_id}, patch)
        campaign = Campaign.model_validate(row)

        await self._log_audit_action(campaign_id, action, actor, changes or {})

        logger.info(f"Campaign {action.value}: {campaign_id} -> {target.value}")
        return campaign

    async def _check_transition(
        self, campaign_id: str, target: CampaignStatus, action: AuditAction
    ) -> None:
        campaign = await self.get_campaign(campaign_id)
        if not campaign:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")

        current = campaign.status
        allowed = self.can_transition(current, target)
        if action == AuditAction.RESUMED and current not in self.RESUMABLE_STATUSES:
            allowed = False

        if not allowed:
            raise InvalidCampaignStateError(
                f"Campaign {campaign_id} cannot be {action.value} while {current.value}",
                current_status=current,
                target_status=target,
            )

    # ====================
    # Audit Log
    # ====================

    async def get_campaign_audit_log(self, campaign_id: str) -> List[CampaignAuditLogEntry]:
        """Full audit history of a campaign, newest first"""
        rows = await self.data_store.select(
            "campaign_audit_log",
            {"campaign_id": campaign_id},
            order_by="timestamp",
            descending=True,
        )
        return [CampaignAuditLogEntry.model_validate(row) for row in rows]

    async def _log_audit_action(
        self,
        campaign_id: str,
        action: AuditAction,
        performed_by: Optional[str],
        changes: Dict[str, Any],
    ) -> None:
        """Append an audit entry after a committed write.

        Failures are logged and dropped unless strict audit mode is on.
        """
        try:
            await self.data_store.insert("campaign_audit_log", {
                "campaign_id": campaign_id,
                "action": action.value,
                "performed_by": performed_by,
                "changes": changes,
            })
        except Exception as e:
            if self.config.audit_strict:
                raise AuditLogError(
                    f"Failed to write audit entry '{action.value}' for campaign {campaign_id}: {e}",
                    campaign_id=campaign_id,
                    action=action.value,
                ) from e
            logger.error(f"Failed to write audit entry '{action.value}' for campaign {campaign_id}: {e}")

    # ====================
    # Preview
    # ====================

    async def preview_campaign(
        self,
        campaign_id: str,
        customer_id: str,
        performed_by: Optional[str] = None,
    ) -> CampaignPreview:
        """
        Render every message of a campaign for one customer

        Substitutes {{customer_name}}, {{restaurant_name}} and {{promo_code}}
        on copies of the templates; stored templates are left untouched.
        """
        campaign = await self.get_campaign(campaign_id)
        messages = await self.get_campaign_messages(campaign_id)

        if not campaign or not messages:
            raise CampaignNotFoundError(f"Campaign or messages not found: {campaign_id}")

        customer = await self.data_store.select_one("customers", {"id": customer_id})
        if not customer:
            raise CustomerNotFoundError(f"Customer not found: {customer_id}")

        restaurant = None
        try:
            restaurant = await self.data_store.select_one(
                "restaurants", {"id": campaign.restaurant_id}
            )
        except StorageError as e:
            logger.warning(f"Restaurant lookup failed for preview of {campaign_id}: {e}")

        values = {
            "customer_name": customer_display_name(customer),
            "restaurant_name": (restaurant or {}).get("name") or "",
            "promo_code": self.config.preview_promo_code,
        }

        rendered = [
            RenderedCampaignMessage(
                **message.model_dump(),
                rendered_message=substitute_placeholders(message.message_template, values),
            )
            for message in messages
        ]

        actor = await self._resolve_actor(performed_by)
        await self._log_audit_action(
            campaign_id, AuditAction.PREVIEW, actor, {"customer_id": customer_id}
        )

        return CampaignPreview(campaign=campaign, messages=rendered, customer=customer)

    # ====================
    # Validation Helpers
    # ====================

    def _validate_campaign_config(
        self,
        audience_type: Optional[Union[AudienceType, str]],
        audience_filter: Optional[Dict[str, Any]],
        recurring_config: Optional[Dict[str, Any]],
        ab_test_config: Optional[Dict[str, Any]],
    ) -> None:
        """Check typed shapes of the configuration maps"""
        if audience_type is not None:
            self._validate_audience_filter(audience_type, audience_filter or {})

        if recurring_config is not None:
            try:
                RecurringConfig.model_validate(recurring_config)
            except ValidationError as e:
                raise CampaignValidationError(f"Invalid recurring_config: {e}", "recurring_config") from e

        if ab_test_config is not None:
            try:
                ABTestConfig.model_validate(ab_test_config)
            except ValidationError as e:
                raise CampaignValidationError(f"Invalid ab_test_config: {e}", "ab_test_config") from e

    def _validate_audience_filter(
        self,
        audience_type: Union[AudienceType, str],
        audience_filter: Dict[str, Any],
    ) -> AudienceType:
        try:
            audience_type = AudienceType(audience_type)
        except ValueError as e:
            raise CampaignValidationError(f"Unknown audience type: {audience_type}", "audience_type") from e

        try:
            parse_audience_filter(audience_type, audience_filter)
        except ValidationError as e:
            raise CampaignValidationError(
                f"Invalid audience_filter for {audience_type.value}: {e}", "audience_filter"
            ) from e
        return audience_type

    @staticmethod
    def _normalize_timestamp(value: Union[datetime, str], field: str) -> str:
        if isinstance(value, datetime):
            return value.isoformat()
        if not isinstance(value, str):
            raise CampaignValidationError(f"{field} must be an ISO-8601 timestamp", field)
        try:
            _DATETIME_ADAPTER.validate_python(value)
        except ValidationError as e:
            raise CampaignValidationError(f"{field} must be an ISO-8601 timestamp", field) from e
        return value

    async def _resolve_actor(self, performed_by: Optional[str]) -> Optional[str]:
        """Explicit actor, else the session identity, else None"""
        if performed_by is not None:
            return performed_by
        try:
            return await self.data_store.get_current_user_id()
        except Exception as e:
            logger.warning(f"Could not resolve acting user: {e}")
            return None


__all__ = [
    "CampaignService",
    "substitute_placeholders",
    "customer_display_name",
    "PREVIEW_PLACEHOLDERS",
]

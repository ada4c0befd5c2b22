"""
Component Tests for Campaign Lifecycle

Tests schedule / pause / resume / cancel, the audit entries they write,
and the optional transition enforcement.
"""

import pytest
from datetime import datetime, timezone

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.campaign_service.protocols import (
    CampaignNotFoundError,
    CampaignValidationError,
    InvalidCampaignStateError,
    StorageError,
)
from tests.contracts.campaign.data_contract import CampaignStatus


SEND_TIME = datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)


class TestCampaignSchedule:
    """Tests for scheduling"""

    @pytest.mark.asyncio
    async def test_schedule_draft_campaign(self, campaign_service, data_store, seed_campaign):
        # Given: A draft campaign
        row = seed_campaign(CampaignStatus.DRAFT)

        # When: Scheduling it
        campaign = await campaign_service.schedule_campaign(row["id"], SEND_TIME, performed_by="usr_1")

        # Then: Status and send time are set and the change is audited
        assert campaign.status == CampaignStatus.SCHEDULED
        assert campaign.scheduled_at == SEND_TIME
        entry = data_store.rows("campaign_audit_log")[0]
        assert entry["action"] == "scheduled"
        assert entry["changes"] == {"scheduled_at": SEND_TIME.isoformat()}

    @pytest.mark.asyncio
    async def test_schedule_accepts_iso_string(self, campaign_service, seed_campaign):
        row = seed_campaign()

        campaign = await campaign_service.schedule_campaign(row["id"], "2024-06-01T18:00:00Z")

        assert campaign.scheduled_at == SEND_TIME

    @pytest.mark.asyncio
    async def test_schedule_accepts_fractional_seconds_with_offset(
        self, campaign_service, data_store, seed_campaign
    ):
        """Short fractions and numeric offsets parse on every supported interpreter"""
        row = seed_campaign()

        campaign = await campaign_service.schedule_campaign(row["id"], "2024-06-01T18:00:00.5+00:00")

        assert campaign.scheduled_at == SEND_TIME.replace(microsecond=500000)
        assert data_store.rows("campaigns")[0]["scheduled_at"] == "2024-06-01T18:00:00.5+00:00"

    @pytest.mark.asyncio
    async def test_schedule_rejects_non_string_timestamp(self, campaign_service, seed_campaign):
        row = seed_campaign()

        with pytest.raises(CampaignValidationError) as exc_info:
            await campaign_service.schedule_campaign(row["id"], 1717264800)

        assert exc_info.value.field == "scheduled_at"

    @pytest.mark.asyncio
    async def test_schedule_rejects_malformed_timestamp(self, campaign_service, data_store, seed_campaign):
        row = seed_campaign()

        with pytest.raises(CampaignValidationError) as exc_info:
            await campaign_service.schedule_campaign(row["id"], "next friday")

        assert exc_info.value.field == "scheduled_at"
        assert data_store.rows("campaigns")[0]["status"] == "draft"

    @pytest.mark.asyncio
    async def test_schedule_missing_campaign(self, campaign_service):
        with pytest.raises(StorageError):
            await campaign_service.schedule_campaign("cmp_missing", SEND_TIME)


class TestCampaignPauseResumeCancel:
    """Tests for the remaining lifecycle actions"""

    @pytest.mark.asyncio
    async def test_pause_scheduled_campaign(self, campaign_service, data_store, seed_campaign):
        row = seed_campaign(CampaignStatus.SCHEDULED)

        campaign = await campaign_service.pause_campaign(row["id"], performed_by="usr_1")

        assert campaign.status == CampaignStatus.PAUSED
        entry = data_store.rows("campaign_audit_log")[0]
        assert entry["action"] == "paused"
        assert entry["changes"] == {}

    @pytest.mark.asyncio
    async def test_resume_paused_campaign(self, campaign_service, data_store, seed_campaign):
        row = seed_campaign(CampaignStatus.PAUSED)

        campaign = await campaign_service.resume_campaign(row["id"])

        assert campaign.status == CampaignStatus.SCHEDULED
        assert data_store.rows("campaign_audit_log")[0]["action"] == "resumed"

    @pytest.mark.asyncio
    async def test_cancel_campaign(self, campaign_service, data_store, seed_campaign):
        row = seed_campaign(CampaignStatus.SCHEDULED)

        campaign = await campaign_service.cancel_campaign(row["id"])

        assert campaign.status == CampaignStatus.CANCELLED
        assert data_store.rows("campaign_audit_log")[0]["action"] == "cancelled"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [CampaignStatus.DRAFT, CampaignStatus.CANCELLED, CampaignStatus.SENT])
    async def test_resume_without_enforcement_always_schedules(
        self, campaign_service, seed_campaign, status
    ):
        """Permissive mode writes scheduled whatever the current status"""
        row = seed_campaign(status)

        campaign = await campaign_service.resume_campaign(row["id"])

        assert campaign.status == CampaignStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_lifecycle_history_newest_first(self, campaign_service, seed_campaign):
        row = seed_campaign()

        await campaign_service.schedule_campaign(row["id"], SEND_TIME)
        await campaign_service.pause_campaign(row["id"])
        await campaign_service.resume_campaign(row["id"])

        entries = await campaign_service.get_campaign_audit_log(row["id"])
        assert [e.action for e in entries] == ["resumed", "paused", "scheduled"]


class TestTransitionEnforcement:
    """Tests for lifecycle enforcement when it is switched on"""

    @pytest.mark.asyncio
    async def test_resume_draft_rejected(self, strict_service, data_store, seed_campaign):
        row = seed_campaign(CampaignStatus.DRAFT)

        with pytest.raises(InvalidCampaignStateError) as exc_info:
            await strict_service.resume_campaign(row["id"])

        assert exc_info.value.current_status == CampaignStatus.DRAFT
        assert exc_info.value.target_status == CampaignStatus.SCHEDULED
        assert data_store.rows("campaigns")[0]["status"] == "draft"
        assert data_store.rows("campaign_audit_log") == []

    @pytest.mark.asyncio
    async def test_resume_paused_allowed(self, strict_service, seed_campaign):
        row = seed_campaign(CampaignStatus.PAUSED)

        campaign = await strict_service.resume_campaign(row["id"])

        assert campaign.status == CampaignStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_reschedule_allowed(self, strict_service, seed_campaign):
        row = seed_campaign(CampaignStatus.SCHEDULED)

        campaign = await strict_service.schedule_campaign(row["id"], SEND_TIME)

        assert campaign.scheduled_at == SEND_TIME

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [CampaignStatus.SENT, CampaignStatus.CANCELLED])
    async def test_terminal_campaign_cannot_be_cancelled(self, strict_service, seed_campaign, status):
        row = seed_campaign(status)

        with pytest.raises(InvalidCampaignStateError):
            await strict_service.cancel_campaign(row["id"])

    @pytest.mark.asyncio
    async def test_pause_draft_rejected(self, strict_service, seed_campaign):
        row = seed_campaign(CampaignStatus.DRAFT)

        with pytest.raises(InvalidCampaignStateError):
            await strict_service.pause_campaign(row["id"])

    @pytest.mark.asyncio
    async def test_pause_sending_allowed(self, strict_service, seed_campaign):
        row = seed_campaign(CampaignStatus.SENDING)

        campaign = await strict_service.pause_campaign(row["id"])

        assert campaign.status == CampaignStatus.PAUSED

    @pytest.mark.asyncio
    async def test_missing_campaign(self, strict_service):
        with pytest.raises(CampaignNotFoundError):
            await strict_service.cancel_campaign("cmp_missing")

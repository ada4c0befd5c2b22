#!/usr/bin/env python3
"""Campaign service behaviour settings

Policy switches for the campaign administration layer.
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"


@dataclass
class CampaignConfig:
    """Campaign service policy settings"""

    # Reject illegal lifecycle transitions instead of writing them
    enforce_transitions: bool = False

    # Raise when the audit insert fails after a successful write
    audit_strict: bool = False

    # Stand-in value for {{promo_code}} in previews
    preview_promo_code: str = "PREVIEW-CODE"

    default_promo_prefix: str = "PROMO"

    @classmethod
    def from_env(cls) -> 'CampaignConfig':
        """Load campaign settings from environment variables"""
        return cls(
            enforce_transitions=_bool(os.getenv("CAMPAIGN_ENFORCE_TRANSITIONS", "false")),
            audit_strict=_bool(os.getenv("CAMPAIGN_AUDIT_STRICT", "false")),
            preview_promo_code=os.getenv("CAMPAIGN_PREVIEW_PROMO_CODE", "PREVIEW-CODE"),
            default_promo_prefix=os.getenv("CAMPAIGN_DEFAULT_PROMO_PREFIX", "PROMO"),
        )

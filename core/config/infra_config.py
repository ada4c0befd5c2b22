#!/usr/bin/env python3
"""Infrastructure configuration

Supabase project endpoint used for storage, auth and remote procedures.
"""
import os
from dataclasses import dataclass
from typing import Optional

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class InfraConfig:
    """Backend-as-a-service endpoints"""

    # ===========================================
    # Supabase (PostgREST + GoTrue)
    # ===========================================
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_schema: str = "public"
    postgrest_timeout: float = 10.0

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> 'InfraConfig':
        """Load infrastructure config from environment"""
        return cls(
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY"),
            supabase_schema=os.getenv("SUPABASE_SCHEMA", "public"),
            postgrest_timeout=_float(os.getenv("POSTGREST_TIMEOUT", "10"), 10.0),
        )

#!/usr/bin/env python3
"""
Core Module

Shared infrastructure for the campaign service.

COMPONENTS:
    - config/: Environment-driven settings (Supabase, campaign policy, logging)
    - database/: Async Supabase client lifecycle

USAGE:
    from core.config import get_settings
    from core.database import get_supabase_client

    settings = get_settings()
    client = await get_supabase_client(settings.infra)
"""

__version__ = "2.0.0"

"""
Supabase Client Wrapper

Centralized async Supabase client for storage, auth and remote procedures.

Usage:
    from core.database.supabase_client import get_supabase_client

    client = await get_supabase_client()
    result = await client.table("campaigns").select("*").execute()
"""

import logging
from typing import Optional

from supabase import AsyncClient, AsyncClientOptions, acreate_client

from core.config import InfraConfig, get_settings

logger = logging.getLogger(__name__)


# Singleton instance
_supabase_client: Optional[AsyncClient] = None


async def create_supabase_client(config: Optional[InfraConfig] = None) -> AsyncClient:
    """
    Create a new async Supabase client.

    Args:
        config: Infrastructure config (defaults to global settings)

    Returns:
        AsyncClient instance
    """
    config = config or get_settings().infra
    if not config.supabase_configured:
        raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set")

    options = AsyncClientOptions(
        schema=config.supabase_schema,
        postgrest_client_timeout=config.postgrest_timeout,
    )
    client = await acreate_client(config.supabase_url, config.supabase_key, options=options)

    logger.info(f"Supabase client initialized: {config.supabase_url} (schema={config.supabase_schema})")
    return client


async def get_supabase_client(config: Optional[InfraConfig] = None) -> AsyncClient:
    """Get or create the shared Supabase client"""
    global _supabase_client

    if _supabase_client is None:
        _supabase_client = await create_supabase_client(config)

    return _supabase_client


async def close_supabase_client() -> None:
    """Drop the shared client and sign out its session"""
    global _supabase_client

    if _supabase_client is not None:
        try:
            await _supabase_client.auth.sign_out()
        except Exception as e:
            logger.warning(f"Supabase sign-out failed: {e}")
        _supabase_client = None

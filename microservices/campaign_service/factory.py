"""
Campaign Service Factory

Factory for creating campaign service instances with proper dependency injection.
"""

import logging
from typing import Optional

from supabase import AsyncClient

from core.config import AppConfig, get_settings
from core.database.supabase_client import close_supabase_client, get_supabase_client

from .campaign_repository import CampaignRepository
from .campaign_service import CampaignService
from .procedures import CampaignProcedures

logger = logging.getLogger(__name__)


class CampaignServiceFactory:
    """Factory for creating campaign service components"""

    def __init__(self, config: Optional[AppConfig] = None, client: Optional[AsyncClient] = None):
        self.config = config or get_settings()
        self._client: Optional[AsyncClient] = client
        # Clients passed in belong to the caller and are left open on close
        self._owns_client = client is None
        self._repository: Optional[CampaignRepository] = None
        self._procedures: Optional[CampaignProcedures] = None
        self._service: Optional[CampaignService] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Campaign Service components...")

        if self._client is None:
            self._client = await get_supabase_client(self.config.infra)

        # Repository doubles as the remote procedure invoker
        self._repository = CampaignRepository(self._client)
        await self._repository.initialize()

        self._procedures = CampaignProcedures(self._repository)

        self._service = CampaignService(
            data_store=self._repository,
            procedures=self._procedures,
            config=self.config.campaign,
        )

        logger.info("Campaign Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Campaign Service components...")

        if self._repository:
            await self._repository.close()

        if self._owns_client and self._client is not None:
            await close_supabase_client()
            self._client = None

        self._service = None
        self._procedures = None
        self._repository = None

        logger.info("Campaign Service components closed")

    @property
    def client(self) -> AsyncClient:
        """Get Supabase client"""
        if not self._client:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._client

    @property
    def repository(self) -> CampaignRepository:
        """Get campaign repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def procedures(self) -> CampaignProcedures:
        """Get remote procedure wrapper"""
        if not self._procedures:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._procedures

    @property
    def service(self) -> CampaignService:
        """Get campaign service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service


# Global factory instance
_factory: Optional[CampaignServiceFactory] = None


async def get_factory() -> CampaignServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = CampaignServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "CampaignServiceFactory",
    "get_factory",
    "close_factory",
]

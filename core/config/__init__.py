#!/usr/bin/env python3
"""Modular configuration system for the campaign service

Configuration hierarchy:
- infra_config: Supabase project (storage, auth, remote procedures)
- service_config: Campaign administration policy switches
- logging_config: Logging configuration
"""
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .infra_config import InfraConfig
from .logging_config import LoggingConfig, configure_logging
from .service_config import CampaignConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)


@dataclass
class AppConfig:
    """Aggregated settings"""
    infra: InfraConfig = field(default_factory=InfraConfig)
    campaign: CampaignConfig = field(default_factory=CampaignConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> 'AppConfig':
        return cls(
            infra=InfraConfig.from_env(),
            campaign=CampaignConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )


# Create global settings instance
settings = AppConfig.from_env()

def get_settings() -> AppConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> AppConfig:
    """Reload settings from environment"""
    global settings
    settings = AppConfig.from_env()
    return settings

__all__ = [
    'AppConfig',
    'get_settings',
    'reload_settings',
    'settings',
    'InfraConfig',
    'CampaignConfig',
    'LoggingConfig',
    'configure_logging',
]

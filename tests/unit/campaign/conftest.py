"""
Unit Test Fixtures for Campaign Service

Pure model, rendering and configuration tests, no I/O.
"""

import pytest

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.campaign.data_contract import CampaignTestDataFactory


@pytest.fixture
def factory():
    """Provide CampaignTestDataFactory"""
    return CampaignTestDataFactory

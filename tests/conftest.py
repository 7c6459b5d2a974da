"""
Shared fixtures for the Marketo client test suite.
"""

import os
import time
from unittest.mock import MagicMock

import pytest

from marketo_client import AccessToken, MarketoClient, MarketoConfig


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def config():
    return MarketoConfig(
        munchkin_id="abc",
        client_id="test-client-id",
        client_secret="test-client-secret",
        pagination_delay=0,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all MARKETO_* env vars to ensure clean state."""
    for key in list(os.environ.keys()):
        if key.startswith("MARKETO_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Clients
# =============================================================================


@pytest.fixture
def token_provider():
    """Token provider stub that always hands out a valid token."""
    provider = MagicMock()
    provider.get_token.return_value = AccessToken(token="test-token", expires_at=time.time() + 3600)
    return provider


@pytest.fixture
def client(config, token_provider):
    return MarketoClient(config, token_provider=token_provider)


@pytest.fixture
def bulk_client(token_provider):
    config = MarketoConfig(
        munchkin_id="abc",
        client_id="test-client-id",
        client_secret="test-client-secret",
        bulk=True,
    )
    return MarketoClient(config, token_provider=token_provider)


# =============================================================================
# Sample Data
# =============================================================================


@pytest.fixture
def sample_leads():
    return [
        {"email": "jane@example.com", "firstName": "Jane"},
        {"email": "john@example.com", "firstName": "John"},
    ]

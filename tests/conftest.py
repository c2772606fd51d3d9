"""Shared fixtures for the sf-records test suite."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from sf_records.config import Config, ObjectCatalog, Settings
from sf_records.models.auth import Token


@pytest.fixture
def fake_settings() -> Settings:
    return Settings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        token_url="https://login.example.com/services/oauth2/token",
        api_version="v59.0",
        request_timeout=10.0,
    )


@pytest.fixture
def password_settings(fake_settings) -> Settings:
    return fake_settings.model_copy(update={"username": "user@example.com", "password": "pw+sectoken"})


@pytest.fixture
def fake_config(fake_settings) -> Config:
    return Config(
        settings=fake_settings,
        objects=ObjectCatalog(
            aliases={"estimate": "Estimate__c"},
            prefixes={"a0X": "Estimate__c"},
        ),
    )


@pytest.fixture
def make_token():
    """Factory for cached tokens."""
    def _make(access_token="tok-abc", issued_at=1_000_000.0, expires_in=3600,
              instance_url="https://acme.my.salesforce.com"):
        return Token(
            access_token=access_token,
            instance_url=instance_url,
            expires_in=expires_in,
            issued_at=issued_at,
        )
    return _make


@pytest.fixture
def mock_client():
    """MagicMock standing in for SalesforceClient."""
    client = MagicMock()
    client.get = MagicMock()
    client.post = MagicMock()
    client.patch = MagicMock()
    client.close = MagicMock()
    return client

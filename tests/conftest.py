"""Shared fixtures: a tmp_path-backed store and fixed-clock settings."""

from unittest.mock import MagicMock

import pytest

from drive_bridge.config import Settings
from drive_bridge.store import CredentialStore, TokenSet

NOW = 1_700_000_000.0


@pytest.fixture
def settings(tmp_path):
    return Settings(
        base_url="https://app.example.com",
        options_file=tmp_path / "options.json",
        http_timeout=5.0,
        admin_token="admin-secret",
    )


@pytest.fixture
def store(settings):
    return CredentialStore(settings.options_file)


@pytest.fixture
def configured_store(store):
    store.save_credentials("test-client-id.apps.googleusercontent.com", "test-client-secret")
    return store


@pytest.fixture
def valid_token():
    return TokenSet(
        access_token="test-access-token",
        refresh_token="test-refresh-token",
        expires_at=NOW + 600,
    )


@pytest.fixture
def expired_token():
    return TokenSet(
        access_token="stale-access-token",
        refresh_token="test-refresh-token",
        expires_at=NOW - 1,
    )


@pytest.fixture
def session():
    """Stand-in for an Authlib OAuth2Session."""
    return MagicMock()


@pytest.fixture
def session_factory(session):
    return MagicMock(return_value=session)


@pytest.fixture
def now():
    return NOW

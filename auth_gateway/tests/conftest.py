"""
Shared fixtures for the authentication gateway tests.

The OIDC provider is replaced by an httpx.MockTransport and the native
identity service by an in-memory verifier, so no network is needed.
"""

import pytest
from fastapi.testclient import TestClient

from auth_gateway.config import Settings
from auth_gateway.main import create_app

from .helpers import (
    TEST_AUTHORIZATION_ENDPOINT,
    TEST_CLIENT_ID,
    TEST_ISSUER,
    TEST_REDIRECT_URI,
    TEST_TOKEN_ENDPOINT,
    FakeNativeVerifier,
    FakeProvider,
)


@pytest.fixture
def test_settings() -> Settings:
    """Settings for a gateway talking to the fake provider."""
    return Settings(
        OIDC_CLIENT_ID=TEST_CLIENT_ID,
        OIDC_REDIRECT_URI=TEST_REDIRECT_URI,
        OIDC_ISSUER=TEST_ISSUER,
        OIDC_AUTHORIZATION_ENDPOINT=TEST_AUTHORIZATION_ENDPOINT,
        OIDC_TOKEN_ENDPOINT=TEST_TOKEN_ENDPOINT,
        NATIVE_ZONE="tempZone",
        SESSION_TIMEOUT_SECONDS=3600,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def trust(test_settings):
    return test_settings.trust_configuration()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def native_verifier() -> FakeNativeVerifier:
    return FakeNativeVerifier({"alice": "secret"})


@pytest.fixture
def client(test_settings, fake_provider, native_verifier):
    """Test client with the lifespan running (stash, orchestrator, sweeper)."""
    app = create_app(
        settings=test_settings,
        token_transport=fake_provider.transport,
        native_verifier=native_verifier,
    )
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client

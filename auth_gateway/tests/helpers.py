"""
Test helpers: ID token minting, a fake OIDC token endpoint and a fake
native identity service.
"""

import base64
import json
import time
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl

import httpx
import jwt

from auth_gateway.auth.native import NativeCredentialVerifier


TEST_ISSUER = "https://idp.example.org/realms/test"
TEST_CLIENT_ID = "test-client-id"
TEST_REDIRECT_URI = "http://localhost:8080/authenticate"
TEST_TOKEN_ENDPOINT = "https://idp.example.org/realms/test/protocol/openid-connect/token"
TEST_AUTHORIZATION_ENDPOINT = "https://idp.example.org/realms/test/protocol/openid-connect/auth"
TEST_SIGNING_SECRET = "test-signing-secret-that-is-long-enough-for-hs256"


def create_id_token(
    irods_username: Optional[str] = "alice",
    exp_delta_seconds: int = 300,
    headers: Optional[Dict[str, Any]] = None,
    **overrides: Any,
) -> str:
    """
    Create an ID token with sensible default claims.

    Args:
        irods_username: Application username claim (None to omit it)
        exp_delta_seconds: Expiry relative to now
        headers: Extra JWT header fields
        **overrides: Claims to replace; a value of None removes the claim

    Returns:
        Encoded JWT string
    """
    now = int(time.time())
    payload: Dict[str, Any] = {
        "iss": TEST_ISSUER,
        "sub": "user-sub-123",
        "aud": TEST_CLIENT_ID,
        "exp": now + exp_delta_seconds,
        "iat": now,
        "preferred_username": "alice@example.org",
    }
    if irods_username is not None:
        payload["irods_username"] = irods_username

    for name, value in overrides.items():
        if value is None:
            payload.pop(name, None)
        else:
            payload[name] = value

    return jwt.encode(payload, TEST_SIGNING_SECRET, algorithm="HS256", headers=headers)


def basic_header(username: str, password: str, scheme: str = "Basic") -> Dict[str, str]:
    encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"{scheme} {encoded}"}


class FakeProvider:
    """
    Stands in for the OIDC provider's token endpoint.

    Set `response_json` (or `response_body`) before a request; every request
    is recorded in `requests` with its decoded form body.
    """

    def __init__(self):
        self.response_json: Any = {"id_token": create_id_token()}
        self.response_body: Optional[bytes] = None
        self.status_code = 200
        self.requests: List[httpx.Request] = []
        self.forms: List[Dict[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.forms.append(dict(parse_qsl(request.content.decode("ascii"))))

        if self.response_body is not None:
            return httpx.Response(self.status_code, content=self.response_body)
        return httpx.Response(self.status_code, content=json.dumps(self.response_json).encode())

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeNativeVerifier(NativeCredentialVerifier):
    """Accepts exactly the configured username/password pairs."""

    def __init__(self, accounts: Optional[Dict[str, str]] = None):
        self.accounts = accounts or {}
        self.calls: List[tuple] = []

    async def verify(self, username: str, zone: str, password: str) -> bool:
        self.calls.append((username, zone, password))
        return self.accounts.get(username) == password

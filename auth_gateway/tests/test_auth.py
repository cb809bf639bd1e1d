"""
Authentication Endpoint Tests

Tests the /authenticate endpoint end to end: Basic authentication against
the native identity service, the resource owner password grant, the
Authorization Code flow (redirect and callback) and the /session endpoints.
"""

from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi import status

from .helpers import (
    TEST_AUTHORIZATION_ENDPOINT,
    TEST_CLIENT_ID,
    TEST_REDIRECT_URI,
    basic_header,
    create_id_token,
)


def start_code_flow(client) -> str:
    """Begin a code flow and return the state the gateway generated."""
    response = client.get("/authenticate")
    assert response.status_code == status.HTTP_302_FOUND
    query = parse_qs(urlsplit(response.headers["location"]).query)
    return query["state"][0]


def session_info(client, token: str):
    return client.get("/session", headers={"Authorization": f"Bearer {token}"})


# =============================================================================
# Basic Authentication
# =============================================================================

class TestBasicAuthentication:
    """Basic credentials are checked by the native identity service"""

    def test_valid_credentials_issue_token(self, client, native_verifier):
        response = client.post("/authenticate", headers=basic_header("alice", "secret"))

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/plain")
        token = response.text
        assert len(token) >= 32

        info = session_info(client, token)
        assert info.status_code == status.HTTP_200_OK
        assert info.json()["username"] == "alice"
        assert info.json()["auth_scheme"] == "basic"

        assert native_verifier.calls == [("alice", "tempZone", "secret")]

    def test_wrong_password_is_unauthorized(self, client):
        response = client.post("/authenticate", headers=basic_header("alice", "wrong"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert len(client.app.state.stash) == 0

    def test_password_may_contain_colons(self, client, native_verifier):
        native_verifier.accounts["bob"] = "pa:ss:word"

        response = client.post("/authenticate", headers=basic_header("bob", "pa:ss:word"))

        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.parametrize("username,password", [("", "secret"), ("alice", "")])
    def test_empty_credential_halves_are_rejected(self, client, native_verifier, username, password):
        response = client.post("/authenticate", headers=basic_header(username, password))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert native_verifier.calls == []

    def test_undecodable_credentials_are_rejected(self, client):
        response = client.post("/authenticate", headers={"Authorization": "Basic !!not-base64!!"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_native_service_failure_is_unauthorized(self, client, native_verifier):
        from auth_gateway.auth.errors import NativeServiceError

        async def broken(username, zone, password):
            raise NativeServiceError("connection refused")

        native_verifier.verify = broken

        response = client.post("/authenticate", headers=basic_header("alice", "secret"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert len(client.app.state.stash) == 0


# =============================================================================
# Request Classification
# =============================================================================

class TestUnrecognizedRequests:

    def test_post_without_authorization_is_bad_request(self, client):
        response = client.post("/authenticate")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_post_with_unknown_scheme_is_bad_request(self, client):
        response = client.post("/authenticate", headers={"Authorization": "Bearer abc"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH"])
    def test_other_methods_are_not_allowed(self, client, method):
        response = client.request(method, "/authenticate")
        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


# =============================================================================
# Password Grant
# =============================================================================

class TestPasswordGrant:
    """`Authorization: iRODS` credentials are exchanged at the provider"""

    def test_successful_grant_issues_openid_token(self, client, fake_provider):
        fake_provider.response_json = {"id_token": create_id_token(irods_username="rods_alice")}

        response = client.post(
            "/authenticate",
            headers=basic_header("alice@example.org", "idp-pass", scheme="iRODS"),
        )

        assert response.status_code == status.HTTP_200_OK
        info = session_info(client, response.text).json()
        assert info["username"] == "rods_alice"
        assert info["auth_scheme"] == "openid_connect"

        assert fake_provider.forms == [{
            "client_id": TEST_CLIENT_ID,
            "grant_type": "password",
            "scope": "openid",
            "username": "alice@example.org",
            "password": "idp-pass",
        }]
        request = fake_provider.requests[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"

    def test_provider_error_is_bad_request(self, client, fake_provider):
        fake_provider.status_code = 400
        fake_provider.response_json = {
            "error": "invalid_grant",
            "error_description": "Invalid user credentials",
        }

        response = client.post("/authenticate", headers=basic_header("alice", "nope", scheme="iRODS"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "Invalid user credentials" not in response.text
        assert len(client.app.state.stash) == 0

    def test_missing_app_username_is_bad_request(self, client, fake_provider):
        fake_provider.response_json = {"id_token": create_id_token(irods_username=None)}

        response = client.post("/authenticate", headers=basic_header("alice", "pw", scheme="iRODS"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert len(client.app.state.stash) == 0

    def test_non_json_provider_response_is_bad_request(self, client, fake_provider):
        fake_provider.status_code = 502
        fake_provider.response_body = b"<html>Bad Gateway</html>"

        response = client.post("/authenticate", headers=basic_header("alice", "pw", scheme="iRODS"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_expired_id_token_is_bad_request(self, client, fake_provider):
        fake_provider.response_json = {"id_token": create_id_token(exp_delta_seconds=-10)}

        response = client.post("/authenticate", headers=basic_header("alice", "pw", scheme="iRODS"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert len(client.app.state.stash) == 0


# =============================================================================
# Authorization Code Flow
# =============================================================================

class TestAuthorizationCodeFlow:

    def test_initiation_redirects_to_provider(self, client):
        response = client.get("/authenticate")

        assert response.status_code == status.HTTP_302_FOUND
        location = urlsplit(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == TEST_AUTHORIZATION_ENDPOINT

        query = parse_qs(location.query)
        assert query["client_id"] == [TEST_CLIENT_ID]
        assert query["response_type"] == ["code"]
        assert query["scope"] == ["openid"]
        assert query["redirect_uri"] == [TEST_REDIRECT_URI]
        assert len(query["state"][0]) >= 32

    def test_each_flow_gets_a_unique_state(self, client):
        states = {start_code_flow(client) for _ in range(5)}
        assert len(states) == 5

    def test_successful_callback_issues_token(self, client, fake_provider):
        state = start_code_flow(client)
        fake_provider.response_json = {"id_token": create_id_token(irods_username="alice")}

        response = client.get("/authenticate", params={"state": state, "code": "auth-code-123"})

        assert response.status_code == status.HTTP_200_OK
        info = session_info(client, response.text).json()
        assert info["username"] == "alice"
        assert info["auth_scheme"] == "openid_connect"

        assert fake_provider.forms == [{
            "grant_type": "authorization_code",
            "client_id": TEST_CLIENT_ID,
            "code": "auth-code-123",
            "redirect_uri": TEST_REDIRECT_URI,
        }]

    def test_callback_without_state_is_bad_request(self, client, fake_provider):
        start_code_flow(client)

        response = client.get("/authenticate", params={"code": "auth-code-123"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert fake_provider.requests == []

    def test_callback_with_unknown_state_is_bad_request(self, client, fake_provider):
        start_code_flow(client)

        response = client.get("/authenticate", params={"state": "missing"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert fake_provider.requests == []
        assert len(client.app.state.stash) == 0

    def test_state_cannot_be_replayed(self, client):
        state = start_code_flow(client)

        first = client.get("/authenticate", params={"state": state, "code": "c1"})
        second = client.get("/authenticate", params={"state": state, "code": "c1"})

        assert first.status_code == status.HTTP_200_OK
        assert second.status_code == status.HTTP_400_BAD_REQUEST

    def test_callback_with_provider_error_is_bad_request(self, client, fake_provider):
        state = start_code_flow(client)

        response = client.get(
            "/authenticate",
            params={
                "state": state,
                "error": "access_denied",
                "error_description": "User declined consent",
            },
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "declined" not in response.text
        assert fake_provider.requests == []

    def test_callback_without_code_or_error_is_bad_request(self, client):
        state = start_code_flow(client)

        response = client.get("/authenticate", params={"state": state})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_token_error_response_is_bad_request(self, client, fake_provider):
        state = start_code_flow(client)
        fake_provider.response_json = {"error": "invalid_grant"}

        response = client.get("/authenticate", params={"state": state, "code": "expired-code"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert len(client.app.state.stash) == 0

    @pytest.mark.parametrize(
        "claims",
        [
            {"iss": "https://evil.example.com"},
            {"aud": "some-other-client"},
            {"aud": [TEST_CLIENT_ID, "some-other-client"]},
            {"azp": "some-other-client"},
        ],
        ids=["issuer", "audience", "audience-array", "authorized-party"],
    )
    def test_claim_mismatch_is_bad_request(self, client, fake_provider, claims):
        state = start_code_flow(client)
        fake_provider.response_json = {"id_token": create_id_token(**claims)}

        response = client.get("/authenticate", params={"state": state, "code": "auth-code"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert len(client.app.state.stash) == 0

    def test_expired_id_token_is_bad_request(self, client, fake_provider):
        state = start_code_flow(client)
        fake_provider.response_json = {"id_token": create_id_token(exp_delta_seconds=-1)}

        response = client.get("/authenticate", params={"state": state, "code": "auth-code"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert len(client.app.state.stash) == 0

    def test_garbage_id_token_is_bad_request(self, client, fake_provider):
        state = start_code_flow(client)
        fake_provider.response_json = {"id_token": "not.a.jwt"}

        response = client.get("/authenticate", params={"state": state, "code": "auth-code"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


# =============================================================================
# Session Endpoints
# =============================================================================

class TestSessionEndpoints:

    def test_unknown_token_is_unauthorized(self, client):
        response = session_info(client, "does-not-exist")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_missing_header_is_unauthorized(self, client):
        response = client.get("/session")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_revokes_token(self, client):
        token = client.post("/authenticate", headers=basic_header("alice", "secret")).text

        response = client.delete("/session", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert session_info(client, token).status_code == status.HTTP_401_UNAUTHORIZED

    def test_health_reports_store_sizes(self, client):
        client.post("/authenticate", headers=basic_header("alice", "secret"))
        start_code_flow(client)

        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["active_sessions"] == 1
        assert body["pending_authorizations"] == 1

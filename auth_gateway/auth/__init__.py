"""
Authentication Package

This package turns HTTP Basic credentials, OIDC resource owner password
grants and the OIDC Authorization Code flow into opaque bearer tokens.

Modules:
- routes: Public endpoints (/authenticate, /session)
- dispatcher: Classifies an authentication request into one mode
- orchestrator: Authorization Code and Password grant flows
- token_client: Form-encoded requests to the provider's token endpoint
- claims: Ordered ID token claim validation
- state: Single-use, time-bounded `state` values of pending code flows
- native: Basic credential checks against the native identity service
- stash: Bearer token store with expiry
- session: Bearer token resolution for downstream routes
- errors: Failure taxonomy and HTTP status mapping

The Authorization Code flow:
1. Client sends GET /authenticate
2. Gateway redirects to the provider with a fresh `state`
3. Provider redirects back to GET /authenticate?state=...&code=...
4. Gateway exchanges the code, validates the ID token claims
5. Gateway answers with a bearer token bound to the `irods_username` claim
"""

from .routes import auth_router

__all__ = [
    "auth_router",
]

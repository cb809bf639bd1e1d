"""
Authentication failure taxonomy.

Every failure carries the HTTP status it maps to and a fixed, generic
detail string. Internal context (provider error fields, which claim check
failed, native service errors) goes to the log only.
"""

from enum import Enum
from typing import Optional

from fastapi import status


class RejectReason(str, Enum):
    """Which ID token check failed."""
    ISSUER_MISMATCH = "issuer_mismatch"
    AUDIENCE_MISMATCH = "audience_mismatch"
    AUTHORIZED_PARTY_MISMATCH = "authorized_party_mismatch"
    TOKEN_EXPIRED = "token_expired"
    ALGORITHM_NOT_ALLOWED = "algorithm_not_allowed"
    TOKEN_TOO_OLD = "token_too_old"
    NONCE_MISMATCH = "nonce_mismatch"
    MALFORMED_CLAIMS = "malformed_claims"


class AuthenticationFailure(Exception):
    """Base exception for every authentication failure."""
    category = "authentication_failed"
    status_code = status.HTTP_400_BAD_REQUEST
    public_detail = "Bad request"


class MalformedRequest(AuthenticationFailure):
    """Bad query string or Authorization header."""
    category = "malformed_request"


class CredentialRejected(AuthenticationFailure):
    """Wrong password or failed native credential check."""
    category = "credential_rejected"
    status_code = status.HTTP_401_UNAUTHORIZED
    public_detail = "Unauthorized"


class ProviderError(AuthenticationFailure):
    """The identity provider returned an error or could not be used."""
    category = "provider_error"


class TokenEndpointError(ProviderError):
    """Token endpoint unreachable, timed out, or answered with something other than JSON."""


class TokenErrorResponse(ProviderError):
    """The token endpoint answered with an OAuth 2.0 error response."""

    def __init__(
        self,
        error: str,
        error_description: Optional[str] = None,
        error_uri: Optional[str] = None,
    ):
        self.error = error
        self.error_description = error_description
        self.error_uri = error_uri
        super().__init__(f"Token request failed: {error}")


class ClaimValidationFailed(AuthenticationFailure):
    """An ID token claim did not satisfy the trust configuration."""
    category = "claim_validation_failed"

    def __init__(self, reason: RejectReason, message: str = ""):
        self.reason = reason
        super().__init__(message or reason.value)


class MissingAppIdentity(AuthenticationFailure):
    """The ID token does not map to an application user."""
    category = "missing_app_identity"


class MethodNotAllowed(AuthenticationFailure):
    category = "method_not_allowed"
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    public_detail = "Method not allowed"


class NativeServiceError(Exception):
    """The native identity service call itself failed (distinct from a negative answer)."""

"""
Authentication utilities for credential and ID token decoding.

This module handles:
- Decoding `username:password` pairs from Authorization header values
- Decoding ID tokens returned by the token endpoint (header and claims)
- Shortening secrets before they are written to the log
"""

import base64
import binascii
import logging
from typing import Any, Dict, Tuple

from jose import JWTError, jwt

from .errors import ClaimValidationFailed, RejectReason

logger = logging.getLogger(__name__)


# =============================================================================
# Authorization Header Credentials
# =============================================================================

def decode_username_and_password(encoded: str) -> Tuple[str, str]:
    """
    Decode the base64 `username:password` payload of an Authorization header.

    The payload is split on the first colon, so passwords may contain colons.

    Args:
        encoded: Header value with the scheme prefix already removed

    Returns:
        Tuple of (username, password). Both are empty strings when the
        payload is not valid base64, not UTF-8, or has no colon.
    """
    authorization = encoded.strip()

    try:
        decoded = base64.b64decode(authorization, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        logger.debug(f"Failed to decode Authorization credentials: {e}")
        return "", ""

    username, colon, password = decoded.partition(":")
    if not colon:
        return "", ""

    return username, password


# =============================================================================
# ID Token Decoding
# =============================================================================

def decode_id_token(id_token: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Decode an ID token's header and claims without a generic JWT verification.

    Claims are validated afterwards by the OIDC-specific checks in
    `auth_gateway.auth.claims`.

    Args:
        id_token: Compact-serialized ID token

    Returns:
        Tuple of (header, claims)

    Raises:
        ClaimValidationFailed: If the token cannot be decoded into a JSON object
    """
    try:
        header = jwt.get_unverified_header(id_token)
        claims = jwt.get_unverified_claims(id_token)
    except JWTError as e:
        logger.warning(f"ID token rejected: undecodable ({e})")
        raise ClaimValidationFailed(RejectReason.MALFORMED_CLAIMS, f"Undecodable ID token: {e}")

    if not isinstance(claims, dict):
        logger.warning("ID token rejected: payload is not an object")
        raise ClaimValidationFailed(RejectReason.MALFORMED_CLAIMS, "ID token payload is not an object")

    return header, claims


def token_prefix(token: str) -> str:
    """Shorten a token or state value for log output."""
    return f"{token[:8]}..."

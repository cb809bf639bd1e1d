"""
OIDC ID token claim validation.

ID tokens are not verified as generic JWTs. The checks below follow the
OpenID Connect Core ID token validation steps the gateway supports, applied
in a fixed order and stopping at the first failure:

1. `iss` equals the configured issuer exactly
2. `aud` is a single string equal to the client ID (array audiences are refused)
3. `azp`, when present, equals the client ID
4. `exp` is strictly after now
5. optional hardening, each enabled from the trust configuration:
   signing algorithm pinning, `iat` freshness window and nonce matching
"""

import logging
import math
from numbers import Real
from typing import Any, Dict, Optional

from ..config import TrustConfiguration
from .errors import ClaimValidationFailed, MissingAppIdentity, RejectReason

logger = logging.getLogger(__name__)

APP_USERNAME_CLAIM = "irods_username"


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def validate_claims(
    claims: Dict[str, Any],
    trust: TrustConfiguration,
    now: float,
    header: Optional[Dict[str, Any]] = None,
    expected_nonce: Optional[str] = None,
) -> None:
    """
    Validate a decoded ID token claim set against the trust configuration.

    Args:
        claims: Decoded ID token payload
        trust: Trust parameters of this gateway
        now: Current time as seconds since the epoch
        header: Decoded ID token header, needed for algorithm pinning
        expected_nonce: Nonce sent on the matching authorization request

    Raises:
        ClaimValidationFailed: With the reason of the first failing check
    """
    if claims.get("iss") != trust.issuer:
        raise ClaimValidationFailed(RejectReason.ISSUER_MISMATCH)

    audience = claims.get("aud")
    if not isinstance(audience, str) or audience != trust.client_id:
        raise ClaimValidationFailed(RejectReason.AUDIENCE_MISMATCH)

    if "azp" in claims and claims["azp"] != trust.client_id:
        raise ClaimValidationFailed(RejectReason.AUTHORIZED_PARTY_MISMATCH)

    expiry = claims.get("exp")
    if not _is_finite_number(expiry) or expiry <= now:
        raise ClaimValidationFailed(RejectReason.TOKEN_EXPIRED)

    if trust.allowed_algorithms:
        algorithm = (header or {}).get("alg")
        if algorithm not in trust.allowed_algorithms:
            raise ClaimValidationFailed(RejectReason.ALGORITHM_NOT_ALLOWED)

    if trust.max_token_age_seconds is not None:
        issued_at = claims.get("iat")
        if not _is_finite_number(issued_at):
            raise ClaimValidationFailed(RejectReason.TOKEN_TOO_OLD)
        if issued_at > now + trust.clock_skew_seconds:
            raise ClaimValidationFailed(RejectReason.TOKEN_TOO_OLD, "iat is in the future")
        if now - issued_at > trust.max_token_age_seconds + trust.clock_skew_seconds:
            raise ClaimValidationFailed(RejectReason.TOKEN_TOO_OLD)

    if expected_nonce is not None:
        if claims.get("nonce") != expected_nonce:
            raise ClaimValidationFailed(RejectReason.NONCE_MISMATCH)


def extract_app_username(claims: Dict[str, Any]) -> str:
    """
    Return the application username carried by the ID token.

    Raises:
        MissingAppIdentity: If the token has no usable `irods_username` claim
    """
    username = claims.get(APP_USERNAME_CLAIM)

    if not isinstance(username, str) or not username:
        logger.error(
            f"No application user associated with authenticated user "
            f"[{claims.get('preferred_username', '')}]."
        )
        raise MissingAppIdentity()

    return username

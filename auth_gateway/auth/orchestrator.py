"""
OIDC flow orchestration.

This module drives the two provider-backed ways of obtaining a bearer token:

Authorization Code flow:
1. `begin_authorization` registers a pending flow and builds the redirect
   URL to the provider's authorization endpoint
2. `complete_authorization` consumes the callback: checks `state`, handles a
   provider `error`, exchanges the `code`, validates the ID token and issues
   a bearer token

Resource Owner Password grant:
- `password_grant` exchanges the user's username/password at the token
  endpoint and follows the same validation and issuance steps

Every step depends on the success of the one before it. Failures raise an
`AuthenticationFailure` subclass; the routes turn it into a generic
response.
"""

import logging
import time
from typing import Callable, Dict, Optional

from ..config import TrustConfiguration
from ..models import AuthScheme, OAuthCallbackQuery
from .claims import extract_app_username, validate_claims
from .errors import ClaimValidationFailed, MalformedRequest, ProviderError
from .stash import BearerTokenStash
from .state import PendingAuthorizationStore
from .token_client import (
    TokenEndpointClient,
    encode_form_body,
    extract_id_token,
    raise_for_error_response,
)
from .utils import decode_id_token, token_prefix

logger = logging.getLogger(__name__)


class OIDCFlowOrchestrator:
    """
    Runs the Authorization Code and Password grant flows against one provider.
    """

    def __init__(
        self,
        trust: TrustConfiguration,
        token_client: TokenEndpointClient,
        stash: BearerTokenStash,
        pending: PendingAuthorizationStore,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            trust: Provider endpoints and claim expectations
            token_client: Client for the provider's token endpoint
            stash: Store receiving issued bearer tokens
            pending: Store of outstanding `state` values
            clock: Wall clock used for `exp`/`iat` checks (epoch seconds)
        """
        self.trust = trust
        self.token_client = token_client
        self.stash = stash
        self.pending = pending
        self._clock = clock

    # =========================================================================
    # Authorization Code Flow
    # =========================================================================

    async def begin_authorization(self) -> str:
        """
        Start an Authorization Code flow.

        Returns:
            URL of the provider's authorization endpoint to redirect to
        """
        pending = await self.pending.create()

        args = {
            "client_id": self.trust.client_id,
            "response_type": "code",
            "scope": "openid",
            "redirect_uri": self.trust.redirect_uri,
            "state": pending.state,
        }
        if self.trust.require_nonce:
            args["nonce"] = pending.nonce

        separator = "&" if "?" in self.trust.authorization_endpoint else "?"
        authorization_url = f"{self.trust.authorization_endpoint}{separator}{encode_form_body(args)}"

        logger.debug(f"Redirecting to authorization endpoint for state: {token_prefix(pending.state)}")
        return authorization_url

    async def complete_authorization(self, query: OAuthCallbackQuery) -> str:
        """
        Finish an Authorization Code flow from the provider's redirect.

        Args:
            query: Parsed callback query parameters

        Returns:
            Bearer token for an `openid_connect` session

        Raises:
            MalformedRequest: Missing or unknown state, or neither code nor error
            ProviderError: The provider reported an error or the exchange failed
            ClaimValidationFailed: The ID token failed validation
            MissingAppIdentity: The ID token has no application username
        """
        if query.state is None:
            logger.warning("Received an Authorization response with no 'state' query parameter. Ignoring.")
            raise MalformedRequest()

        pending = await self.pending.consume(query.state)
        if pending is None:
            logger.warning("Received an Authorization response with an invalid 'state' query parameter. Ignoring.")
            raise MalformedRequest()

        if query.code is None:
            if query.error is None:
                logger.warning(
                    "Received an Authorization response with no 'code' or 'error' query parameters. Ignoring."
                )
                raise MalformedRequest()

            logger.warning(f"Authorization request failed: {query.error_summary()}")
            raise ProviderError(query.error)

        args = {
            "grant_type": "authorization_code",
            "client_id": self.trust.client_id,
            "code": query.code,
            "redirect_uri": self.trust.redirect_uri,
        }
        self._add_client_secret(args)

        response = await self.token_client.exchange(args)
        expected_nonce = pending.nonce if self.trust.require_nonce else None
        return await self._issue_from_token_response(response, expected_nonce)

    # =========================================================================
    # Password Grant
    # =========================================================================

    async def password_grant(self, username: str, password: str) -> str:
        """
        Authenticate a user by exchanging their password at the provider.

        Returns:
            Bearer token for an `openid_connect` session
        """
        args = {
            "client_id": self.trust.client_id,
            "grant_type": "password",
            "scope": "openid",
            "username": username,
            "password": password,
        }
        self._add_client_secret(args)

        response = await self.token_client.exchange(args)
        # No nonce can be bound to a password grant.
        return await self._issue_from_token_response(response, expected_nonce=None)

    # =========================================================================
    # Shared Steps
    # =========================================================================

    def _add_client_secret(self, args: Dict[str, str]) -> None:
        if self.trust.client_secret:
            args["client_secret"] = self.trust.client_secret

    async def _issue_from_token_response(
        self,
        response: Dict,
        expected_nonce: Optional[str],
    ) -> str:
        raise_for_error_response(response)
        id_token = extract_id_token(response)

        header, claims = decode_id_token(id_token)

        try:
            validate_claims(claims, self.trust, self._clock(), header=header, expected_nonce=expected_nonce)
        except ClaimValidationFailed as e:
            logger.warning(
                f"ID token rejected: {e.reason.value}",
                extra={"reason": e.reason.value, "preferred_username": claims.get("preferred_username")},
            )
            raise

        username = extract_app_username(claims)

        return await self.stash.insert(
            AuthScheme.OPENID_CONNECT,
            username,
            self.trust.session_timeout_seconds,
        )


"""
Native credential verification for HTTP Basic authentication.

The native identity service is an external collaborator. A call that fails
(unreachable, bad answer) is kept distinct from an answer of "invalid
credentials": both end in 401 for the client, but they are logged
differently.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..models import AuthScheme
from .errors import CredentialRejected, NativeServiceError
from .stash import BearerTokenStash

logger = logging.getLogger(__name__)


class NativeCredentialVerifier(ABC):
    """Checks username/password pairs against the native identity service."""

    @abstractmethod
    async def verify(self, username: str, zone: str, password: str) -> bool:
        """
        Returns:
            True if the credentials are valid, False otherwise

        Raises:
            NativeServiceError: If the check itself could not be performed
        """

    async def aclose(self) -> None:
        pass


class HttpNativeCredentialVerifier(NativeCredentialVerifier):
    """
    Verifies credentials through the native identity service's HTTP API.

    The gateway authenticates to the service with its proxy administrator
    account and posts `{"username", "zone", "password"}`; the service answers
    `{"valid": true|false}`.
    """

    def __init__(
        self,
        url: str,
        proxy_username: Optional[str] = None,
        proxy_password: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        auth = None
        if proxy_username and proxy_password:
            auth = httpx.BasicAuth(proxy_username, proxy_password)
        self._http_client = httpx.AsyncClient(timeout=timeout, auth=auth, transport=transport)

    async def verify(self, username: str, zone: str, password: str) -> bool:
        try:
            response = await self._http_client.post(
                self.url,
                json={"username": username, "zone": zone, "password": password},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise NativeServiceError(f"Native identity service call failed: {e!r}") from e
        except ValueError as e:
            raise NativeServiceError("Native identity service returned a non-JSON body") from e

        valid = payload.get("valid") if isinstance(payload, dict) else None
        if not isinstance(valid, bool):
            raise NativeServiceError("Native identity service returned an unexpected body")

        return valid

    async def aclose(self) -> None:
        await self._http_client.aclose()


class UnconfiguredNativeVerifier(NativeCredentialVerifier):
    """Stands in when no native identity service is configured."""

    async def verify(self, username: str, zone: str, password: str) -> bool:
        raise NativeServiceError("No native identity service configured")


async def authenticate_basic(
    verifier: NativeCredentialVerifier,
    stash: BearerTokenStash,
    username: str,
    password: str,
    zone: str,
    lifetime_seconds: float,
) -> str:
    """
    Verify Basic credentials natively and issue a bearer token.

    Returns:
        Bearer token bound to a `basic` session

    Raises:
        CredentialRejected: If the credentials are wrong or could not be checked
    """
    try:
        login_successful = await verifier.verify(username, zone, password)
    except NativeServiceError as e:
        logger.error(
            f"Error verifying native authentication credentials for user [{username}]: {e}"
        )
        raise CredentialRejected() from e

    if not login_successful:
        logger.info(f"Native authentication failed for user [{username}]")
        raise CredentialRejected()

    return await stash.insert(
        AuthScheme.BASIC,
        username,
        lifetime_seconds,
        password=password,
    )

"""
Token endpoint client for the OIDC provider.

Builds `application/x-www-form-urlencoded` bodies, posts them to the
provider's token endpoint and parses the JSON answer. No request is ever
retried: a failed exchange ends the authentication attempt.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from .errors import ProviderError, TokenEndpointError, TokenErrorResponse

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
USER_AGENT = "auth-gateway"


# =============================================================================
# Form Encoding
# =============================================================================

def encode_form_body(args: Mapping[str, str]) -> str:
    """
    Percent-encode a mapping as `key=value` pairs joined with `&`.

    Keys and values are encoded per RFC 3986: only unreserved characters
    (letters, digits, `-`, `.`, `_`, `~`) are left as-is; everything else,
    including spaces, becomes `%XX` of its UTF-8 bytes.

    Args:
        args: Parameters in the order they should appear

    Returns:
        Encoded body string
    """
    return "&".join(
        f"{quote(key, safe='')}={quote(value, safe='')}"
        for key, value in args.items()
    )


def _with_port(url: str, port: Optional[int]) -> str:
    if port is None:
        return url
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if ":" in netloc:
        netloc = f"[{netloc}]"
    return urlunsplit((parts.scheme, f"{netloc}:{port}", parts.path, parts.query, parts.fragment))


# =============================================================================
# Token Endpoint Client
# =============================================================================

class TokenEndpointClient:
    """
    Sends form-encoded token requests to the identity provider.

    At most `max_concurrency` exchanges are in flight at once; the rest
    wait their turn. Each exchange, queueing included, is bounded by
    `timeout` seconds overall.
    """

    def __init__(
        self,
        token_endpoint: str,
        timeout: float = 10.0,
        max_concurrency: int = 16,
        port: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_endpoint = _with_port(token_endpoint, port)
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._http_client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": USER_AGENT},
        )

        logger.info(f"Initialized token endpoint client for: {self.token_endpoint}")

    async def exchange(self, form: Mapping[str, str]) -> Dict[str, Any]:
        """
        Post a token request and return the parsed JSON response.

        The response is returned whatever its status code, so that OAuth
        error bodies (typically sent with 400) reach the caller. Waiting for
        a free slot, sending the request and reading the whole body share a
        single `timeout` deadline.

        Args:
            form: Token request parameters

        Returns:
            Decoded JSON object

        Raises:
            TokenEndpointError: On DNS, connection, timeout or non-JSON failures
        """
        body = encode_form_body(form)

        try:
            response = await asyncio.wait_for(self._post(body), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Token endpoint exchange exceeded {self._timeout}s")
            raise TokenEndpointError("Token endpoint timed out") from e

        logger.debug(
            f"Token endpoint answered with status {response.status_code}",
            extra={"status_code": response.status_code},
        )

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(
                f"Token endpoint returned a non-JSON body (status {response.status_code})"
            )
            raise TokenEndpointError("Token endpoint returned a non-JSON body") from e

        if not isinstance(payload, dict):
            logger.error("Token endpoint returned JSON that is not an object")
            raise TokenEndpointError("Token endpoint returned an unexpected JSON document")

        return payload

    async def _post(self, body: str) -> httpx.Response:
        async with self._semaphore:
            try:
                return await self._http_client.post(
                    self.token_endpoint,
                    content=body.encode("ascii"),
                    headers={"Content-Type": FORM_CONTENT_TYPE},
                )
            except httpx.TimeoutException as e:
                logger.error(f"Token endpoint request timed out: {e!r}")
                raise TokenEndpointError("Token endpoint timed out") from e
            except httpx.HTTPError as e:
                logger.error(f"Token endpoint request failed: {e!r}")
                raise TokenEndpointError("Token endpoint unreachable") from e

    async def aclose(self) -> None:
        await self._http_client.aclose()


# =============================================================================
# Response Inspection
# =============================================================================

def raise_for_error_response(response: Dict[str, Any]) -> None:
    """
    Raise if the token response is an OAuth 2.0 error response.

    The error fields are logged in full; callers only ever see a generic
    rejection.

    Raises:
        TokenErrorResponse: If the response has a top-level `error` field
    """
    if "error" not in response:
        return

    error = response["error"]
    error_description = response.get("error_description")
    error_uri = response.get("error_uri")

    message = f"Token request failed! Error: [{error}]"
    if error_description is not None:
        message += f", Error Description [{error_description}]"
    if error_uri is not None:
        message += f", Error URI [{error_uri}]"

    logger.warning(message)

    raise TokenErrorResponse(
        error=str(error),
        error_description=error_description,
        error_uri=error_uri,
    )


def extract_id_token(response: Dict[str, Any]) -> str:
    """
    Return the `id_token` of a successful token response.

    Raises:
        ProviderError: If the response carries no usable ID token
    """
    id_token = response.get("id_token")
    if not isinstance(id_token, str) or not id_token:
        logger.warning("Token response missing id_token")
        raise ProviderError("Token response missing id_token")
    return id_token

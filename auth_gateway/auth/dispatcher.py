"""
Classification of inbound authentication requests.

A request to the authentication endpoint is routed to exactly one mode:

- GET without a query string starts the Authorization Code flow
- GET with a query string is the provider's redirect callback
- POST with `Authorization: Basic ...` is checked against the native identity service
- POST with `Authorization: iRODS ...` is a resource owner password grant at the provider
- anything else is refused (400 for POST, 405 for other methods)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from fastapi import status

from ..models import OAuthCallbackQuery
from .errors import CredentialRejected
from .utils import decode_username_and_password

logger = logging.getLogger(__name__)

BASIC_SCHEME_PREFIX = "Basic "
PASSWORD_GRANT_SCHEME_PREFIX = "iRODS "


class AuthMode(str, Enum):
    INITIATE_CODE_FLOW = "initiate_code_flow"
    CODE_FLOW_CALLBACK = "code_flow_callback"
    BASIC_AUTH = "basic_auth"
    PASSWORD_GRANT = "password_grant"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class Dispatch:
    """Outcome of classifying one request."""
    mode: AuthMode
    username: Optional[str] = None
    password: Optional[str] = None
    callback: Optional[OAuthCallbackQuery] = None
    status_code: Optional[int] = None


def _extract_credentials(header_value: str, prefix: str):
    username, password = decode_username_and_password(header_value[len(prefix):])
    if not username or not password:
        logger.info(f"Rejecting malformed {prefix.strip()} credentials")
        raise CredentialRejected()
    return username, password


def classify(
    method: str,
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
) -> Dispatch:
    """
    Decide how an authentication request must be handled.

    Args:
        method: HTTP method
        headers: Case-insensitive request headers
        query_params: Parsed query string

    Returns:
        Dispatch describing the mode and any extracted credentials

    Raises:
        CredentialRejected: If Basic/iRODS credentials decode to an empty
            username or password
    """
    method = method.upper()

    if method == "GET":
        if not query_params:
            return Dispatch(mode=AuthMode.INITIATE_CODE_FLOW)
        return Dispatch(
            mode=AuthMode.CODE_FLOW_CALLBACK,
            callback=OAuthCallbackQuery.from_query(dict(query_params)),
        )

    if method == "POST":
        authorization = headers.get("authorization")

        if authorization is None:
            logger.info("POST without Authorization header")
            return Dispatch(mode=AuthMode.UNRECOGNIZED, status_code=status.HTTP_400_BAD_REQUEST)

        if authorization.startswith(BASIC_SCHEME_PREFIX):
            username, password = _extract_credentials(authorization, BASIC_SCHEME_PREFIX)
            return Dispatch(mode=AuthMode.BASIC_AUTH, username=username, password=password)

        if authorization.startswith(PASSWORD_GRANT_SCHEME_PREFIX):
            username, password = _extract_credentials(authorization, PASSWORD_GRANT_SCHEME_PREFIX)
            return Dispatch(mode=AuthMode.PASSWORD_GRANT, username=username, password=password)

        logger.info("POST with unsupported Authorization scheme")
        return Dispatch(mode=AuthMode.UNRECOGNIZED, status_code=status.HTTP_400_BAD_REQUEST)

    return Dispatch(mode=AuthMode.UNRECOGNIZED, status_code=status.HTTP_405_METHOD_NOT_ALLOWED)

"""
Bearer Token Session Resolution
===============================

Resolves the opaque bearer tokens issued by the authentication endpoint
back to their sessions. This is what downstream API routes depend on to
find out who is calling.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ..models import AuthenticatedSession
from .stash import BearerTokenStash
from .utils import token_prefix

logger = logging.getLogger(__name__)


# =============================================================================
# Helper Functions
# =============================================================================

def extract_token_from_header(authorization: Optional[str]) -> str:
    """
    Extract Bearer token from Authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Extracted token string

    Raises:
        HTTPException: If header format is invalid
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()

    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return parts[1]


def get_stash(request: Request) -> BearerTokenStash:
    return request.app.state.stash


async def resolve_session(stash: BearerTokenStash, token: str) -> AuthenticatedSession:
    """
    Look up a bearer token.

    Raises:
        HTTPException: 401 if the token is unknown or expired
    """
    session = await stash.lookup(token)

    if session is None:
        logger.info(f"Rejected unknown or expired bearer token {token_prefix(token)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return session


# =============================================================================
# FastAPI Dependencies
# =============================================================================

async def get_current_session(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> AuthenticatedSession:
    """
    FastAPI dependency to resolve the caller's bearer token.

    Usage in routes:
        @app.get("/protected")
        async def protected_route(session = Depends(get_current_session)):
            return {"username": session.username}

    Raises:
        HTTPException: If authentication fails
    """
    token = extract_token_from_header(authorization)
    return await resolve_session(get_stash(request), token)


__all__ = [
    "extract_token_from_header",
    "get_stash",
    "resolve_session",
    "get_current_session",
]

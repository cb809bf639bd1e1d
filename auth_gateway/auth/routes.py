"""
Authentication routes.

`/authenticate` turns one of three credential models into an opaque
bearer token:

- HTTP Basic (`POST`, `Authorization: Basic`) checked by the native identity service
- Resource owner password grant (`POST`, `Authorization: iRODS`) at the OIDC provider
- OIDC Authorization Code flow (`GET` to start, `GET` callback to finish)

`/session` lets a bearer token holder inspect or revoke their session.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse, RedirectResponse

from ..models import AuthenticatedSession, SessionInfo
from .dispatcher import AuthMode, classify
from .errors import AuthenticationFailure, MalformedRequest, MethodNotAllowed
from .native import authenticate_basic
from .session import extract_token_from_header, get_current_session, get_stash

logger = logging.getLogger(__name__)

SERVER_NAME = "auth-gateway"
SERVER_HEADERS = {"Server": SERVER_NAME}


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(tags=["authentication"])


# =============================================================================
# Authentication Endpoint
# =============================================================================

@auth_router.api_route(
    "/authenticate",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
)
async def authenticate(request: Request) -> Response:
    """
    Authenticate a client and hand back a bearer token.

    Returns:
        302 redirect to the provider when a code flow starts,
        200 text/plain bearer token on success

    Raises:
        HTTPException: 400, 401 or 405 with a generic detail
    """
    state = request.app.state

    try:
        dispatch = classify(request.method, request.headers, request.query_params)

        if dispatch.mode is AuthMode.INITIATE_CODE_FLOW:
            authorization_url = await state.orchestrator.begin_authorization()
            return RedirectResponse(
                url=authorization_url,
                status_code=status.HTTP_302_FOUND,
                headers=SERVER_HEADERS,
            )

        if dispatch.mode is AuthMode.CODE_FLOW_CALLBACK:
            token = await state.orchestrator.complete_authorization(dispatch.callback)

        elif dispatch.mode is AuthMode.BASIC_AUTH:
            token = await authenticate_basic(
                state.native_verifier,
                state.stash,
                dispatch.username,
                dispatch.password,
                zone=state.settings.NATIVE_ZONE,
                lifetime_seconds=state.settings.SESSION_TIMEOUT_SECONDS,
            )

        elif dispatch.mode is AuthMode.PASSWORD_GRANT:
            token = await state.orchestrator.password_grant(dispatch.username, dispatch.password)

        elif dispatch.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            raise MethodNotAllowed()

        else:
            raise MalformedRequest()

    except AuthenticationFailure as e:
        logger.info(
            f"Authentication failed: {e.category}",
            extra={"method": request.method, "category": e.category, "status_code": e.status_code},
        )
        raise HTTPException(
            status_code=e.status_code,
            detail=e.public_detail,
            headers=SERVER_HEADERS,
        )

    return PlainTextResponse(content=token, headers=SERVER_HEADERS)


# =============================================================================
# Session Endpoints
# =============================================================================

@auth_router.get("/session", response_model=SessionInfo)
async def get_session(
    request: Request,
    session: AuthenticatedSession = Depends(get_current_session),
) -> SessionInfo:
    """Describe the session behind the presented bearer token."""
    return SessionInfo(
        username=session.username,
        auth_scheme=session.auth_scheme,
        expires_in=get_stash(request).expires_in(session),
    )


@auth_router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    request: Request,
    session: AuthenticatedSession = Depends(get_current_session),
) -> Response:
    """Revoke the presented bearer token."""
    token = extract_token_from_header(request.headers.get("authorization"))
    await get_stash(request).remove(token)

    logger.info(f"Session revoked for user {session.username}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

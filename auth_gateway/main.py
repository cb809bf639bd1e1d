"""
FastAPI Authentication Gateway Application Factory
==================================================

This is the main entry point for the gateway that turns Basic credentials,
OIDC password grants and the OIDC Authorization Code flow into opaque
bearer tokens for a downstream API.

Architecture:
    Client → Gateway (this service) → OIDC provider / native identity service

Routers:
    - /authenticate : Basic, password grant and Authorization Code flow
    - /session      : Inspect or revoke the presented bearer token
    - /health       : Health check endpoint

Running the Service:
    Development:
        uvicorn auth_gateway.main:create_app --factory --reload --host 0.0.0.0 --port 8080

    Production:
        uvicorn auth_gateway.main:create_app --factory --host 0.0.0.0 --port 8080

    Bearer tokens live in process memory, so run a single worker process.

    With custom log level:
        LOG_LEVEL=DEBUG uvicorn auth_gateway.main:create_app --factory --reload
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from auth_gateway.auth import auth_router
from auth_gateway.auth.native import (
    HttpNativeCredentialVerifier,
    NativeCredentialVerifier,
    UnconfiguredNativeVerifier,
)
from auth_gateway.auth.orchestrator import OIDCFlowOrchestrator
from auth_gateway.auth.stash import BearerTokenStash, run_sweeper
from auth_gateway.auth.state import PendingAuthorizationStore
from auth_gateway.auth.token_client import TokenEndpointClient
from auth_gateway.config import Settings, get_settings, validate_configuration
from auth_gateway.models import ErrorResponse, HealthResponse

SERVICE_NAME = "auth-gateway"
SERVICE_VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def build_native_verifier(settings: Settings) -> NativeCredentialVerifier:
    if not settings.NATIVE_AUTH_URL:
        return UnconfiguredNativeVerifier()

    return HttpNativeCredentialVerifier(
        url=settings.NATIVE_AUTH_URL,
        proxy_username=settings.NATIVE_PROXY_USERNAME,
        proxy_password=settings.NATIVE_PROXY_PASSWORD,
        timeout=settings.TOKEN_EXCHANGE_TIMEOUT_SECONDS,
    )


def create_app(
    settings: Optional[Settings] = None,
    token_transport: Optional[httpx.AsyncBaseTransport] = None,
    native_verifier: Optional[NativeCredentialVerifier] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use instead of the environment
        token_transport: httpx transport for the token endpoint (tests use
            httpx.MockTransport to stand in for the provider)
        native_verifier: Verifier to use instead of the one built from settings

    Returns:
        FastAPI: Configured application instance
    """
    if settings is None:
        settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup tasks:
            - Configure logging, report configuration warnings and refuse to
              start on configuration errors
            - Build the bearer token stash and pending authorization store
            - Build the token endpoint client, native verifier and orchestrator
            - Start the expiry sweeper

        Shutdown tasks:
            - Stop the sweeper
            - Close outbound HTTP clients
        """
        setup_logging(settings.LOG_LEVEL)
        logger = logging.getLogger("auth_gateway.main")

        report = validate_configuration(settings)
        for warning in report["warnings"]:
            logger.warning(f"Configuration warning: {warning}")
        for error in report["errors"]:
            logger.error(f"Configuration error: {error}")
        if not report["valid"]:
            raise RuntimeError(f"Invalid configuration: {'; '.join(report['errors'])}")

        stash = BearerTokenStash()
        pending = PendingAuthorizationStore(ttl_seconds=settings.STATE_TTL_SECONDS)
        token_client = TokenEndpointClient(
            settings.OIDC_TOKEN_ENDPOINT,
            timeout=settings.TOKEN_EXCHANGE_TIMEOUT_SECONDS,
            max_concurrency=settings.TOKEN_EXCHANGE_MAX_CONCURRENCY,
            port=settings.OIDC_TOKEN_ENDPOINT_PORT,
            transport=token_transport,
        )
        verifier = native_verifier or build_native_verifier(settings)

        app.state.settings = settings
        app.state.stash = stash
        app.state.pending = pending
        app.state.native_verifier = verifier
        app.state.orchestrator = OIDCFlowOrchestrator(
            trust=settings.trust_configuration(),
            token_client=token_client,
            stash=stash,
            pending=pending,
        )

        sweeper = asyncio.create_task(
            run_sweeper(settings.STASH_SWEEP_INTERVAL_SECONDS, stash, pending)
        )

        logger.info(
            "Authentication gateway started successfully",
            extra={
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "issuer": settings.OIDC_ISSUER,
            }
        )

        yield

        # Shutdown
        logger.info("Shutting down authentication gateway")

        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper

        await token_client.aclose()
        await verifier.aclose()

        logger.info("Authentication gateway shutdown complete")

    app = FastAPI(
        title="Authentication Gateway",
        description="Issues bearer tokens from Basic credentials and OpenID Connect flows",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.include_router(auth_router)

    # Health check endpoint
    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """
        Health check endpoint.

        Returns:
            Service status and store sizes
        """
        return HealthResponse(
            status="ok",
            service=SERVICE_NAME,
            active_sessions=len(request.app.state.stash),
            pending_authorizations=len(request.app.state.pending),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("auth_gateway.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        error = ErrorResponse(
            error="internal_server_error",
            message="An unexpected error occurred",
        )
        return JSONResponse(status_code=500, content=error.model_dump(mode="json"))

    return app


if __name__ == "__main__":
    """
    Direct execution entry point.

    This allows running the service directly with: python -m auth_gateway.main
    """
    settings = get_settings()

    uvicorn.run(
        "auth_gateway.main:create_app",
        factory=True,
        host=settings.GATEWAY_HOST,
        port=settings.GATEWAY_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )

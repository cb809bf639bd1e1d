"""
Configuration module for the Authentication Gateway.

This module uses Pydantic Settings to load and validate environment variables
for the OpenID Connect provider, the native identity service, bearer token
sessions and the HTTP server.

Environment variables are loaded from .env file or system environment.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Trust Configuration
# =============================================================================

@dataclass(frozen=True)
class TrustConfiguration:
    """
    Read-only trust parameters handed to the OIDC orchestrator and the
    claims validator at construction time.

    The last four fields are optional hardening checks; their defaults
    leave the corresponding validation step disabled.
    """

    client_id: str
    redirect_uri: str
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    session_timeout_seconds: int
    client_secret: Optional[str] = None
    allowed_algorithms: Tuple[str, ...] = ()
    max_token_age_seconds: Optional[int] = None
    clock_skew_seconds: int = 0
    require_nonce: bool = False


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # =========================================================================
    # OpenID Connect Provider
    # =========================================================================

    OIDC_CLIENT_ID: str = Field(
        ...,
        description="OAuth client ID registered with the identity provider",
        min_length=1,
    )

    OIDC_CLIENT_SECRET: Optional[str] = Field(
        None,
        description="OAuth client secret (optional for public clients)",
    )

    OIDC_REDIRECT_URI: str = Field(
        ...,
        description="Redirect URI registered with the identity provider (e.g., https://gateway.example.com/authenticate)",
        min_length=1,
    )

    OIDC_ISSUER: str = Field(
        ...,
        description="Issuer identifier the ID token 'iss' claim must match exactly",
    )

    OIDC_AUTHORIZATION_ENDPOINT: str = Field(
        ...,
        description="Provider authorization endpoint for the Authorization Code flow",
    )

    OIDC_TOKEN_ENDPOINT: str = Field(
        ...,
        description="Provider token endpoint used for code and password grants",
    )

    OIDC_TOKEN_ENDPOINT_PORT: Optional[int] = Field(
        None,
        description="Overrides the port of OIDC_TOKEN_ENDPOINT when set",
        ge=1,
        le=65535,
    )

    # =========================================================================
    # ID Token Hardening
    # =========================================================================

    OIDC_ALLOWED_ALGORITHMS: str = Field(
        default="",
        description="Comma-separated list of accepted ID token 'alg' values (empty disables the check)",
    )

    OIDC_MAX_TOKEN_AGE_SECONDS: Optional[int] = Field(
        None,
        description="Maximum accepted age of the ID token 'iat' claim",
        ge=1,
    )

    OIDC_CLOCK_SKEW_SECONDS: int = Field(
        default=0,
        description="Clock skew tolerance applied to the 'iat' window",
        ge=0,
        le=300,
    )

    OIDC_REQUIRE_NONCE: bool = Field(
        default=False,
        description="Send a nonce on authorization requests and require it in the ID token",
    )

    # =========================================================================
    # Token Exchange
    # =========================================================================

    TOKEN_EXCHANGE_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for a single token endpoint exchange",
        gt=0,
        le=120,
    )

    TOKEN_EXCHANGE_MAX_CONCURRENCY: int = Field(
        default=16,
        description="Maximum number of token endpoint exchanges in flight",
        ge=1,
        le=1024,
    )

    # =========================================================================
    # Sessions
    # =========================================================================

    SESSION_TIMEOUT_SECONDS: int = Field(
        default=3600,
        description="Lifetime of an issued bearer token in seconds",
        ge=1,
    )

    STATE_TTL_SECONDS: int = Field(
        default=600,
        description="Lifetime of a pending Authorization Code flow",
        ge=1,
    )

    STASH_SWEEP_INTERVAL_SECONDS: float = Field(
        default=60.0,
        description="Interval between sweeps of expired bearer tokens and states",
        gt=0,
    )

    # =========================================================================
    # Native Identity Service
    # =========================================================================

    NATIVE_AUTH_URL: Optional[str] = Field(
        None,
        description="Endpoint of the native identity service used for Basic authentication",
    )

    NATIVE_ZONE: str = Field(
        ...,
        description="Zone name sent along with native credentials",
        min_length=1,
    )

    NATIVE_PROXY_USERNAME: Optional[str] = Field(
        None,
        description="Proxy administrator account used to call the native identity service",
    )

    NATIVE_PROXY_PASSWORD: Optional[str] = Field(
        None,
        description="Password of the proxy administrator account",
    )

    # =========================================================================
    # Gateway Server Configuration
    # =========================================================================

    GATEWAY_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the gateway server",
    )

    GATEWAY_PORT: int = Field(
        default=8080,
        description="Port to bind the gateway server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_algorithms_list(self) -> Tuple[str, ...]:
        """Parse OIDC_ALLOWED_ALGORITHMS into a tuple of algorithm names."""
        return tuple(
            alg.strip()
            for alg in self.OIDC_ALLOWED_ALGORITHMS.split(",")
            if alg.strip()
        )

    def trust_configuration(self) -> TrustConfiguration:
        """
        Build the immutable trust parameters used by the OIDC flows.

        Returns:
            TrustConfiguration snapshot of the current settings.
        """
        return TrustConfiguration(
            client_id=self.OIDC_CLIENT_ID,
            redirect_uri=self.OIDC_REDIRECT_URI,
            issuer=self.OIDC_ISSUER,
            authorization_endpoint=self.OIDC_AUTHORIZATION_ENDPOINT,
            token_endpoint=self.OIDC_TOKEN_ENDPOINT,
            session_timeout_seconds=self.SESSION_TIMEOUT_SECONDS,
            client_secret=self.OIDC_CLIENT_SECRET,
            allowed_algorithms=self.allowed_algorithms_list,
            max_token_age_seconds=self.OIDC_MAX_TOKEN_AGE_SECONDS,
            clock_skew_seconds=self.OIDC_CLOCK_SKEW_SECONDS,
            require_nonce=self.OIDC_REQUIRE_NONCE,
        )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator(
        "OIDC_ISSUER",
        "OIDC_AUTHORIZATION_ENDPOINT",
        "OIDC_TOKEN_ENDPOINT",
        "NATIVE_AUTH_URL",
    )
    @classmethod
    def validate_http_url(cls, v: Optional[str]) -> Optional[str]:
        """
        Validate that provider endpoints are absolute http(s) URLs.

        Raises:
            ValueError: If the URL has no scheme or host
        """
        if v is None:
            return v

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(
                f"Invalid URL: '{v}'. Expected an absolute http(s) URL"
            )

        return v

    @field_validator("OIDC_ALLOWED_ALGORITHMS")
    @classmethod
    def validate_algorithms(cls, v: str) -> str:
        """
        Strip whitespace and refuse the unsigned 'none' algorithm.

        JOSE 'alg' values are case-sensitive (e.g. 'EdDSA'), so the
        configured spelling is kept as-is.
        """
        algorithms = [alg.strip() for alg in v.split(",") if alg.strip()]

        for alg in algorithms:
            if alg.lower() == "none":
                raise ValueError("The 'none' algorithm cannot be allowed")

        return ",".join(algorithms)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    This is called during application startup so misconfiguration shows
    up in the logs before the first request arrives.

    Returns:
        Dictionary with validation status, errors and warnings. Errors
        prevent the gateway from starting.
    """
    errors = []
    warnings = []

    redirect = urlparse(settings.OIDC_REDIRECT_URI)
    if redirect.scheme not in ("http", "https") or not redirect.netloc:
        errors.append("OIDC_REDIRECT_URI is not an absolute http(s) URL")
    elif redirect.fragment:
        errors.append("OIDC_REDIRECT_URI must not contain a fragment")

    if bool(settings.NATIVE_PROXY_USERNAME) != bool(settings.NATIVE_PROXY_PASSWORD):
        errors.append("NATIVE_PROXY_USERNAME and NATIVE_PROXY_PASSWORD must be set together")

    if not settings.NATIVE_AUTH_URL:
        warnings.append("NATIVE_AUTH_URL is not set (Basic authentication will always fail)")
    elif not (settings.NATIVE_PROXY_USERNAME or settings.NATIVE_PROXY_PASSWORD):
        warnings.append("NATIVE_PROXY_USERNAME/NATIVE_PROXY_PASSWORD are not set")

    if urlparse(settings.OIDC_TOKEN_ENDPOINT).scheme != "https":
        warnings.append("OIDC_TOKEN_ENDPOINT does not use https")

    if settings.OIDC_ISSUER.endswith("/"):
        warnings.append("OIDC_ISSUER ends with '/'; 'iss' is compared exactly")

    if settings.STATE_TTL_SECONDS > settings.SESSION_TIMEOUT_SECONDS:
        warnings.append("STATE_TTL_SECONDS is longer than SESSION_TIMEOUT_SECONDS")

    if settings.OIDC_MAX_TOKEN_AGE_SECONDS is None:
        warnings.append("OIDC_MAX_TOKEN_AGE_SECONDS is not set (ID token freshness is not checked)")

    if not settings.allowed_algorithms_list:
        warnings.append("OIDC_ALLOWED_ALGORITHMS is empty (ID token 'alg' is not pinned)")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "session_timeout_seconds": settings.SESSION_TIMEOUT_SECONDS,
    }

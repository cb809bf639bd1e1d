"""
Data Models Module

This module defines Pydantic models for the authenticated sessions held by
the bearer token stash and for request/response validation throughout the
gateway.

Models are organized by functional area:
- Session models (authentication scheme, authenticated session)
- OAuth models (authorization callback query)
- Response models (session info, health, errors)
"""

import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Session Models
# ============================================================================

class AuthScheme(str, Enum):
    """How the holder of a bearer token originally authenticated."""
    BASIC = "basic"
    OPENID_CONNECT = "openid_connect"


class AuthenticatedSession(BaseModel):
    """
    The unit of issued trust, stored in the bearer token stash.

    `expires_at` is measured on the `time.monotonic()` clock. The password is
    only kept for Basic sessions; it is dropped for every other scheme.
    """
    model_config = ConfigDict(frozen=True)

    auth_scheme: AuthScheme = Field(..., description="Scheme used to authenticate")
    username: str = Field(..., description="Application username", min_length=1)
    password: Optional[str] = Field(None, description="Native password (Basic only)", repr=False)
    expires_at: float = Field(..., description="Monotonic expiry timestamp")

    @model_validator(mode="before")
    @classmethod
    def clear_password_for_non_basic(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("password") is not None:
            if AuthScheme(data.get("auth_scheme")) is not AuthScheme.BASIC:
                data = {**data, "password": None}
        return data

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check whether the session is past its expiry."""
        if now is None:
            now = time.monotonic()
        return now >= self.expires_at


# ============================================================================
# OAuth Models
# ============================================================================

class OAuthCallbackQuery(BaseModel):
    """Query parameters of an Authorization Code redirect callback."""
    state: Optional[str] = Field(None, description="Anti-forgery state value")
    code: Optional[str] = Field(None, description="Authorization code")
    error: Optional[str] = Field(None, description="OAuth error code")
    error_description: Optional[str] = Field(None, description="Human-readable error description")
    error_uri: Optional[str] = Field(None, description="Link to error documentation")

    @classmethod
    def from_query(cls, params: Dict[str, str]) -> "OAuthCallbackQuery":
        return cls(**{name: params.get(name) for name in cls.model_fields})

    def error_summary(self) -> str:
        """Format the OAuth error fields for the log."""
        summary = f"Error Code [{self.error}]"
        if self.error_description is not None:
            summary += f", Error Description [{self.error_description}]"
        if self.error_uri is not None:
            summary += f", Error URI [{self.error_uri}]"
        return summary


# ============================================================================
# Response Models
# ============================================================================

class SessionInfo(BaseModel):
    """Public view of the session behind a bearer token."""
    username: str = Field(..., description="Application username")
    auth_scheme: AuthScheme = Field(..., description="Scheme used to authenticate")
    expires_in: int = Field(..., description="Seconds until the bearer token expires")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")
    active_sessions: int = Field(..., description="Bearer tokens currently stored")
    pending_authorizations: int = Field(..., description="Authorization Code flows awaiting a callback")


class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")


__all__ = [
    "AuthScheme",
    "AuthenticatedSession",
    "OAuthCallbackQuery",
    "SessionInfo",
    "HealthResponse",
    "ErrorResponse",
]

"""
Bearer Token Stash
==================

Process-wide store mapping opaque bearer tokens to authenticated sessions.

Every request that presents a bearer token is resolved here, so lookups
are O(1) dictionary reads under a single asyncio.Lock. Expired sessions are
never returned: they are evicted when looked up, and a periodic sweep
removes the ones nobody asks for again.

Nothing is persisted; all tokens are lost on restart.
"""

import asyncio
import logging
import secrets
import time
from typing import Callable, Dict, Optional

from ..models import AuthenticatedSession, AuthScheme
from .utils import token_prefix

logger = logging.getLogger(__name__)

# 32 random bytes, 43 URL-safe characters
TOKEN_BYTES = 32


class BearerTokenStash:
    """
    Thread-safe (asyncio) in-memory bearer token store with expiry.

    Attributes:
        _sessions: Dict mapping bearer token to session
        _lock: Asyncio lock held for in-memory operations only
        _clock: Monotonic time source, injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._sessions: Dict[str, AuthenticatedSession] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def insert(
        self,
        auth_scheme: AuthScheme,
        username: str,
        lifetime_seconds: float,
        password: Optional[str] = None,
    ) -> str:
        """
        Create a session and return the bearer token bound to it.

        Args:
            auth_scheme: How the user authenticated
            username: Application username (non-empty)
            lifetime_seconds: Seconds until the token expires (positive)
            password: Native password, kept for Basic sessions only

        Returns:
            Newly generated bearer token

        Raises:
            ValueError: If the username is empty or the lifetime is not positive
        """
        if lifetime_seconds <= 0:
            raise ValueError("Session lifetime must be positive")

        async with self._lock:
            now = self._clock()
            session = AuthenticatedSession(
                auth_scheme=auth_scheme,
                username=username,
                password=password,
                expires_at=now + lifetime_seconds,
            )

            token = secrets.token_urlsafe(TOKEN_BYTES)
            while token in self._sessions and not self._sessions[token].is_expired(now):
                token = secrets.token_urlsafe(TOKEN_BYTES)

            self._sessions[token] = session

        logger.info(
            f"Issued bearer token {token_prefix(token)} for user {username}",
            extra={"auth_scheme": auth_scheme.value, "lifetime_seconds": lifetime_seconds},
        )
        return token

    async def lookup(self, token: str) -> Optional[AuthenticatedSession]:
        """
        Return the session behind `token` if it exists and has not expired.

        Expired entries are removed on the spot.
        """
        async with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None

            if session.is_expired(self._clock()):
                del self._sessions[token]
                logger.debug(f"Evicted expired bearer token {token_prefix(token)}")
                return None

            return session

    async def remove(self, token: str) -> bool:
        """Remove a token. Returns True if it was present."""
        async with self._lock:
            removed = self._sessions.pop(token, None) is not None

        if removed:
            logger.info(f"Removed bearer token {token_prefix(token)}")
        return removed

    async def sweep(self) -> int:
        """Evict every expired session. Returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [t for t, s in self._sessions.items() if s.is_expired(now)]
            for token in expired:
                del self._sessions[token]

        if expired:
            logger.debug(f"Swept {len(expired)} expired bearer tokens")
        return len(expired)

    def expires_in(self, session: AuthenticatedSession) -> int:
        """Whole seconds left before `session` expires."""
        return max(0, int(session.expires_at - self._clock()))

    def __len__(self) -> int:
        return len(self._sessions)


async def run_sweeper(interval_seconds: float, *stores) -> None:
    """
    Periodically sweep expired entries out of the given stores.

    Runs until cancelled. Each store must provide an async `sweep()`. A
    failing sweep is logged and the loop carries on with the next store.
    """
    logger.info(f"Starting expiry sweeper (interval {interval_seconds}s)")
    while True:
        await asyncio.sleep(interval_seconds)
        for store in stores:
            try:
                await store.sweep()
            except Exception as e:
                logger.error(
                    f"Sweep of {type(store).__name__} failed: {e}",
                    exc_info=True,
                )

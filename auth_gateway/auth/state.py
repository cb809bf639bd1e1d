"""
Pending Authorization Code flows.

Each redirect to the provider gets its own random `state` (and nonce),
remembered here until the callback arrives. A state can be consumed
exactly once and only before it expires.
"""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .utils import token_prefix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingAuthorization:
    state: str
    nonce: str
    expires_at: float


class PendingAuthorizationStore:
    """
    In-memory TTL store of outstanding `state` values.

    Guarded by an asyncio.Lock; no network I/O happens while it is held.
    """

    def __init__(self, ttl_seconds: int = 600, clock: Callable[[], float] = time.monotonic):
        self._pending: Dict[str, PendingAuthorization] = {}
        self._lock = asyncio.Lock()
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    async def create(self) -> PendingAuthorization:
        """Register a new flow with a fresh state and nonce."""
        async with self._lock:
            state = secrets.token_urlsafe(32)
            while state in self._pending:
                state = secrets.token_urlsafe(32)

            pending = PendingAuthorization(
                state=state,
                nonce=secrets.token_urlsafe(32),
                expires_at=self._clock() + self._ttl_seconds,
            )
            self._pending[state] = pending

        logger.debug(f"Registered pending authorization for state: {token_prefix(state)}")
        return pending

    async def consume(self, state: str) -> Optional[PendingAuthorization]:
        """
        Remove and return the flow registered under `state`.

        Returns:
            The pending flow, or None if the state is unknown, already used,
            or expired
        """
        async with self._lock:
            pending = self._pending.pop(state, None)

        if pending is None:
            return None

        if self._clock() >= pending.expires_at:
            logger.info(f"Pending authorization expired for state: {token_prefix(state)}")
            return None

        return pending

    async def sweep(self) -> int:
        """Drop every expired flow. Returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [state for state, p in self._pending.items() if now >= p.expires_at]
            for state in expired:
                del self._pending[state]

        if expired:
            logger.debug(f"Swept {len(expired)} expired pending authorizations")
        return len(expired)

    def __len__(self) -> int:
        return len(self._pending)

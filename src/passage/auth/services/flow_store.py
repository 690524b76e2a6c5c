"""Short-lived storage for in-flight authorization flows.

Each flow is keyed by its CSRF token and can be consumed exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from passage.auth.models.errors import (
    FlowCapacityError,
    StateExpiredError,
    StateNotFoundError,
)
from passage.auth.models.flow import FlowState
from passage.auth.primitives.pkce import PKCEManager
from passage.auth.services.security import fingerprint, generate_state

logger = logging.getLogger(__name__)

DEFAULT_FLOW_TTL = 300.0
DEFAULT_MAX_ENTRIES = 10_000


class FlowStateStore(Protocol):
    """Storage contract for flow state.

    Any backend must make ``consume`` atomic: of several concurrent calls
    with the same token, exactly one may succeed.
    """

    async def issue(self, provider_name: str) -> FlowState: ...

    async def consume(self, csrf_token: str) -> FlowState: ...

    async def evict_expired(self) -> int: ...


class InMemoryFlowStateStore:
    """Process-local FlowStateStore.

    All mutation happens under one lock and never awaits while holding it,
    so the store is safe across coroutines and threads alike.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_FLOW_TTL,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
        pkce_manager: PKCEManager | None = None,
    ) -> None:
        if ttl <= 0:
            raise ValueError("Flow TTL must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._pkce_manager = pkce_manager or PKCEManager()
        self._flows: dict[str, FlowState] = {}  # csrf_token -> flow, oldest first
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._flows)

    # ================================
    # Issue
    # ================================

    async def issue(self, provider_name: str) -> FlowState:
        """Create and store a new flow with a fresh CSRF token and PKCE pair.

        Expired flows are dropped first. Unexpired flows are never displaced.

        Raises:
            FlowCapacityError: If ``max_entries`` unexpired flows are pending
        """
        pkce_params = self._pkce_manager.generate_parameters()
        now = self._clock()

        with self._lock:
            self._evict_expired_locked(now)
            if len(self._flows) >= self._max_entries:
                logger.warning(
                    f"Flow store at capacity ({self._max_entries}), "
                    f"refusing new flow for {provider_name}"
                )
                raise FlowCapacityError(
                    f"{self._max_entries} unexpired flows pending"
                )

            csrf_token = generate_state()
            while csrf_token in self._flows:
                csrf_token = generate_state()

            flow_state = FlowState(
                csrf_token=csrf_token,
                pkce_verifier=pkce_params.code_verifier,
                code_challenge=pkce_params.code_challenge,
                provider_name=provider_name,
                created_at=now,
                expires_at=now + self._ttl,
            )
            self._flows[csrf_token] = flow_state

        logger.debug(
            f"Issued flow {fingerprint(csrf_token)} for {provider_name}, "
            f"expires in {self._ttl:.0f}s"
        )
        return flow_state

    # ================================
    # Consume
    # ================================

    async def consume(self, csrf_token: str) -> FlowState:
        """Remove and return the flow for ``csrf_token``.

        Lookup, expiry check and removal happen in one critical section.

        Raises:
            StateNotFoundError: Never issued, already consumed, or evicted
            StateExpiredError: Issued but past its TTL (removed as well)
        """
        with self._lock:
            flow_state = self._flows.pop(csrf_token, None)
            now = self._clock()

        if flow_state is None:
            raise StateNotFoundError("Unknown or already used state parameter")
        if flow_state.is_expired(now):
            raise StateExpiredError("State parameter has expired")
        return flow_state

    # ================================
    # Eviction
    # ================================

    async def evict_expired(self) -> int:
        """Drop every expired flow. Returns the number removed."""
        with self._lock:
            evicted = self._evict_expired_locked(self._clock())
        if evicted:
            logger.debug(f"Evicted {evicted} expired flows")
        return evicted

    async def run_eviction(self, interval: float) -> None:
        """Evict expired flows every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            await self.evict_expired()

    def _evict_expired_locked(self, now: float) -> int:
        expired = [
            token for token, flow in self._flows.items() if flow.is_expired(now)
        ]
        for token in expired:
            del self._flows[token]
        return len(expired)


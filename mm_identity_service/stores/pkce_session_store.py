# ============================================================
# SPDX-License-Identifier: GPL-3.0-or-later
# This program was generated as part of the AgentFoundry project.
# Copyright (C) 2025  John Brosnihan
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
# ============================================================
"""PKCE session store and background sweeper.

This module defines the PKCESessionStore abstraction for pending
authorizations keyed by their state token, an in-memory implementation,
and the SessionSweeper task that purges abandoned entries.

The store is deliberately non-persistent: a restart drops every
in-flight flow and clients start over with a fresh state/verifier pair.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from mm_identity_service.logging import secret_prefix
from mm_identity_service.models.oauth import PKCESession

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PKCESessionStore(ABC):
    """Abstract base class for pending-authorization storage.

    Implementations must make take() atomic: when two callbacks race on
    the same state, exactly one receives the session and the other
    receives None.

    Methods:
        put: Insert or overwrite the session for a state.
        take: Remove and return a live session.
        sweep: Delete every expired session.
        size: Number of stored sessions.
    """

    @abstractmethod
    async def put(
        self,
        state: str,
        code_verifier: str | None,
        redirect_uri: str,
        provider: str,
    ) -> PKCESession:
        """Insert or overwrite the session for a state, stamped with now.

        Args:
            state: The state token issued with the authorization URL.
            code_verifier: The PKCE verifier, or None for non-PKCE providers.
            redirect_uri: The exact redirect URI sent to the provider.
            provider: The provider name.

        Returns:
            The stored session.
        """
        pass

    @abstractmethod
    async def take(self, state: str) -> PKCESession | None:
        """Atomically remove and return the session for a state.

        Returns None when the state was never issued, was already taken,
        or has expired. Callers must not distinguish between these cases.

        Args:
            state: The state token received on the callback.

        Returns:
            The PKCESession if present and live, None otherwise.
        """
        pass

    @abstractmethod
    async def sweep(self) -> int:
        """Delete all sessions older than the TTL.

        Returns:
            The number of sessions removed.
        """
        pass

    @abstractmethod
    async def size(self) -> int:
        """Return the number of stored sessions, expired ones included."""
        pass


class InMemoryPKCESessionStore(PKCESessionStore):
    """In-memory implementation of PKCESessionStore.

    A single lock guards the mapping, so put/take/sweep are atomic with
    respect to each other. Memory is bounded by arrival rate times TTL
    as long as sweep() runs periodically.

    Attributes:
        _sessions: Dictionary mapping state tokens to PKCESession instances.
        _ttl: How long a session stays valid.
        _clock: Callable returning the current UTC time.
        _lock: Threading lock for thread-safe operations.
    """

    def __init__(self, ttl_seconds: int = 600, clock: Clock | None = None) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._sessions: dict[str, PKCESession] = {}
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        logger.info("oauth.session_store.initialized", ttl_seconds=ttl_seconds)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def put(
        self,
        state: str,
        code_verifier: str | None,
        redirect_uri: str,
        provider: str,
    ) -> PKCESession:
        if not state:
            raise ValueError("state must not be empty")

        session = PKCESession(
            state=state,
            code_verifier=code_verifier,
            redirect_uri=redirect_uri,
            provider=provider,
            created_at=self._clock(),
        )
        with self._lock:
            self._sessions[state] = session

        logger.debug(
            "oauth.session.stored",
            state_prefix=secret_prefix(state),
            provider=provider,
        )
        return session

    async def take(self, state: str) -> PKCESession | None:
        if not state:
            return None

        now = self._clock()
        with self._lock:
            session = self._sessions.pop(state, None)

        if session is None:
            logger.debug("oauth.session.miss", state_prefix=secret_prefix(state))
            return None

        if session.is_expired(now, self._ttl):
            logger.debug(
                "oauth.session.expired",
                state_prefix=secret_prefix(state),
                provider=session.provider,
            )
            return None

        logger.debug(
            "oauth.session.taken",
            state_prefix=secret_prefix(state),
            provider=session.provider,
        )
        return session

    async def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [
                state
                for state, session in self._sessions.items()
                if session.is_expired(now, self._ttl)
            ]
            for state in expired:
                del self._sessions[state]
            remaining = len(self._sessions)

        if expired:
            logger.info("oauth.session.swept", removed=len(expired), remaining=remaining)
        return len(expired)

    async def size(self) -> int:
        with self._lock:
            return len(self._sessions)


class SessionSweeper:
    """Background task that sweeps a PKCESessionStore on a fixed interval.

    The task runs for the life of the process: start() is called from the
    application lifespan and stop() cancels the timer on shutdown. A
    failing sweep is logged and the loop keeps going.
    """

    def __init__(self, store: PKCESessionStore, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="pkce-session-sweeper")
        logger.info("oauth.sweeper.started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("oauth.sweeper.stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._store.sweep()
            except Exception:
                logger.exception("oauth.sweeper.failed")

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
"""Tests for the PKCE session store and sweeper."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from mm_identity_service.stores.pkce_session_store import (
    InMemoryPKCESessionStore,
    PKCESessionStore,
    SessionSweeper,
)

CALLBACK = "http://localhost:8080/auth/google/callback"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Fixture providing a controllable clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryPKCESessionStore:
    """Fixture providing a store with a 600 second TTL."""
    return InMemoryPKCESessionStore(ttl_seconds=600, clock=clock)


class TestPutAndTake:
    """Tests for put and take."""

    def test_is_a_session_store(self, store: InMemoryPKCESessionStore) -> None:
        assert isinstance(store, PKCESessionStore)

    @pytest.mark.asyncio
    async def test_take_returns_stored_session(self, store: InMemoryPKCESessionStore, clock: FakeClock) -> None:
        """Test that take returns exactly what put stored."""
        await store.put("state-1", "verifier-1", CALLBACK, "google")

        session = await store.take("state-1")

        assert session is not None
        assert session.state == "state-1"
        assert session.code_verifier == "verifier-1"
        assert session.redirect_uri == CALLBACK
        assert session.provider == "google"
        assert session.created_at == clock.now

    @pytest.mark.asyncio
    async def test_take_is_single_use(self, store: InMemoryPKCESessionStore) -> None:
        """A consumed state can never be taken again."""
        await store.put("state-1", "verifier-1", CALLBACK, "google")

        assert await store.take("state-1") is not None
        assert await store.take("state-1") is None
        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_take_unknown_state_returns_none(self, store: InMemoryPKCESessionStore) -> None:
        assert await store.take("never-issued") is None

    @pytest.mark.asyncio
    async def test_take_empty_state_returns_none(self, store: InMemoryPKCESessionStore) -> None:
        assert await store.take("") is None

    @pytest.mark.asyncio
    async def test_put_rejects_empty_state(self, store: InMemoryPKCESessionStore) -> None:
        with pytest.raises(ValueError):
            await store.put("", "verifier", CALLBACK, "google")

    @pytest.mark.asyncio
    async def test_put_overwrites_existing_state(self, store: InMemoryPKCESessionStore) -> None:
        await store.put("state-1", "first", CALLBACK, "google")
        await store.put("state-1", "second", CALLBACK, "google")

        session = await store.take("state-1")

        assert session.code_verifier == "second"
        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_non_pkce_session_has_no_verifier(self, store: InMemoryPKCESessionStore) -> None:
        await store.put("state-fb", None, "http://localhost:8080/auth/facebook/callback", "facebook")

        session = await store.take("state-fb")

        assert session.code_verifier is None
        assert session.provider == "facebook"


class TestExpiry:
    """Tests for TTL handling."""

    @pytest.mark.asyncio
    async def test_session_is_live_just_before_ttl(self, store: InMemoryPKCESessionStore, clock: FakeClock) -> None:
        await store.put("state-1", "verifier", CALLBACK, "google")
        clock.advance(599)

        assert await store.take("state-1") is not None

    @pytest.mark.asyncio
    async def test_session_is_absent_after_ttl(self, store: InMemoryPKCESessionStore, clock: FakeClock) -> None:
        """A take after the TTL returns None even before any sweep has run."""
        await store.put("state-1", "verifier", CALLBACK, "google")
        clock.advance(601)

        assert await store.take("state-1") is None
        assert await store.take("state-1") is None

    @pytest.mark.asyncio
    async def test_session_expires_exactly_at_ttl(self, store: InMemoryPKCESessionStore, clock: FakeClock) -> None:
        await store.put("state-1", "verifier", CALLBACK, "google")
        clock.advance(600)

        assert await store.take("state-1") is None

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired_sessions(
        self, store: InMemoryPKCESessionStore, clock: FakeClock
    ) -> None:
        await store.put("old-1", "v", CALLBACK, "google")
        await store.put("old-2", "v", CALLBACK, "google")
        clock.advance(400)
        await store.put("fresh", "v", CALLBACK, "google")
        clock.advance(300)

        removed = await store.sweep()

        assert removed == 2
        assert await store.size() == 1
        assert await store.take("fresh") is not None

    @pytest.mark.asyncio
    async def test_sweep_on_empty_store(self, store: InMemoryPKCESessionStore) -> None:
        assert await store.sweep() == 0

    def test_ttl_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            InMemoryPKCESessionStore(ttl_seconds=0)

    def test_ttl_property(self, store: InMemoryPKCESessionStore) -> None:
        assert store.ttl == timedelta(seconds=600)


class TestConcurrentTake:
    """Tests for atomic take."""

    @pytest.mark.asyncio
    async def test_concurrent_takes_yield_exactly_one_session(self, store: InMemoryPKCESessionStore) -> None:
        """Two callbacks racing on one state: one wins, the other sees None."""
        await store.put("state-1", "verifier", CALLBACK, "google")

        results = await asyncio.gather(*(store.take("state-1") for _ in range(10)))

        assert sum(1 for r in results if r is not None) == 1

    @pytest.mark.asyncio
    async def test_concurrent_takes_across_threads(self, store: InMemoryPKCESessionStore) -> None:
        """Takes from worker threads are atomic too."""
        await store.put("state-1", "verifier", CALLBACK, "google")

        def take_in_thread():
            return asyncio.run(store.take("state-1"))

        results = await asyncio.gather(*(asyncio.to_thread(take_in_thread) for _ in range(8)))

        assert sum(1 for r in results if r is not None) == 1


class TestSessionSweeper:
    """Tests for the background sweeper."""

    def test_interval_must_be_positive(self, store: InMemoryPKCESessionStore) -> None:
        with pytest.raises(ValueError):
            SessionSweeper(store, interval_seconds=0)

    @pytest.mark.asyncio
    async def test_start_and_stop(self, store: InMemoryPKCESessionStore) -> None:
        sweeper = SessionSweeper(store, interval_seconds=60)

        assert sweeper.running is False
        sweeper.start()
        assert sweeper.running is True

        await sweeper.stop()
        assert sweeper.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, store: InMemoryPKCESessionStore) -> None:
        sweeper = SessionSweeper(store, interval_seconds=60)
        sweeper.start()
        task = sweeper._task

        sweeper.start()

        assert sweeper._task is task
        await sweeper.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, store: InMemoryPKCESessionStore) -> None:
        await SessionSweeper(store, interval_seconds=60).stop()

    @pytest.mark.asyncio
    async def test_sweeper_purges_expired_sessions(
        self, store: InMemoryPKCESessionStore, clock: FakeClock
    ) -> None:
        """Expired sessions are reclaimed without any take."""
        await store.put("abandoned", "v", CALLBACK, "google")
        clock.advance(601)
        sweeper = SessionSweeper(store, interval_seconds=0.01)

        sweeper.start()
        for _ in range(100):
            if await store.size() == 0:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_sweeper_survives_failing_sweep(self) -> None:
        """A sweep that raises is logged and the loop keeps running."""

        class FlakyStore(InMemoryPKCESessionStore):
            def __init__(self) -> None:
                super().__init__(ttl_seconds=600)
                self.calls = 0

            async def sweep(self) -> int:
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("boom")
                return 0

        flaky = FlakyStore()
        sweeper = SessionSweeper(flaky, interval_seconds=0.01)

        sweeper.start()
        for _ in range(100):
            if flaky.calls >= 2:
                break
            await asyncio.sleep(0.01)

        assert sweeper.running is True
        await sweeper.stop()
        assert flaky.calls >= 2

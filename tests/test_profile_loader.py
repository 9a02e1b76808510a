"""Unit tests for ProfileLoader backoff."""

import asyncio

import pytest

from app.models import Role, UserProfile
from app.services import ProfileLoader, RetryPolicy

from tests.conftest import RecordingSleep


class TestRetryPolicy:
    def test_delays_double(self):
        policy = RetryPolicy(max_attempts=5, base_delay=0.5)

        assert [policy.delay_for(n) for n in range(1, 5)] == [0.5, 1.0, 2.0, 4.0]

    def test_defaults(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 5


class TestProfileLoader:
    @pytest.mark.asyncio
    async def test_absent_profile_bounded_attempts(self, profile_store):
        sleep = RecordingSleep()
        loader = ProfileLoader(profile_store, RetryPolicy(max_attempts=5, base_delay=0.1), sleep=sleep)

        result = await loader.load("uid-1")

        assert result is None
        assert profile_store.reads == ["uid-1"] * 5
        assert sleep.delays == pytest.approx([0.1, 0.2, 0.4, 0.8])
        for earlier, later in zip(sleep.delays, sleep.delays[1:]):
            assert later == pytest.approx(earlier * 2)

    @pytest.mark.asyncio
    async def test_returns_first_profile_found(self, profile_store):
        sleep = RecordingSleep()
        profile_store.read_script = [None, None]
        profile_store.docs["uid-1"] = {"role": "coach"}
        loader = ProfileLoader(profile_store, RetryPolicy(max_attempts=5, base_delay=1.0), sleep=sleep)

        result = await loader.load("uid-1")

        assert result.role is Role.COACH
        assert len(profile_store.reads) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, profile_store):
        sleep = RecordingSleep()
        profile_store.read_script = [ConnectionError("unavailable"), UserProfile(role=Role.ATHLETE)]
        loader = ProfileLoader(profile_store, RetryPolicy(max_attempts=3, base_delay=0.2), sleep=sleep)

        result = await loader.load("uid-1")

        assert result.role is Role.ATHLETE
        assert sleep.delays == [0.2]

    @pytest.mark.asyncio
    async def test_no_wait_after_last_attempt(self, profile_store):
        sleep = RecordingSleep()
        loader = ProfileLoader(profile_store, RetryPolicy(max_attempts=1, base_delay=0.2), sleep=sleep)

        assert await loader.load("uid-1") is None
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates_from_backoff(self, profile_store):
        sleep = RecordingSleep(block_at=2)
        loader = ProfileLoader(profile_store, RetryPolicy(max_attempts=5, base_delay=0.1), sleep=sleep)

        task = asyncio.create_task(loader.load("uid-1"))
        await asyncio.wait_for(sleep.blocked.wait(), timeout=1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(profile_store.reads) == 2

# tests/test_gateway.py
"""Test the sliding-window rate limited gateway"""

import asyncio
import time
from unittest.mock import AsyncMock, patch

import pytest

from lyric_resolver.config.settings import RateLimitConfig
from lyric_resolver.core.exceptions import ConfigError, NetworkFailure, RateLimitExceeded
from lyric_resolver.core.gateway import (
    GatewayResponse,
    RateLimitedGateway,
    RateLimitPolicy,
    RateLimitPresets
)


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def ok_response(url="https://api.genius.com/search"):
    return GatewayResponse(status=200, url=url, text="{}")


class TestGatewayConfiguration:
    """Test construction and presets"""

    def test_invalid_budget(self):
        """Test non-positive budgets are rejected"""
        with pytest.raises(ConfigError):
            RateLimitedGateway(0, 60.0)
        with pytest.raises(ConfigError):
            RateLimitedGateway(10, 0)
        with pytest.raises(ConfigError):
            RateLimitedGateway(10, 60.0, max_retries=0)

    def test_policy_parsing(self):
        """Test policies parse from configuration names"""
        assert RateLimitPolicy.from_value("WAIT") is RateLimitPolicy.WAIT
        assert RateLimitPolicy.from_value("fail-fast") is RateLimitPolicy.FAIL_FAST
        assert RateLimitPolicy.from_value(RateLimitPolicy.RETRY_WITH_BACKOFF) is RateLimitPolicy.RETRY_WITH_BACKOFF
        with pytest.raises(ConfigError):
            RateLimitPolicy.from_value("sometimes")

    def test_genius_preset(self):
        """Test the Genius API preset budget"""
        gateway = RateLimitPresets.genius_api()
        assert gateway.max_requests == 10
        assert gateway.window_seconds == 60.0
        assert gateway.policy is RateLimitPolicy.WAIT
        assert gateway.target_host == "api.genius.com"

    def test_other_presets(self):
        """Test the remaining preset budgets"""
        assert RateLimitPresets.conservative().max_requests == 5
        assert RateLimitPresets.aggressive().max_requests == 20
        scraping = RateLimitPresets.scraping()
        assert (scraping.max_requests, scraping.window_seconds) == (1, 3.0)

    def test_from_config(self):
        """Test building a gateway from a settings section"""
        config = RateLimitConfig(max_requests=4, window_seconds=2.0, policy="fail_fast", max_retries=5)
        gateway = RateLimitedGateway.from_config(config, name="api")

        assert gateway.max_requests == 4
        assert gateway.window_seconds == 2.0
        assert gateway.policy is RateLimitPolicy.FAIL_FAST
        assert gateway.max_retries == 5
        assert gateway.target_host == "api.genius.com"

    def test_response_ok(self):
        """Test only 2xx responses are ok"""
        assert GatewayResponse(status=204, url="u", text="").ok
        assert not GatewayResponse(status=404, url="u", text="").ok
        assert not GatewayResponse(status=500, url="u", text="").ok


class TestWaitPolicy:
    """Test the WAIT policy"""

    @pytest.mark.asyncio
    async def test_third_request_waits_for_window(self):
        """Test a request over budget is delayed until the oldest leaves the window"""
        gateway = RateLimitedGateway(2, 0.3, RateLimitPolicy.WAIT)
        started = time.monotonic()
        finished = []

        async def take():
            await gateway.acquire()
            finished.append(time.monotonic() - started)

        await asyncio.gather(take(), take(), take())

        finished.sort()
        assert finished[1] < 0.2
        assert finished[2] >= 0.3 - 0.01

    @pytest.mark.asyncio
    async def test_wait_never_exceeds_budget(self):
        """Test concurrent callers never push the window over budget"""
        gateway = RateLimitedGateway(3, 0.2, RateLimitPolicy.WAIT)
        peaks = []

        async def take():
            await gateway.acquire()
            peaks.append(gateway.snapshot().current_requests)

        await asyncio.gather(*(take() for _ in range(7)))

        assert len(peaks) == 7
        assert max(peaks) <= 3

    @pytest.mark.asyncio
    async def test_network_failure_propagates(self):
        """Test transport errors surface unchanged under WAIT"""
        gateway = RateLimitedGateway(5, 60.0, RateLimitPolicy.WAIT)

        with patch.object(gateway, '_send', AsyncMock(side_effect=NetworkFailure("down"))):
            with pytest.raises(NetworkFailure):
                await gateway.get("https://api.genius.com/search")

        assert gateway.snapshot().current_requests == 1

    @pytest.mark.asyncio
    async def test_cancellation_while_waiting(self):
        """Test a waiting caller can be cancelled without holding the lock"""
        gateway = RateLimitedGateway(1, 60.0, RateLimitPolicy.WAIT)
        await gateway.acquire()

        task = asyncio.create_task(gateway.acquire())
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not gateway._lock.locked()
        assert gateway.snapshot().current_requests == 1


class TestFailFastPolicy:
    """Test the FAIL_FAST policy"""

    @pytest.mark.asyncio
    async def test_rejects_over_budget(self):
        """Test the second request in the window is rejected"""
        clock = FakeClock()
        gateway = RateLimitedGateway(1, 1.0, RateLimitPolicy.FAIL_FAST, clock=clock)

        await gateway.acquire()
        with pytest.raises(RateLimitExceeded) as exc_info:
            await gateway.acquire()

        assert exc_info.value.policy == "fail_fast"
        assert exc_info.value.details['retry_after'] == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_accepts_after_window(self):
        """Test a request is accepted once the window has passed"""
        clock = FakeClock()
        gateway = RateLimitedGateway(1, 1.0, RateLimitPolicy.FAIL_FAST, clock=clock)

        await gateway.acquire()
        clock.advance(1.0)
        await gateway.acquire()

        assert gateway.snapshot().current_requests == 1

    @pytest.mark.asyncio
    async def test_rejection_does_not_record(self):
        """Test rejected requests leave the window untouched"""
        clock = FakeClock()
        gateway = RateLimitedGateway(2, 1.0, RateLimitPolicy.FAIL_FAST, clock=clock)

        await gateway.acquire()
        await gateway.acquire()
        for _ in range(3):
            with pytest.raises(RateLimitExceeded):
                await gateway.acquire()

        assert gateway.snapshot().current_requests == 2


class TestRetryWithBackoffPolicy:
    """Test the RETRY_WITH_BACKOFF policy"""

    @pytest.mark.asyncio
    async def test_exponential_delays_capped(self):
        """Test backoff doubles per attempt up to max_delay, with no sleep after the last attempt"""
        clock = FakeClock()
        gateway = RateLimitedGateway(
            1, 10.0, RateLimitPolicy.RETRY_WITH_BACKOFF,
            base_delay=1.0, max_delay=3.0, max_retries=4, clock=clock
        )
        await gateway.acquire()

        sleep = AsyncMock()
        with patch('lyric_resolver.core.gateway.asyncio.sleep', sleep):
            with pytest.raises(RateLimitExceeded) as exc_info:
                await gateway.acquire()

        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 3.0]
        assert exc_info.value.policy == "retry_with_backoff"
        assert exc_info.value.last_error is None

    @pytest.mark.asyncio
    async def test_succeeds_once_slot_frees(self):
        """Test a retry goes through when the window moves during backoff"""
        clock = FakeClock()
        gateway = RateLimitedGateway(
            1, 1.0, RateLimitPolicy.RETRY_WITH_BACKOFF,
            base_delay=1.0, max_retries=3, clock=clock
        )
        await gateway.acquire()

        async def advance(seconds):
            clock.advance(seconds)

        with patch('lyric_resolver.core.gateway.asyncio.sleep', AsyncMock(side_effect=advance)):
            await gateway.acquire()

        assert gateway.snapshot().current_requests == 1

    @pytest.mark.asyncio
    async def test_wraps_last_failure(self):
        """Test repeated send failures end in RateLimitExceeded chained to the last one"""
        gateway = RateLimitedGateway(10, 60.0, RateLimitPolicy.RETRY_WITH_BACKOFF, max_retries=3)
        failures = [NetworkFailure("first"), NetworkFailure("second"), NetworkFailure("third")]
        send = AsyncMock(side_effect=failures)

        with patch.object(gateway, '_send', send):
            with pytest.raises(RateLimitExceeded) as exc_info:
                await gateway.get("https://api.genius.com/search")

        assert send.await_count == 3
        assert exc_info.value.last_error is failures[-1]
        assert exc_info.value.__cause__ is failures[-1]

    @pytest.mark.asyncio
    async def test_recovers_after_failure(self):
        """Test a failed send is retried"""
        gateway = RateLimitedGateway(10, 60.0, RateLimitPolicy.RETRY_WITH_BACKOFF, max_retries=3)
        send = AsyncMock(side_effect=[NetworkFailure("flaky"), ok_response()])

        with patch.object(gateway, '_send', send):
            response = await gateway.get("https://api.genius.com/search")

        assert response.ok
        assert send.await_count == 2


class TestWindowState:
    """Test host scoping, snapshots and reset"""

    @pytest.mark.asyncio
    async def test_other_hosts_pass_through(self):
        """Test requests outside the target host are neither gated nor recorded"""
        gateway = RateLimitedGateway(1, 60.0, RateLimitPolicy.FAIL_FAST, target_host="api.genius.com")
        send = AsyncMock(return_value=ok_response("https://genius.com/page"))

        with patch.object(gateway, '_send', send):
            await gateway.get("https://genius.com/page")
            await gateway.get("https://genius.com/other-page")
            assert gateway.snapshot().current_requests == 0

            await gateway.get("https://API.genius.com/search")
            with pytest.raises(RateLimitExceeded):
                await gateway.get("https://api.genius.com/search")

        assert send.await_count == 3

    @pytest.mark.asyncio
    async def test_snapshot_does_not_mutate(self):
        """Test snapshots skip expired entries without purging them"""
        clock = FakeClock()
        gateway = RateLimitedGateway(2, 10.0, RateLimitPolicy.FAIL_FAST, clock=clock)
        await gateway.acquire()
        clock.advance(4.0)
        await gateway.acquire()

        snapshot = gateway.snapshot()
        assert snapshot.current_requests == 2
        assert snapshot.remaining == 0
        assert snapshot.is_at_limit()
        assert snapshot.wait_time() == pytest.approx(6.0)

        clock.advance(20.0)
        snapshot = gateway.snapshot()
        assert snapshot.current_requests == 0
        assert snapshot.wait_time() == 0.0
        assert len(gateway._timestamps) == 2

    @pytest.mark.asyncio
    async def test_reset(self):
        """Test reset clears the window"""
        gateway = RateLimitedGateway(1, 60.0, RateLimitPolicy.FAIL_FAST)
        await gateway.acquire()
        gateway.reset()
        await gateway.acquire()
        assert gateway.snapshot().current_requests == 1

"""
Rate-limited HTTP gateway for every outbound request to Genius

Every search call and every page fetch goes through a RateLimitedGateway.
The gateway keeps a sliding window of request timestamps and decides, per
request, whether to let it through, delay it, or reject it, according to a
configured budget (max_requests per window_seconds) and one of three
policies:

- WAIT: block the caller until the oldest timestamp leaves the window,
  then re-check (another task may have taken the slot meanwhile)
- FAIL_FAST: reject immediately with RateLimitExceeded when the budget is spent
- RETRY_WITH_BACKOFF: retry up to max_retries times, sleeping
  min(base_delay * 2**attempt, max_delay) after each rejected attempt,
  then give up with RateLimitExceeded wrapping the last underlying failure

A gateway can be scoped to one host: requests to any other host pass through
untouched and are not recorded.

Concurrency model:
The purge-expired / check-budget / append sequence runs as a single critical
section under an asyncio.Lock, so two tasks can never both observe a free
slot and push the window over budget. The lock is never held across a sleep
or a network call; all sleeps are plain asyncio.sleep calls and therefore
cancellable.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, TypeVar
from urllib.parse import urlparse

import aiohttp

from .exceptions import ConfigError, NetworkFailure, RateLimitExceeded
from ..utils.logger import get_context_logger


T = TypeVar('T')


class RateLimitPolicy(Enum):
    """
    Throttling policies, mutually exclusive per gateway instance

    - WAIT: delay the caller until a slot is available (never fails on budget)
    - FAIL_FAST: reject the request immediately when the budget is exhausted
    - RETRY_WITH_BACKOFF: retry with exponential backoff, then reject
    """
    WAIT = "wait"
    FAIL_FAST = "fail_fast"
    RETRY_WITH_BACKOFF = "retry_with_backoff"

    @classmethod
    def from_value(cls, value: Any) -> 'RateLimitPolicy':
        """
        Parse a policy from its configuration value

        Args:
            value: Policy instance or case-insensitive name ("wait", "FAIL_FAST", ...)

        Returns:
            Matching RateLimitPolicy

        Raises:
            ConfigError: If the value names no known policy
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace('-', '_')
        for policy in cls:
            if policy.value == normalized:
                return policy
        raise ConfigError(
            f"Unknown rate limit policy: {value}",
            details={'valid_policies': [p.value for p in cls]}
        )


@dataclass(frozen=True)
class RateWindowSnapshot:
    """
    Point-in-time, read-only view of a gateway's rate window

    Used for diagnostics only; taking a snapshot never mutates the window.
    Times are expressed on the gateway clock (time.monotonic by default).

    Attributes:
        current_requests: Requests recorded inside the trailing window
        max_requests: Configured budget
        remaining: Requests still allowed before the budget is exhausted
        window_seconds: Window duration
        next_available_slot: Clock time at which the oldest recorded request
                             leaves the window (0.0 when the window is empty)
        taken_at: Clock time the snapshot was taken
    """
    current_requests: int
    max_requests: int
    remaining: int
    window_seconds: float
    next_available_slot: float
    taken_at: float = 0.0

    def is_at_limit(self) -> bool:
        """Check whether the window was full when the snapshot was taken"""
        return self.current_requests >= self.max_requests

    def wait_time(self) -> float:
        """Seconds a WAIT caller would have blocked at snapshot time"""
        if not self.is_at_limit():
            return 0.0
        return max(0.0, self.next_available_slot - self.taken_at)

    def __str__(self) -> str:
        return (
            f"RateWindowSnapshot(requests: {self.current_requests}/{self.max_requests}, "
            f"remaining: {self.remaining}, wait: {self.wait_time():.3f}s)"
        )


@dataclass(frozen=True)
class GatewayResponse:
    """
    Fully read HTTP response returned by the gateway

    The body is read before the underlying connection is released, so the
    response can be passed around freely after the request completes.
    """
    status: int
    url: str
    text: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True for 2xx responses"""
        return 200 <= self.status < 300


async def _no_request() -> None:
    """Send step for a bare budget acquisition"""
    return None


class RateLimitedGateway:
    """
    Sliding-window rate limiter wrapping an aiohttp session

    The window state (timestamps deque plus configuration) is owned
    exclusively by this instance and only exposed through snapshot().
    One instance normally lives for the whole process; share it between
    every component that talks to the same host.

    Usage:
        async with RateLimitedGateway(10, 60.0, target_host="api.genius.com") as gateway:
            response = await gateway.request("GET", "https://api.genius.com/search", params={'q': q})
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        policy: Any = RateLimitPolicy.WAIT,
        target_host: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 15.0,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        max_retries: int = 3,
        headers: Optional[Dict[str, str]] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "gateway"
    ):
        """
        Initialize the gateway and its empty rate window

        Args:
            max_requests: Requests allowed per window (must be positive)
            window_seconds: Window duration in seconds (must be positive)
            policy: RateLimitPolicy or its configuration name
            target_host: Only gate requests to this host when set
            session: Existing aiohttp session to use (not closed by the gateway)
            timeout: Total timeout for each HTTP request in seconds
            base_delay: First backoff delay for RETRY_WITH_BACKOFF
            max_delay: Backoff ceiling for RETRY_WITH_BACKOFF
            max_retries: Attempt ceiling for RETRY_WITH_BACKOFF
            headers: Default headers sent with every request
            clock: Monotonic time source, injectable for tests
            name: Label used in log messages

        Raises:
            ConfigError: If the budget, window or retry ceiling is invalid
        """
        if not isinstance(max_requests, int) or max_requests <= 0:
            raise ConfigError(f"max_requests must be a positive integer, got {max_requests!r}")
        if window_seconds <= 0:
            raise ConfigError(f"window_seconds must be positive, got {window_seconds!r}")
        if max_retries <= 0:
            raise ConfigError(f"max_retries must be positive, got {max_retries!r}")

        self.logger = get_context_logger(__name__, name)
        self.name = name

        # Budget and policy configuration
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self.policy = RateLimitPolicy.from_value(policy)
        self.target_host = target_host.lower() if target_host else None

        # Backoff configuration for RETRY_WITH_BACKOFF
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_retries = max_retries

        # HTTP configuration
        self.timeout = timeout
        self.default_headers = dict(headers or {})
        self._session = session
        self._owns_session = session is None

        # Rate window state, guarded by _lock
        self._clock = clock
        self._timestamps: Deque[float] = deque()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: Any,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 15.0,
        name: str = "gateway"
    ) -> 'RateLimitedGateway':
        """
        Build a gateway from a rate limit configuration section

        Args:
            config: Object exposing max_requests, window_seconds, policy,
                    target_host, base_delay, max_delay and max_retries
            session: Optional shared aiohttp session
            timeout: HTTP timeout in seconds
            name: Label used in log messages

        Returns:
            Configured RateLimitedGateway
        """
        return cls(
            max_requests=int(config.max_requests),
            window_seconds=float(config.window_seconds),
            policy=config.policy,
            target_host=config.target_host or None,
            session=session,
            timeout=timeout,
            base_delay=float(config.base_delay),
            max_delay=float(config.max_delay),
            max_retries=int(config.max_retries),
            name=name
        )

    # ==================== RATE WINDOW ====================

    def applies_to(self, url: Optional[str]) -> bool:
        """
        Check whether a request to this URL is subject to the budget

        Args:
            url: Request URL, None for a bare acquisition

        Returns:
            True if the gateway is unscoped or the URL host is the target host
        """
        if self.target_host is None or url is None:
            return True
        host = urlparse(url).hostname or ""
        return host.lower() == self.target_host

    def _purge_expired(self, now: float) -> None:
        """Drop timestamps that left the trailing window (caller holds the lock)"""
        window_start = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= window_start:
            self._timestamps.popleft()

    def _try_record(self) -> Optional[float]:
        """
        Purge, check and append as one step (caller holds the lock)

        Returns:
            None if a slot was taken, otherwise the seconds until the oldest
            recorded request leaves the window
        """
        now = self._clock()
        self._purge_expired(now)

        if len(self._timestamps) < self.max_requests:
            self._timestamps.append(now)
            return None

        oldest = self._timestamps[0]
        return max(0.0, self.window_seconds - (now - oldest))

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff for the given zero-based attempt, capped at max_delay"""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def _wait_for_slot(self) -> None:
        """WAIT policy: sleep outside the lock until a slot can be recorded"""
        while True:
            async with self._lock:
                wait_time = self._try_record()
            if wait_time is None:
                return
            self.logger.debug(
                f"Rate limit reached ({self.max_requests} in "
                f"{self.window_seconds}s). Waiting {wait_time:.3f}s"
            )
            await asyncio.sleep(wait_time)

    async def _claim_or_fail(self) -> None:
        """FAIL_FAST policy: take a slot or raise immediately"""
        async with self._lock:
            wait_time = self._try_record()
        if wait_time is not None:
            self.logger.warning("Rate limit exceeded. Request rejected")
            raise RateLimitExceeded(
                f"Rate limit exceeded: {self.max_requests} requests in {self.window_seconds}s",
                policy=self.policy.value,
                details={
                    'max_requests': self.max_requests,
                    'window_seconds': self.window_seconds,
                    'retry_after': wait_time
                }
            )

    async def _run_with_backoff(self, send: Callable[[], Awaitable[T]]) -> T:
        """
        RETRY_WITH_BACKOFF policy

        An attempt fails when the budget is exhausted (followed by a backoff
        sleep, except after the last attempt) or when the gated request itself
        raises (recorded as the last underlying failure). After max_retries
        failed attempts the request is rejected with RateLimitExceeded chained
        to that last failure.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                async with self._lock:
                    wait_time = self._try_record()

                if wait_time is None:
                    return await send()

                if attempt == self.max_retries - 1:
                    self.logger.debug(f"Attempt {attempt + 1}/{self.max_retries} rate limited. Giving up")
                    break

                backoff = self._backoff_delay(attempt)
                self.logger.debug(
                    f"Attempt {attempt + 1}/{self.max_retries} rate limited. "
                    f"Backing off {backoff:.3f}s"
                )
                await asyncio.sleep(backoff)

            except Exception as e:
                last_error = e
                self.logger.error(f"Attempt {attempt + 1} failed: {e}")

        error = RateLimitExceeded(
            f"Rate limit exceeded after {self.max_retries} attempts",
            policy=self.policy.value,
            last_error=last_error,
            details={'max_requests': self.max_requests, 'window_seconds': self.window_seconds}
        )
        if last_error is not None:
            raise error from last_error
        raise error

    async def _run_gated(self, send: Callable[[], Awaitable[T]]) -> T:
        """Dispatch a request step through the configured policy"""
        if self.policy is RateLimitPolicy.WAIT:
            await self._wait_for_slot()
            return await send()

        if self.policy is RateLimitPolicy.FAIL_FAST:
            await self._claim_or_fail()
            return await send()

        return await self._run_with_backoff(send)

    async def acquire(self, url: Optional[str] = None) -> None:
        """
        Take one slot from the budget without performing a request

        Applies the configured policy exactly as request() does. Requests to
        hosts outside the gateway scope return immediately without recording.

        Args:
            url: Target URL used for host scoping (None always counts)

        Raises:
            RateLimitExceeded: Under FAIL_FAST or RETRY_WITH_BACKOFF when the budget is spent
        """
        if not self.applies_to(url):
            return
        await self._run_gated(_no_request)

    def snapshot(self) -> RateWindowSnapshot:
        """
        Read the window state without mutating it

        Expired timestamps are skipped, not purged; the purge happens lazily
        on the next gate check.

        Returns:
            RateWindowSnapshot for diagnostics
        """
        now = self._clock()
        window_start = now - self.window_seconds
        live = [ts for ts in self._timestamps if ts > window_start]
        current = len(live)

        return RateWindowSnapshot(
            current_requests=current,
            max_requests=self.max_requests,
            remaining=max(0, self.max_requests - current),
            window_seconds=self.window_seconds,
            next_available_slot=(live[0] + self.window_seconds) if live else 0.0,
            taken_at=now
        )

    def reset(self) -> None:
        """Clear every recorded timestamp"""
        self._timestamps.clear()
        self.logger.debug("Rate limiter reset")

    # ==================== HTTP ====================

    async def _get_session(self) -> aiohttp.ClientSession:
        """Create the owned aiohttp session on first use"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self.default_headers
            )
            self._owns_session = True
        return self._session

    async def _send(self, method: str, url: str, **kwargs: Any) -> GatewayResponse:
        """
        Perform one HTTP request and read the full body

        Raises:
            NetworkFailure: On connection errors and timeouts
        """
        session = await self._get_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                text = await response.text(errors='replace')
                return GatewayResponse(
                    status=response.status,
                    url=str(response.url),
                    text=text,
                    headers=dict(response.headers)
                )
        except asyncio.TimeoutError as e:
            raise NetworkFailure(
                f"Request timed out after {self.timeout}s: {url}",
                details={'url': url}
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkFailure(
                f"Request failed: {e}",
                details={'url': url}
            ) from e

    async def request(self, method: str, url: str, **kwargs: Any) -> GatewayResponse:
        """
        Gate a request through the rate window, then perform it

        Args:
            method: HTTP method
            url: Absolute request URL
            **kwargs: Passed to aiohttp (params, headers, ...)

        Returns:
            GatewayResponse with status and body, whatever the status code

        Raises:
            RateLimitExceeded: Under FAIL_FAST or RETRY_WITH_BACKOFF when the budget is spent
            NetworkFailure: On transport errors (WAIT and FAIL_FAST policies)
        """
        async def send() -> GatewayResponse:
            return await self._send(method, url, **kwargs)

        if not self.applies_to(url):
            return await send()
        return await self._run_gated(send)

    async def get(self, url: str, **kwargs: Any) -> GatewayResponse:
        """Shorthand for request('GET', url, ...)"""
        return await self.request('GET', url, **kwargs)

    async def close(self) -> None:
        """Close the HTTP session if the gateway created it"""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> 'RateLimitedGateway':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class RateLimitPresets:
    """Ready-made gateways for common budgets"""

    @staticmethod
    def genius_api(**kwargs: Any) -> RateLimitedGateway:
        """Genius API: 10 requests per 60 seconds, scoped to api.genius.com"""
        return RateLimitedGateway(
            max_requests=10,
            window_seconds=60.0,
            policy=RateLimitPolicy.WAIT,
            target_host="api.genius.com",
            name="genius-api",
            **kwargs
        )

    @staticmethod
    def conservative(**kwargs: Any) -> RateLimitedGateway:
        """5 requests per minute"""
        return RateLimitedGateway(5, 60.0, RateLimitPolicy.WAIT, name="conservative", **kwargs)

    @staticmethod
    def aggressive(**kwargs: Any) -> RateLimitedGateway:
        """20 requests per minute"""
        return RateLimitedGateway(20, 60.0, RateLimitPolicy.WAIT, name="aggressive", **kwargs)

    @staticmethod
    def scraping(**kwargs: Any) -> RateLimitedGateway:
        """Page scraping: 1 request every 3 seconds"""
        return RateLimitedGateway(1, 3.0, RateLimitPolicy.WAIT, name="scraping", **kwargs)

"""Cooperative rate limiting from per-response quota telemetry."""

import logging
import time
from collections.abc import Callable, Mapping

from .errors import RateLimitedError

logger = logging.getLogger(__name__)

# Seconds added past the reported reset before issuing the next request
RESET_MARGIN = 1.0


class RateLimitGovernor:
    """Track remaining quota and pause before the client is starved.

    One governor is shared by every request made over a connection. Callers
    invoke ``wait()`` right before each request and feed the response
    telemetry back through ``observe()`` or ``observe_headers()``. The wait
    happens synchronously inside the request that would exceed the quota.

    Attributes:
        threshold: Pause once fewer requests than this remain
        max_wait: Longest pause in seconds; longer waits raise RateLimitedError
        remaining: Last reported remaining quota, None when unknown
        reset_at: Epoch seconds at which the quota resets, None when unknown
    """

    def __init__(
        self,
        threshold: int = 10,
        max_wait: float = 300.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.threshold = threshold
        self.max_wait = max_wait
        self.remaining: int | None = None
        self.reset_at: float | None = None
        self._clock = clock
        self._sleep = sleep

    def observe(self, remaining: int | None, reset_at: float | None) -> None:
        """Record quota telemetry; None leaves a value untouched."""
        if remaining is not None:
            self.remaining = remaining
        if reset_at is not None:
            self.reset_at = reset_at

    def observe_headers(self, headers: Mapping[str, str]) -> None:
        """Record quota telemetry from response headers.

        Reads ``X-RateLimit-Remaining``, ``X-RateLimit-Reset`` (epoch seconds)
        and ``Retry-After`` (seconds). A ``Retry-After`` means the quota is
        exhausted until that delay has passed.
        """
        lowered = {key.lower(): value for key, value in headers.items()}

        remaining = _parse_number(lowered.get("x-ratelimit-remaining"), "remaining")
        reset = _parse_number(lowered.get("x-ratelimit-reset"), "reset")
        retry_after = _parse_number(lowered.get("retry-after"), "retry-after")

        if retry_after is not None:
            remaining = 0
            reset = self._clock() + retry_after

        self.observe(
            int(remaining) if remaining is not None else None,
            reset,
        )

    def observe_throttled(self, headers: Mapping[str, str]) -> None:
        """Record a throttled response.

        The quota is spent, and only the reset telemetry of this response
        counts: without it the reset is unknown and ``wait()`` raises.
        """
        self.reset_at = None
        self.observe_headers(headers)
        self.remaining = 0

    def wait(self) -> float:
        """Block until the quota allows another request.

        Returns:
            Seconds slept, 0 when no pause was needed

        Raises:
            RateLimitedError: If the reset is unknown or further away than max_wait
        """
        if self.remaining is None or self.remaining >= self.threshold:
            return 0.0

        if self.reset_at is None:
            raise RateLimitedError(
                message=f"Rate limit low ({self.remaining} remaining) with unknown reset"
            )

        delay = self.reset_at - self._clock()
        if delay <= 0:
            self._clear()
            return 0.0

        if delay > self.max_wait:
            raise RateLimitedError(self.reset_at)

        sleep_time = delay + RESET_MARGIN
        logger.warning(
            "Rate limit low (%d remaining), sleeping for %.1f seconds",
            self.remaining,
            sleep_time,
        )
        self._sleep(sleep_time)
        self._clear()
        return sleep_time

    def _clear(self) -> None:
        self.remaining = None
        self.reset_at = None


def _parse_number(value: str | None, name: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Non-numeric rate limit %s header: %r", name, value)
        return None

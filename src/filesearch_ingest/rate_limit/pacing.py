"""Request pacing policies for sequential upload loops.

The batch uploader waits on a pacer after every attempt so that third-party
rate limits are respected without issuing concurrent requests. Policies:

- fixed: sleep a constant interval after every attempt (default 500 ms)
- token_bucket: allow bursts up to ``burst`` requests, refilled at
  ``rate_per_second``; sleeps only when the bucket is empty
- none: never sleeps (tests, dry runs)

Time is tracked in integer nanoseconds to avoid float drift.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Final, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ENV_PACING_MODE: Final[str] = "FILESEARCH_PACING_MODE"
ENV_PACING_INTERVAL_SECONDS: Final[str] = "FILESEARCH_PACING_INTERVAL_SECONDS"
ENV_PACING_RATE_PER_SECOND: Final[str] = "FILESEARCH_PACING_RATE_PER_SECOND"
ENV_PACING_BURST: Final[str] = "FILESEARCH_PACING_BURST"

DEFAULT_INTERVAL_SECONDS: Final[float] = 0.5
DEFAULT_RATE_PER_SECOND: Final[float] = 2.0
DEFAULT_BURST: Final[int] = 1

NANOSECONDS_PER_SECOND: Final[int] = 1_000_000_000

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], int]


class PacingMode(StrEnum):
    """Pacing policy selector."""

    FIXED = "fixed"
    TOKEN_BUCKET = "token_bucket"
    NONE = "none"


class PacingConfigError(Exception):
    """Raised when pacing configuration is invalid."""


@runtime_checkable
class Pacer(Protocol):
    """Waits between sequential requests."""

    async def wait(self) -> None:
        """Suspend until the next request may be issued."""
        ...


class NoDelayPacer:
    """Pacer that never waits."""

    async def wait(self) -> None:
        return None


class FixedIntervalPacer:
    """Sleeps a constant interval on every call."""

    def __init__(
        self,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if interval_seconds < 0:
            raise PacingConfigError(
                f"interval_seconds must be non-negative, got {interval_seconds}"
            )
        self._interval_seconds = interval_seconds
        self._sleep = sleep

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    async def wait(self) -> None:
        if self._interval_seconds > 0:
            await self._sleep(self._interval_seconds)


class TokenBucketPacer:
    """Token bucket pacer.

    Starts full with ``burst`` tokens. Each ``wait()`` consumes one token;
    when none is available it sleeps exactly long enough for one to refill.
    """

    def __init__(
        self,
        rate_per_second: float = DEFAULT_RATE_PER_SECOND,
        burst: int = DEFAULT_BURST,
        *,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic_ns,
    ) -> None:
        """Initialize bucket.

        Args:
            rate_per_second: Tokens added per second.
            burst: Maximum tokens held (burst capacity).
            sleep: Awaitable sleep, injectable for tests.
            clock: Monotonic nanosecond clock, injectable for tests.

        Raises:
            PacingConfigError: If rate or burst is not positive.
        """
        if rate_per_second <= 0:
            raise PacingConfigError(f"rate_per_second must be positive, got {rate_per_second}")
        if burst <= 0:
            raise PacingConfigError(f"burst must be a positive integer, got {burst}")

        self._capacity_ns = burst * NANOSECONDS_PER_SECOND
        self._refill_rate_ns = int(rate_per_second * NANOSECONDS_PER_SECOND)
        self._tokens_ns = self._capacity_ns
        self._sleep = sleep
        self._clock = clock
        self._last_refill_ns = clock()

    def _refill(self) -> None:
        now_ns = self._clock()
        elapsed_ns = now_ns - self._last_refill_ns
        if elapsed_ns > 0:
            refill_ns = (elapsed_ns * self._refill_rate_ns) // NANOSECONDS_PER_SECOND
            self._tokens_ns = min(self._capacity_ns, self._tokens_ns + refill_ns)
            self._last_refill_ns = now_ns

    async def wait(self) -> None:
        self._refill()
        if self._tokens_ns < NANOSECONDS_PER_SECOND:
            deficit_ns = NANOSECONDS_PER_SECOND - self._tokens_ns
            wait_ns = -(-deficit_ns * NANOSECONDS_PER_SECOND // self._refill_rate_ns)
            await self._sleep(wait_ns / NANOSECONDS_PER_SECOND)
            self._refill()
            # a coarse clock may under-report the sleep; never go negative
            self._tokens_ns = max(self._tokens_ns, NANOSECONDS_PER_SECOND)
        self._tokens_ns -= NANOSECONDS_PER_SECOND


@dataclass(frozen=True)
class PacingConfig:
    """Pacing configuration (immutable).

    Attributes:
        mode: Which policy to build.
        interval_seconds: Sleep per attempt for FIXED mode.
        rate_per_second: Refill rate for TOKEN_BUCKET mode.
        burst: Bucket capacity for TOKEN_BUCKET mode.
    """

    mode: PacingMode = PacingMode.FIXED
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    rate_per_second: float = DEFAULT_RATE_PER_SECOND
    burst: int = DEFAULT_BURST

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise PacingConfigError(
                f"{ENV_PACING_INTERVAL_SECONDS} must be non-negative, got {self.interval_seconds}"
            )
        if self.rate_per_second <= 0:
            raise PacingConfigError(
                f"{ENV_PACING_RATE_PER_SECOND} must be positive, got {self.rate_per_second}"
            )
        if self.burst <= 0:
            raise PacingConfigError(
                f"{ENV_PACING_BURST} must be a positive integer, got {self.burst}"
            )


def _parse_float(env: Mapping[str, str], env_var: str, default: float) -> float:
    raw = env.get(env_var, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise PacingConfigError(f"{env_var} must be a number, got '{raw}'") from e


def _parse_int(env: Mapping[str, str], env_var: str, default: int) -> int:
    raw = env.get(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise PacingConfigError(f"{env_var} must be an integer, got '{raw}'") from e


def load_pacing_config(env: Mapping[str, str] | None = None) -> PacingConfig:
    """Load pacing configuration from environment variables.

    Args:
        env: Mapping to read instead of os.environ.

    Environment variables:
        FILESEARCH_PACING_MODE: fixed | token_bucket | none (default: fixed)
        FILESEARCH_PACING_INTERVAL_SECONDS: FIXED sleep (default: 0.5)
        FILESEARCH_PACING_RATE_PER_SECOND: TOKEN_BUCKET refill rate (default: 2.0)
        FILESEARCH_PACING_BURST: TOKEN_BUCKET capacity (default: 1)

    Raises:
        PacingConfigError: If any value is invalid.
    """
    if env is None:
        env = os.environ

    raw_mode = env.get(ENV_PACING_MODE, "").strip().lower() or PacingMode.FIXED.value
    try:
        mode = PacingMode(raw_mode)
    except ValueError as e:
        valid = ", ".join(m.value for m in PacingMode)
        raise PacingConfigError(
            f"{ENV_PACING_MODE} must be one of {valid}, got '{raw_mode}'"
        ) from e

    return PacingConfig(
        mode=mode,
        interval_seconds=_parse_float(env, ENV_PACING_INTERVAL_SECONDS, DEFAULT_INTERVAL_SECONDS),
        rate_per_second=_parse_float(env, ENV_PACING_RATE_PER_SECOND, DEFAULT_RATE_PER_SECOND),
        burst=_parse_int(env, ENV_PACING_BURST, DEFAULT_BURST),
    )


def build_pacer(config: PacingConfig | None = None, *, sleep: SleepFn = asyncio.sleep) -> Pacer:
    """Build the pacer described by ``config`` (loaded from env when None)."""
    if config is None:
        config = load_pacing_config()

    if config.mode == PacingMode.NONE:
        return NoDelayPacer()
    if config.mode == PacingMode.TOKEN_BUCKET:
        logger.debug(
            "Using token bucket pacing: rate=%s/s burst=%s", config.rate_per_second, config.burst
        )
        return TokenBucketPacer(config.rate_per_second, config.burst, sleep=sleep)
    return FixedIntervalPacer(config.interval_seconds, sleep=sleep)

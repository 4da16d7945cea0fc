"""Exponential backoff around single plug exchanges"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, TypeVar

from ediplug.errors import MalformedResponse, RetriesExhausted, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A device reply that parses is final, even when it means "no"
RETRYABLE_ERRORS = (TransportError, MalformedResponse)


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Backoff parameters.

    Attributes:
        initial_interval: First wait in seconds
        multiplier: Growth factor applied to the wait after every failure
        max_interval: Upper bound for a single wait
        max_elapsed_time: Give up once this many seconds passed without success
        randomization_factor: Each wait is drawn from interval * (1 +/- factor)
    """
    initial_interval: float = 0.5
    multiplier: float = 1.5
    max_interval: float = 60.0
    max_elapsed_time: float = 5.0
    randomization_factor: float = 0.5

    def intervals(self) -> Iterator[float]:
        """Yield the successive waits, jittered, without end."""
        interval = self.initial_interval
        while True:
            delta = self.randomization_factor * interval
            yield random.uniform(interval - delta, interval + delta)
            interval = min(interval * self.multiplier, self.max_interval)


DEFAULT_BACKOFF = BackoffPolicy()


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: BackoffPolicy = DEFAULT_BACKOFF,
    clock: Callable[[], float] = time.monotonic,
    description: str = "exchange"
) -> T:
    """
    Run operation until it succeeds or the elapsed time budget is spent.

    TransportError and MalformedResponse trigger a retry; any other
    exception propagates immediately.

    Args:
        operation: Zero-argument coroutine function performing one attempt
        policy: Backoff parameters
        clock: Monotonic time source in seconds
        description: Used in log messages

    Raises:
        RetriesExhausted: Budget spent; chained from the last error
    """
    started = clock()
    attempts = 0
    intervals = policy.intervals()

    while True:
        attempts += 1
        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            last_error = e

        elapsed = clock() - started
        if elapsed >= policy.max_elapsed_time:
            logger.debug(f"{description}: giving up after {attempts} attempts ({elapsed:.1f}s)")
            raise RetriesExhausted(attempts, elapsed, last_error) from last_error

        delay = next(intervals)
        logger.debug(
            f"{description}: attempt {attempts} failed ({last_error}). "
            f"Retrying in {delay:.2f}s..."
        )
        await asyncio.sleep(delay)

"""Bounded retry policy shared by every retry site in the launcher.

An operation is an async callable with no arguments. It counts as failed when
it raises or returns a falsy value (``None``/``False``), which is how the
ledger and aggregator clients report soft failures. The caller decides what an
exhausted policy means: the lookup-table builder aborts the launch, the sweep
logs and moves on.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to run an operation and how long to wait in between.

    ``delays[i]`` is the pause after failed attempt ``i + 1``; the last value is
    reused when there are more attempts than delays.
    """

    max_attempts: int
    delays: Sequence[float] = (0.0,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def delay_after(self, attempt: int) -> float:
        if not self.delays:
            return 0.0
        return self.delays[min(attempt - 1, len(self.delays) - 1)]


@dataclass
class RetryResult(Generic[T]):
    """Outcome of a bounded retry run."""

    success: bool
    value: T | None = None
    attempts: int = 0
    error: str | None = None


async def attempt(
    operation: Callable[[], Awaitable[T | None]],
    policy: RetryPolicy,
    *,
    label: str = "operation",
    should_stop: Callable[[], Awaitable[bool]] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RetryResult[T]:
    """Run ``operation`` until it succeeds or ``policy.max_attempts`` is used up.

    ``should_stop`` is checked before every attempt after the first; returning
    True ends the run early as a success with no value (used by the sweep when
    a balance has already reached zero).
    """
    last_error: str | None = None

    for n in range(1, policy.max_attempts + 1):
        if n > 1 and should_stop is not None and await should_stop():
            return RetryResult(success=True, attempts=n - 1)

        try:
            value = await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            value = None
            last_error = f"{type(e).__name__}: {e}"
        else:
            if value:
                if n > 1:
                    logger.debug(f"[RETRY] {label} succeeded on attempt {n}")
                return RetryResult(success=True, value=value, attempts=n)
            last_error = "no result"

        logger.debug(
            f"[RETRY] {label} attempt {n}/{policy.max_attempts} failed: {last_error}"
        )
        if n < policy.max_attempts:
            delay = policy.delay_after(n)
            if delay > 0:
                await sleep(delay)

    logger.warning(f"[RETRY] {label} gave up after {policy.max_attempts} attempts: {last_error}")
    return RetryResult(success=False, attempts=policy.max_attempts, error=last_error)

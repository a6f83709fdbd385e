"""Ordered-strategy driver.

Probing, auth rotation and endpoint fallback all share one shape: a fixed
list of candidates tried in declaration order where the first success
short-circuits the rest. `try_in_order` is that loop, kept separate so
attempt order and short-circuiting can be tested on their own.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from ghlbridge.connectors.base import ProbeDeadlineExceeded

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class Attempt(Generic[T, R]):
    """One candidate and what trying it produced."""

    candidate: T
    result: R
    succeeded: bool


@dataclass
class StrategyRun(Generic[T, R]):
    """Every attempt made, in order, plus the winner if any."""

    attempts: List[Attempt[T, R]] = field(default_factory=list)
    winner: Optional[Attempt[T, R]] = None
    deadline_error: Optional[ProbeDeadlineExceeded] = None

    @property
    def succeeded(self) -> bool:
        return self.winner is not None

    @property
    def last(self) -> Optional[Attempt[T, R]]:
        return self.attempts[-1] if self.attempts else None


async def try_in_order(
    candidates: Sequence[T],
    attempt: Callable[[T], Awaitable[Tuple[bool, R]]],
    deadline_seconds: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> StrategyRun[T, R]:
    """Try candidates in order until one reports success.

    Args:
        candidates: Candidates in declaration order
        attempt: Coroutine returning (succeeded, result) for one candidate
        deadline_seconds: Optional overall budget for the whole run
        clock: Monotonic clock used for the deadline

    Returns:
        StrategyRun with every attempt; `winner` is the first success.
        When the deadline passes, the run stops early and records
        `deadline_error` instead of raising.
    """
    run: StrategyRun[T, R] = StrategyRun()
    started = clock()

    for candidate in candidates:
        remaining = None
        if deadline_seconds is not None:
            remaining = deadline_seconds - (clock() - started)
            if remaining <= 0:
                run.deadline_error = ProbeDeadlineExceeded(deadline_seconds)
                break

        try:
            if remaining is None:
                succeeded, result = await attempt(candidate)
            else:
                succeeded, result = await asyncio.wait_for(attempt(candidate), remaining)
        except asyncio.TimeoutError:
            run.deadline_error = ProbeDeadlineExceeded(deadline_seconds or 0.0)
            break

        record = Attempt(candidate=candidate, result=result, succeeded=succeeded)
        run.attempts.append(record)
        if succeeded:
            run.winner = record
            break

    return run

"""Poll-with-deadline primitive for long-running provider jobs."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollTimeoutError(Exception):
    """The polled job did not finish within its attempt or time budget.

    Attributes:
        attempts: Number of polls issued before giving up.
        elapsed: Seconds spent polling.
    """

    def __init__(self, attempts: int, elapsed: float) -> None:
        super().__init__(f"Job still running after {attempts} polls ({elapsed:.0f}s)")
        self.attempts = attempts
        self.elapsed = elapsed


async def poll_until(
    initial: T,
    fetch: Callable[[T], Awaitable[T]],
    is_done: Callable[[T], bool],
    *,
    interval: float,
    max_attempts: int | None = None,
    timeout: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Refresh *initial* via *fetch* until *is_done* holds.

    Between polls the coroutine sleeps for *interval* seconds.  The loop is
    bounded by *max_attempts* polls and by a wall-clock *timeout*; either
    limit raises :class:`PollTimeoutError`.  With neither set the loop only
    ends when the job completes or the awaiting task is cancelled.

    Args:
        initial: The job handle returned when the job was submitted.
        fetch: Coroutine returning a refreshed handle for the previous one.
        is_done: Predicate telling whether a handle has reached completion.
        interval: Seconds to sleep before each poll.
        max_attempts: Maximum number of polls.
        timeout: Maximum seconds to spend polling.
        sleep: Sleep coroutine, injectable for tests.
        clock: Monotonic clock, injectable for tests.

    Returns:
        The first handle for which *is_done* is true.

    Raises:
        PollTimeoutError: If a limit is reached first.
    """
    started = clock()
    attempts = 0
    current = initial

    while not is_done(current):
        elapsed = clock() - started
        if max_attempts is not None and attempts >= max_attempts:
            raise PollTimeoutError(attempts, elapsed)
        if timeout is not None and elapsed + interval > timeout:
            raise PollTimeoutError(attempts, elapsed)

        await sleep(interval)
        attempts += 1
        current = await fetch(current)
        logger.debug(f"Poll {attempts}: done={is_done(current)}")

    return current

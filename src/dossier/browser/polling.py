"""Transition poller - bounded wait for an old page state to go away."""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
import structlog

from dossier.core.errors import WaitTimeoutError

logger = structlog.get_logger()


@dataclass
class PollResult:
    """Outcome of a polling wait."""
    cleared: bool
    elapsed_seconds: float
    ticks: int
    last_error: Optional[str] = None

    def raise_for_timeout(self, what: str) -> None:
        """Raise WaitTimeoutError if the state never cleared."""
        if not self.cleared:
            raise WaitTimeoutError(
                f"{what} did not complete within {self.elapsed_seconds:.0f} seconds.",
                timeout_seconds=self.elapsed_seconds,
            )


async def poll_until_cleared(
    still_present: Callable[[], Awaitable[bool]],
    interval: float,
    deadline: float,
    on_tick: Optional[Callable[[int, float], None]] = None,
) -> PollResult:
    """
    Poll ``still_present`` until it returns False.

    Sleeps ``interval`` seconds before every evaluation. An exception from
    the predicate means the page is mid-navigation and counts as still
    present. Gives up once ``deadline`` seconds have elapsed; a timeout is
    never reported before the deadline.

    Args:
        still_present: async predicate, True while the old state remains
        interval: seconds between evaluations
        deadline: overall budget in seconds
        on_tick: called with (tick, elapsed_seconds) after each evaluation
    """
    start = time.monotonic()
    ticks = 0
    last_error: Optional[str] = None

    while True:
        await asyncio.sleep(interval)
        ticks += 1
        try:
            present = await still_present()
        except Exception as e:
            present = True
            last_error = str(e)
            logger.debug("poll_evaluation_failed", tick=ticks, error=last_error)

        elapsed = time.monotonic() - start
        if on_tick is not None:
            on_tick(ticks, elapsed)

        if not present:
            return PollResult(cleared=True, elapsed_seconds=elapsed, ticks=ticks, last_error=last_error)

        if elapsed >= deadline:
            logger.warning("poll_deadline_exceeded", ticks=ticks, deadline=deadline)
            return PollResult(cleared=False, elapsed_seconds=elapsed, ticks=ticks, last_error=last_error)

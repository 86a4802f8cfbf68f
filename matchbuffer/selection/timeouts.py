"""
Race an awaitable against a timer.

The timer winning is "no result", not an error. The losing call is not
cancelled: it keeps running in the background and its late result (or
exception) is collected and ignored.
"""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Strong references to abandoned calls until they finish
_abandoned: set[asyncio.Future] = set()


@dataclass(frozen=True)
class RaceOutcome(Generic[T]):
    completed: bool
    value: T | None = None


def _collect_late_result(task: asyncio.Future) -> None:
    _abandoned.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("late_result_failed", extra={"error": repr(error)})
    else:
        logger.debug("late_result_ignored")


async def race_with_timeout(awaitable: Awaitable[T], timeout: float) -> RaceOutcome[T]:
    """
    Await a result for at most `timeout` seconds.

    Returns:
        RaceOutcome(completed=True, value) if the call finished first,
        RaceOutcome(completed=False) if the timer won.

    Raises:
        Whatever the call raised, if it finished first with an error.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)

    if task in done:
        return RaceOutcome(completed=True, value=task.result())

    _abandoned.add(task)
    task.add_done_callback(_collect_late_result)
    return RaceOutcome(completed=False)


def abandoned_count() -> int:
    """Number of timed-out calls still running."""
    return len(_abandoned)

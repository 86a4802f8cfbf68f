"""
Periodic mirror health sweep.

Resets statistics of mirrors that have not been used recently, so a mirror
that failed long ago gets a fresh chance.
"""

import asyncio
import logging

from matchbuffer.mirrors.tracker import MirrorHealthTracker

logger = logging.getLogger(__name__)


async def run_mirror_sweep(
    tracker: MirrorHealthTracker,
    interval_seconds: float,
    iterations: int | None = None,
) -> int:
    """
    Sweep the tracker every `interval_seconds`.

    Args:
        tracker: Mirror table to sweep
        interval_seconds: Delay before each sweep
        iterations: Stop after this many sweeps (None = run until cancelled)

    Returns:
        Number of sweeps attempted, failed ones included
    """
    sweeps = 0
    while iterations is None or sweeps < iterations:
        await asyncio.sleep(interval_seconds)
        sweeps += 1
        try:
            reset = tracker.sweep()
        except Exception:
            logger.exception("Mirror sweep %d failed", sweeps)
            continue
        if reset:
            logger.info("Reset %d idle mirrors: %s", len(reset), ", ".join(reset))
    return sweeps


def start_mirror_sweep(tracker: MirrorHealthTracker, interval_seconds: float) -> asyncio.Task[int]:
    """Start the sweep loop as a background task."""
    logger.info("Starting mirror sweep every %.0f seconds", interval_seconds)
    return asyncio.get_running_loop().create_task(run_mirror_sweep(tracker, interval_seconds))

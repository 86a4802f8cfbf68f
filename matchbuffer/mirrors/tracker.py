"""
Mirror Health Tracker: success rates and latency per content mirror.

A mirror is healthy while its success rate is at least the threshold and
it has not failed within the recent window. Health is computed when read,
so a mirror recovers on its own once its last failure ages out.

INVARIANT: best_mirror() always returns a configured mirror URL.
"""

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from matchbuffer.models.mirror import MirrorHealth

logger = logging.getLogger(__name__)


class MirrorHealthTracker:
    """Health table for an ordered list of mirror base URLs."""

    def __init__(
        self,
        urls: Sequence[str],
        success_threshold: float = 0.3,
        recent_failure_seconds: float = 600.0,
        idle_reset_seconds: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not urls:
            raise ValueError("At least one mirror URL is required")
        self._mirrors: dict[str, MirrorHealth] = {url: MirrorHealth(url=url) for url in urls}
        self.success_threshold = success_threshold
        self.recent_failure_seconds = recent_failure_seconds
        self.idle_reset_seconds = idle_reset_seconds
        self._clock = clock

    @property
    def urls(self) -> list[str]:
        """Mirrors in configured order."""
        return list(self._mirrors)

    def health(self, url: str) -> MirrorHealth | None:
        return self._mirrors.get(url)

    def is_healthy(self, url: str) -> bool:
        mirror = self._mirrors.get(url)
        if mirror is None:
            return False
        return mirror.is_healthy(
            self._clock(), self.success_threshold, self.recent_failure_seconds
        )

    def _healthy_sorted(self) -> list[MirrorHealth]:
        now = self._clock()
        healthy = [
            m
            for m in self._mirrors.values()
            if m.is_healthy(now, self.success_threshold, self.recent_failure_seconds)
        ]
        # Stable sort keeps configured order among equals
        return sorted(healthy, key=lambda m: (-m.success_rate, m.avg_response_ms))

    def best_mirror(self) -> str:
        """Healthiest mirror, or the first configured one if none is healthy."""
        healthy = self._healthy_sorted()
        if healthy:
            return healthy[0].url

        logger.warning("no_healthy_mirror", extra={"mirrors": len(self._mirrors)})
        return next(iter(self._mirrors))

    def ordered_mirrors(self) -> list[str]:
        """Healthy mirrors best first, then unhealthy ones in configured order."""
        healthy = [m.url for m in self._healthy_sorted()]
        chosen = set(healthy)
        return healthy + [url for url in self._mirrors if url not in chosen]

    def mirror_for(self, url: str) -> str | None:
        """Configured mirror that a full asset URL was loaded from."""
        for mirror in self._mirrors:
            if url.startswith(mirror):
                return mirror
        return None

    def record_success(self, url: str, latency_ms: float | None = None) -> bool:
        mirror = self._mirrors.get(url)
        if mirror is None:
            return False
        mirror.success_count += 1
        mirror.last_success = self._clock()
        if latency_ms is not None and latency_ms > 0:
            mirror.add_latency(latency_ms)
        return True

    def record_failure(self, url: str, reason: str | None = None) -> bool:
        mirror = self._mirrors.get(url)
        if mirror is None:
            return False
        mirror.failure_count += 1
        mirror.last_failure = self._clock()
        logger.info(
            "mirror_failure",
            extra={
                "mirror": url,
                "reason": reason or "unknown",
                "success_rate": round(mirror.success_rate, 3),
            },
        )
        return True

    def sweep(self) -> list[str]:
        """Reset statistics of mirrors idle past the idle window."""
        now = self._clock()
        reset = []
        for mirror in self._mirrors.values():
            last_used = mirror.last_used
            if last_used is not None and now - last_used > self.idle_reset_seconds:
                mirror.reset()
                reset.append(mirror.url)

        logger.info(
            "mirror_sweep_complete",
            extra={"reset": len(reset), "healthy": len(self._healthy_sorted())},
        )
        return reset

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "healthy": len(self._healthy_sorted()),
            "total": len(self._mirrors),
            "best": self.best_mirror(),
            "mirrors": [
                {
                    "url": m.url,
                    "healthy": m.is_healthy(
                        now, self.success_threshold, self.recent_failure_seconds
                    ),
                    "success_rate": round(m.success_rate, 3),
                    "success_count": m.success_count,
                    "failure_count": m.failure_count,
                    "avg_response_ms": round(m.avg_response_ms, 1),
                }
                for m in self._mirrors.values()
            ],
        }

from dataclasses import dataclass


@dataclass
class MirrorHealth:
    """
    Rolling health statistics for one content mirror.

    Timestamps are monotonic clock readings (seconds); None means never.
    Latency is a plain running mean over all measured loads.
    """

    url: str
    success_count: int = 0
    failure_count: int = 0
    last_success: float | None = None
    last_failure: float | None = None
    avg_response_ms: float = 0.0
    latency_samples: int = 0

    @property
    def success_rate(self) -> float:
        """Share of successful loads (1.0 when never used)."""
        total = self.success_count + self.failure_count
        if total == 0:
            return 1.0
        return self.success_count / total

    @property
    def last_used(self) -> float | None:
        """Most recent success or failure, whichever is later."""
        stamps = [t for t in (self.last_success, self.last_failure) if t is not None]
        return max(stamps) if stamps else None

    def is_healthy(self, now: float, threshold: float, recent_window: float) -> bool:
        """Healthy iff success rate clears the threshold and no recent failure."""
        if self.success_rate < threshold:
            return False
        if self.last_failure is not None and now - self.last_failure < recent_window:
            return False
        return True

    def add_latency(self, latency_ms: float) -> None:
        self.latency_samples += 1
        self.avg_response_ms += (latency_ms - self.avg_response_ms) / self.latency_samples

    def reset(self) -> None:
        """Forget all statistics (stale data is not predictive)."""
        self.success_count = 0
        self.failure_count = 0
        self.last_success = None
        self.last_failure = None
        self.avg_response_ms = 0.0
        self.latency_samples = 0

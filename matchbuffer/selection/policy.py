"""
Adaptive gate for the enhanced selection path.

The policy is an immutable value: every decision or recorded outcome
returns a new policy, and the orchestrator keeps the latest one.
"""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class AdaptivePolicy:
    """
    Rolling record of enhanced-path outcomes and the ratio derived from it.

    Attributes:
        base_ratio: Share of requests that try the enhanced path when healthy
        min_success_rate: Rolling success rate below which the path is gated
        min_attempts: Outcomes required before the gate can close
        window: Number of recent outcomes kept
        probe_interval: Gated requests between recovery probes (0 disables)
        outcomes: Recent outcomes, oldest first (True = success)
        gated_streak: Consecutive requests skipped by the closed gate
    """

    base_ratio: float = 0.7
    min_success_rate: float = 0.3
    min_attempts: int = 5
    window: int = 10
    probe_interval: int = 20
    outcomes: tuple[bool, ...] = ()
    gated_streak: int = 0

    def __post_init__(self) -> None:
        if not 0.0 <= self.base_ratio <= 1.0:
            raise ValueError(f"base_ratio must be within [0, 1], got {self.base_ratio}")
        if self.window < 1:
            raise ValueError(f"window must be positive, got {self.window}")

    @property
    def attempts(self) -> int:
        return len(self.outcomes)

    @property
    def success_rate(self) -> float:
        """Rolling success rate (1.0 before any outcome)."""
        if not self.outcomes:
            return 1.0
        return sum(self.outcomes) / len(self.outcomes)

    @property
    def gated(self) -> bool:
        return self.attempts >= self.min_attempts and self.success_rate < self.min_success_rate

    @property
    def ratio(self) -> float:
        """Effective enhanced ratio: zero while the gate is closed."""
        return 0.0 if self.gated else self.base_ratio

    def record(self, success: bool) -> "AdaptivePolicy":
        """Return a policy with one more outcome in the window."""
        outcomes = (*self.outcomes, success)[-self.window :]
        return replace(self, outcomes=outcomes, gated_streak=0)

    def should_attempt(self, roll: float) -> tuple[bool, "AdaptivePolicy"]:
        """
        Decide whether this request tries the enhanced path.

        Args:
            roll: Uniform random number in [0, 1)

        Returns:
            Tuple of (attempt, next policy). While gated, every
            probe_interval-th request is let through as a probe.
        """
        if not self.gated:
            return roll < self.base_ratio, self

        streak = self.gated_streak + 1
        if self.probe_interval > 0 and streak >= self.probe_interval:
            return True, replace(self, gated_streak=0)
        return False, replace(self, gated_streak=streak)

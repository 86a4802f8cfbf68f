"""
Fallback Orchestrator: enhanced path first, legacy path second.

Per request:
    ATTEMPT_ENHANCED -> (ok) DONE
    ATTEMPT_ENHANCED -> (timeout | error | gate) ATTEMPT_LEGACY -> DONE | NONE

The adaptive policy decides whether the enhanced path is attempted and
learns from its timeouts and errors. Empty pools are not counted.
"""

import logging
import random
from typing import Any

from matchbuffer.models.session import Session
from matchbuffer.selection.policy import AdaptivePolicy
from matchbuffer.selection.strategies import (
    Ok,
    SelectionRequest,
    SelectionStrategy,
    Skip,
    SkipReason,
    run_strategies,
)

logger = logging.getLogger(__name__)

_FAILURE_REASONS = frozenset({SkipReason.TIMEOUT, SkipReason.ERROR})


class FallbackOrchestrator:
    """
    Produces one session per call, or None.

    Never raises for selection failures: the caller treats None as
    "try again later".
    """

    def __init__(
        self,
        enhanced: SelectionStrategy,
        legacy: SelectionStrategy,
        policy: AdaptivePolicy | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.enhanced = enhanced
        self.legacy = legacy
        self.policy = policy or AdaptivePolicy()
        self._rng = rng or random.Random()

        self._requests = 0
        self._enhanced_attempts = 0
        self._enhanced_hits = 0
        self._fallbacks = 0
        self._gated = 0
        self._empty = 0

    async def next_session(
        self,
        group: str | None = None,
        exclude_ids: frozenset[str] = frozenset(),
        exclude_pairs: frozenset[str] = frozenset(),
    ) -> Session | None:
        self._requests += 1

        was_gated = self.policy.gated
        attempt, self.policy = self.policy.should_attempt(self._rng.random())
        if was_gated and not attempt:
            self._gated += 1
        if attempt:
            self._enhanced_attempts += 1

        request = SelectionRequest(
            group=group,
            exclude_ids=exclude_ids,
            exclude_pairs=exclude_pairs,
            allow_enhanced=attempt,
        )
        run = await run_strategies([self.enhanced, self.legacy], request)

        enhanced_result = run.result_for(self.enhanced.name)
        if isinstance(enhanced_result, Ok):
            self.policy = self.policy.record(True)
            self._enhanced_hits += 1
        elif isinstance(enhanced_result, Skip):
            if enhanced_result.reason in _FAILURE_REASONS:
                self.policy = self.policy.record(False)
                if self.policy.gated:
                    logger.warning(
                        "enhanced_path_gated",
                        extra={
                            "success_rate": round(self.policy.success_rate, 3),
                            "attempts": self.policy.attempts,
                        },
                    )
            if run.session is not None:
                self._fallbacks += 1

        if run.session is None:
            self._empty += 1
            logger.info(
                "no_session_produced",
                extra={"group": group, "trace": [(n, _describe(r)) for n, r in run.trace]},
            )
        return run.session

    def stats(self) -> dict[str, Any]:
        return {
            "requests": self._requests,
            "enhanced_attempts": self._enhanced_attempts,
            "enhanced_hits": self._enhanced_hits,
            "fallbacks": self._fallbacks,
            "gated_requests": self._gated,
            "empty_results": self._empty,
            "current_ratio": self.policy.ratio,
            "rolling_success_rate": round(self.policy.success_rate, 3),
        }


def _describe(result: Ok | Skip) -> str:
    if isinstance(result, Ok):
        return "ok"
    return result.reason.value

"""
Tagged strategy results and the strategy runner.

Each strategy returns Ok(session) or Skip(reason). The runner tries them
in order and stops at the first Ok. A strategy that raises is treated as
Skip(ERROR) so the caller always gets "a session or nothing".
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from matchbuffer.models.session import Session

logger = logging.getLogger(__name__)


class SkipReason(str, Enum):
    """Why a strategy produced no session."""

    RATIO_GATE = "ratio_gate"
    TIMEOUT = "timeout"
    ERROR = "error"
    EMPTY_POOL = "empty_pool"
    NO_CANDIDATE = "no_candidate"


@dataclass(frozen=True)
class Ok:
    session: Session


@dataclass(frozen=True)
class Skip:
    reason: SkipReason
    detail: str | None = None


StrategyResult = Ok | Skip


@dataclass(frozen=True)
class SelectionRequest:
    """
    One request for a session.

    Attributes:
        group: Restrict the session to one group
        exclude_ids: Items that should not appear (seen or reserved)
        exclude_pairs: Pair keys that should not appear (seen or reserved)
        allow_enhanced: Decision of the adaptive gate for this request
    """

    group: str | None = None
    exclude_ids: frozenset[str] = field(default_factory=frozenset)
    exclude_pairs: frozenset[str] = field(default_factory=frozenset)
    allow_enhanced: bool = True


class SelectionStrategy(Protocol):
    name: str

    async def attempt(self, request: SelectionRequest) -> StrategyResult: ...


@dataclass(frozen=True)
class StrategyRun:
    """Outcome of running a strategy list."""

    session: Session | None
    trace: tuple[tuple[str, StrategyResult], ...]

    def result_for(self, name: str) -> StrategyResult | None:
        for strategy_name, result in self.trace:
            if strategy_name == name:
                return result
        return None


async def run_strategies(
    strategies: Sequence[SelectionStrategy],
    request: SelectionRequest,
) -> StrategyRun:
    """Try strategies in order until one returns Ok."""
    trace: list[tuple[str, StrategyResult]] = []

    for strategy in strategies:
        try:
            result = await strategy.attempt(request)
        except Exception as e:
            logger.exception("strategy_failed", extra={"strategy": strategy.name})
            result = Skip(SkipReason.ERROR, f"{type(e).__name__}: {e}")

        trace.append((strategy.name, result))
        if isinstance(result, Ok):
            return StrategyRun(session=result.session, trace=tuple(trace))

    return StrategyRun(session=None, trace=tuple(trace))

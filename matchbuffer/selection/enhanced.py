"""
Enhanced selection: scoring engine behind a timer.
"""

import logging

from matchbuffer.models.item import Item
from matchbuffer.models.session import Candidate
from matchbuffer.scoring.engine import CandidateScoringEngine
from matchbuffer.scoring.groups import GroupRegistry
from matchbuffer.selection.exclusion import eligible
from matchbuffer.selection.strategies import Ok, SelectionRequest, Skip, SkipReason, StrategyResult
from matchbuffer.selection.timeouts import race_with_timeout
from matchbuffer.store.base import ItemQuery, ItemStore

logger = logging.getLogger(__name__)


class _EmptyPool:
    """Marker for a pool too small to form any session."""


_EMPTY_POOL = _EmptyPool()


class EnhancedStrategy:
    """
    Fetches the eligible pool and asks the scoring engine for a candidate.

    The whole fetch-and-score call races a timer. A timer win yields
    Skip(TIMEOUT) and the call finishes unobserved in the background.
    """

    name = "enhanced"

    def __init__(
        self,
        store: ItemStore,
        engine: CandidateScoringEngine,
        registry: GroupRegistry,
        timeout: float,
        pool_limit: int = 2000,
    ) -> None:
        self.store = store
        self.engine = engine
        self.registry = registry
        self.timeout = timeout
        self.pool_limit = pool_limit

    async def attempt(self, request: SelectionRequest) -> StrategyResult:
        if not request.allow_enhanced:
            return Skip(SkipReason.RATIO_GATE)

        try:
            outcome = await race_with_timeout(self._select(request), self.timeout)
        except Exception as e:
            logger.warning("enhanced_selection_failed", extra={"error": repr(e)})
            return Skip(SkipReason.ERROR, f"{type(e).__name__}: {e}")

        if not outcome.completed:
            logger.info("enhanced_selection_timeout", extra={"timeout": self.timeout})
            return Skip(SkipReason.TIMEOUT)

        result = outcome.value
        if result is _EMPTY_POOL:
            return Skip(SkipReason.EMPTY_POOL)
        if result is None:
            return Skip(SkipReason.NO_CANDIDATE)
        return Ok(result.to_session(enhanced=True))

    async def _select(self, request: SelectionRequest) -> Candidate | _EmptyPool | None:
        pool = await self._fetch_pool(request)
        if not pool:
            return _EMPTY_POOL
        return await self.engine.select(pool, exclude_pairs=request.exclude_pairs)

    async def _fetch_pool(self, request: SelectionRequest) -> list[Item]:
        inactive = self.registry.inactive_groups() if request.group is None else frozenset()
        query = ItemQuery(
            group=request.group,
            exclude_groups=inactive,
            exclude_ids=request.exclude_ids,
            limit=self.pool_limit,
        )
        items = await self.store.query_items(query)
        return eligible(list(items))

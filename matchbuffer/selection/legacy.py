"""
Legacy selection: random but constrained session generation.

Picks a vote mode from a fixed distribution, then samples eligible items
that have not been seen. Seen items are allowed again only once the unseen
pool cannot form a session.
"""

import logging
import random
from collections import defaultdict
from collections.abc import Sequence, Set

from matchbuffer.models.item import Item
from matchbuffer.models.session import (
    CalibrationSession,
    PairSession,
    Session,
    VoteMode,
    pair_key,
)
from matchbuffer.scoring.groups import GroupRegistry
from matchbuffer.scoring.metrics import CALIBRATION_VOTE_CEILING, needs_calibration
from matchbuffer.selection.exclusion import eligible
from matchbuffer.selection.strategies import Ok, SelectionRequest, Skip, SkipReason, StrategyResult
from matchbuffer.store.base import ItemQuery, ItemStore

logger = logging.getLogger(__name__)

# (mode, cumulative probability)
MODE_DISTRIBUTION: tuple[tuple[VoteMode, float], ...] = (
    (VoteMode.CALIBRATION, 0.4),
    (VoteMode.SAME_GROUP, 0.8),
    (VoteMode.CROSS_GROUP, 1.0),
)
GROUP_FILTER_DISTRIBUTION: tuple[tuple[VoteMode, float], ...] = (
    (VoteMode.CALIBRATION, 0.2),
    (VoteMode.SAME_GROUP, 1.0),
)

# Random draws before giving up on a pool
PAIR_SAMPLE_ATTEMPTS = 20

# Items fetched to widen a pool that holds nobody needing calibration
CALIBRATION_BACKLOG_LIMIT = 20


class LegacyStrategy:
    """Cheap randomized generator used when the enhanced path is skipped."""

    name = "legacy"

    def __init__(
        self,
        store: ItemStore,
        registry: GroupRegistry,
        rng: random.Random | None = None,
        pool_limit: int = 200,
    ) -> None:
        self.store = store
        self.registry = registry
        self._rng = rng or random.Random()
        self.pool_limit = pool_limit

    def pick_mode(self, group: str | None) -> VoteMode:
        distribution = GROUP_FILTER_DISTRIBUTION if group is not None else MODE_DISTRIBUTION
        roll = self._rng.random()
        for mode, threshold in distribution:
            if roll < threshold:
                return mode
        return distribution[-1][0]

    async def attempt(self, request: SelectionRequest) -> StrategyResult:
        inactive = self.registry.inactive_groups() if request.group is None else frozenset()
        query = ItemQuery(
            group=request.group,
            exclude_groups=inactive,
            limit=self.pool_limit,
        )
        pool = eligible(list(await self.store.query_items(query)))
        if not pool:
            return Skip(SkipReason.EMPTY_POOL)
        if not any(needs_calibration(item) for item in pool):
            pool += await self._calibration_backlog(request.group, inactive, pool)

        unseen = [item for item in pool if item.id not in request.exclude_ids]

        first = self.pick_mode(request.group)
        modes = [first] + [m for m in _modes_for(request.group) if m is not first]

        # Unseen pool first, then allow repeats
        for candidates, exclude_pairs in ((unseen, request.exclude_pairs), (pool, frozenset())):
            for mode in modes:
                session = self._generate(mode, candidates, exclude_pairs)
                if session is not None:
                    if candidates is pool:
                        logger.info("legacy_repeats_allowed", extra={"pool_size": len(pool)})
                    return Ok(session)

        return Skip(SkipReason.NO_CANDIDATE)

    async def _calibration_backlog(
        self, group: str | None, inactive: frozenset[str], pool: Sequence[Item]
    ) -> list[Item]:
        """Items past the pool window that still need calibration votes."""
        query = ItemQuery(
            group=group,
            exclude_groups=inactive,
            exclude_ids=frozenset(item.id for item in pool),
            max_calibration_votes=CALIBRATION_VOTE_CEILING,
            limit=CALIBRATION_BACKLOG_LIMIT,
        )
        return eligible(list(await self.store.query_items(query)))

    def _generate(
        self, mode: VoteMode, items: Sequence[Item], exclude_pairs: Set[str]
    ) -> Session | None:
        if mode is VoteMode.CALIBRATION:
            needing = [item for item in items if needs_calibration(item)]
            if not needing:
                return None
            return CalibrationSession(item=self._rng.choice(needing))

        by_group: dict[str, list[Item]] = defaultdict(list)
        for item in items:
            by_group[item.group].append(item)

        for _ in range(PAIR_SAMPLE_ATTEMPTS):
            pair = self._sample_pair(mode, by_group)
            if pair is None:
                return None
            a, b = pair
            if pair_key(a.id, b.id) not in exclude_pairs:
                return PairSession(first=a, second=b, mode=mode)
        return None

    def _sample_pair(
        self, mode: VoteMode, by_group: dict[str, list[Item]]
    ) -> tuple[Item, Item] | None:
        if mode is VoteMode.SAME_GROUP:
            groups = [name for name, members in by_group.items() if len(members) >= 2]
            if not groups:
                return None
            a, b = self._rng.sample(by_group[self._rng.choice(groups)], 2)
            return a, b

        if len(by_group) < 2:
            return None
        group_a, group_b = self._rng.sample(sorted(by_group), 2)
        return self._rng.choice(by_group[group_a]), self._rng.choice(by_group[group_b])


def _modes_for(group: str | None) -> tuple[VoteMode, ...]:
    if group is not None:
        return (VoteMode.SAME_GROUP, VoteMode.CALIBRATION)
    return (VoteMode.SAME_GROUP, VoteMode.CROSS_GROUP, VoteMode.CALIBRATION)

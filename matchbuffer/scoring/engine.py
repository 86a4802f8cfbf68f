"""
Candidate Scoring Engine: information-driven session selection.

Scores every eligible pair (or single item) by how much a vote on it is
expected to teach the rating system, then picks one of the best candidates
at random with rank-decayed weights so consecutive sessions vary.

Empty pools are not errors: every entry point returns None or an empty
list when no candidate can be formed.
"""

import logging
import random
from collections import defaultdict
from collections.abc import Iterator, Sequence, Set
from datetime import datetime
from itertools import combinations

from matchbuffer.config import (
    DEFAULT_UNCERTAINTY,
    DEFAULT_WEIGHTS,
    MAX_EVALUATED_PAIRS,
    RANK_DECAY,
    TOP_K_CANDIDATES,
    ScoringWeights,
)
from matchbuffer.models.item import Item, ScoredItem
from matchbuffer.models.session import (
    Candidate,
    CandidatePair,
    SingleCandidate,
    VoteMode,
    pair_key,
)
from matchbuffer.scoring import metrics
from matchbuffer.scoring.groups import GroupRegistry

logger = logging.getLogger(__name__)

# Mode decision thresholds
CALIBRATION_POOL_SHARE = 0.5
CALIBRATION_MIN_VOTES = 3
UNCERTAINTY_SPREAD_THRESHOLD = 30.0

# Random mode split once no rule applies
CALIBRATION_CHANCE = 0.15
SAME_GROUP_CHANCE = 0.50

# Selection reason thresholds
HIGH_UNCERTAINTY = 75.0
CLOSE_RATING_DIFF = 100.0
UNDERREPRESENTED_DEFICIT = 0.3

_MODE_ORDER = (VoteMode.SAME_GROUP, VoteMode.CROSS_GROUP, VoteMode.CALIBRATION)


class CandidateScoringEngine:
    """
    Ranks and chooses sessions from an item pool.

    The engine is stateless apart from the group registry it reads
    representation from and stamps after each pick.
    """

    def __init__(
        self,
        registry: GroupRegistry,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        rng: random.Random | None = None,
        max_evaluated_pairs: int = MAX_EVALUATED_PAIRS,
        top_k: int = TOP_K_CANDIDATES,
        rank_decay: float = RANK_DECAY,
    ) -> None:
        self.registry = registry
        self.weights = weights
        self._rng = rng or random.Random()
        self.max_evaluated_pairs = max_evaluated_pairs
        self.top_k = top_k
        self.rank_decay = rank_decay

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def annotate(self, pool: Sequence[Item], now: datetime | None = None) -> list[ScoredItem]:
        """Compute the transient metrics of every item in a pool."""
        average = metrics.average_votes(pool)
        representation = metrics.group_representations(
            self.registry.statuses(), {item.group for item in pool}, now
        )
        return [
            ScoredItem(
                item=item,
                uncertainty=metrics.uncertainty(item.pair_votes),
                information_potential=metrics.information_potential(item),
                deficit=metrics.representation_deficit(item.pair_votes, average),
                representation=representation[item.group],
            )
            for item in pool
        ]

    def score_pair(self, a: ScoredItem, b: ScoredItem) -> float:
        return metrics.pair_score(
            a.uncertainty,
            b.uncertainty,
            a.item.rating,
            b.item.rating,
            a.deficit,
            b.deficit,
            a.representation,
            b.representation,
            self.weights,
            base=DEFAULT_UNCERTAINTY,
        )

    def score_for_calibration(self, item: ScoredItem) -> float:
        return metrics.calibration_score(item.item, item.information_potential)

    # -------------------------------------------------------------------------
    # Ranking
    # -------------------------------------------------------------------------

    def rank_candidates(
        self,
        pool: Sequence[Item],
        mode: VoteMode,
        exclude_pairs: Set[str] = frozenset(),
        now: datetime | None = None,
    ) -> list[Candidate]:
        """
        Rank candidates of one mode, best first.

        Pair enumeration stops after max_evaluated_pairs scored pairs;
        recently seen pairs are skipped without counting.
        """
        scored = self.annotate(pool, now)

        if mode is VoteMode.CALIBRATION:
            singles: list[Candidate] = [
                SingleCandidate(
                    item=entry,
                    information_score=self.score_for_calibration(entry),
                    selection_reason=_calibration_reason(entry),
                )
                for entry in scored
                if metrics.needs_calibration(entry.item)
            ]
            singles.sort(key=lambda c: c.information_score, reverse=True)
            return singles

        # Shuffle so the evaluation cap does not always favor the same items
        self._rng.shuffle(scored)

        pairs: list[Candidate] = []
        for a, b in self._enumerate_pairs(scored, mode):
            key = pair_key(a.id, b.id)
            if key in exclude_pairs:
                continue
            pairs.append(
                CandidatePair(
                    first=a,
                    second=b,
                    information_score=self.score_pair(a, b),
                    mode=mode,
                    selection_reason=_pair_reason(a, b),
                )
            )
            if len(pairs) >= self.max_evaluated_pairs:
                break

        pairs.sort(key=lambda c: c.information_score, reverse=True)
        return pairs

    def _enumerate_pairs(
        self, scored: list[ScoredItem], mode: VoteMode
    ) -> Iterator[tuple[ScoredItem, ScoredItem]]:
        if mode is VoteMode.SAME_GROUP:
            by_group: dict[str, list[ScoredItem]] = defaultdict(list)
            for entry in scored:
                by_group[entry.group].append(entry)
            for members in by_group.values():
                yield from combinations(members, 2)
            return

        for a, b in combinations(scored, 2):
            if a.group != b.group:
                yield a, b

    # -------------------------------------------------------------------------
    # Mode decision and choice
    # -------------------------------------------------------------------------

    def decide_mode(self, pool: Sequence[Item]) -> VoteMode:
        """
        Choose the vote mode for the next session.

        1. Calibration when at least half the pool is barely calibrated
        2. Cross-group when group mean uncertainties diverge
        3. Otherwise a random split (calibration only if any item needs it)
        """
        if not pool:
            return VoteMode.SAME_GROUP

        uncalibrated = sum(1 for item in pool if item.calibration_votes < CALIBRATION_MIN_VOTES)
        if uncalibrated / len(pool) >= CALIBRATION_POOL_SHARE:
            return VoteMode.CALIBRATION

        if _uncertainty_spread(pool) > UNCERTAINTY_SPREAD_THRESHOLD:
            return VoteMode.CROSS_GROUP

        roll = self._rng.random()
        if roll < CALIBRATION_CHANCE and any(metrics.needs_calibration(i) for i in pool):
            return VoteMode.CALIBRATION
        if roll < CALIBRATION_CHANCE + SAME_GROUP_CHANCE:
            return VoteMode.SAME_GROUP
        return VoteMode.CROSS_GROUP

    def choose(self, ranked: Sequence[Candidate]) -> Candidate | None:
        """Weighted random pick over the top K, weight = decay ** rank."""
        top = list(ranked[: self.top_k])
        if not top:
            return None
        weights = [self.rank_decay**rank for rank in range(len(top))]
        return self._rng.choices(top, weights=weights, k=1)[0]

    async def select(
        self,
        items: Sequence[Item],
        mode: VoteMode | None = None,
        exclude_pairs: Set[str] = frozenset(),
    ) -> Candidate | None:
        """
        Pick the next candidate from a pool.

        With an explicit mode only that mode is ranked. In automatic mode
        the decided mode is tried first and an empty ranking falls through
        to the remaining modes. The chosen candidate's groups are stamped
        as selected in the registry.
        """
        if not items:
            return None

        if mode is not None:
            modes = [mode]
        else:
            decided = self.decide_mode(items)
            modes = [decided] + [m for m in _MODE_ORDER if m is not decided]

        for current in modes:
            ranked = self.rank_candidates(items, current, exclude_pairs)
            candidate = self.choose(ranked)
            if candidate is None:
                continue

            groups = (
                {candidate.first.group, candidate.second.group}
                if isinstance(candidate, CandidatePair)
                else {candidate.item.group}
            )
            await self.registry.mark_selected(groups)

            logger.debug(
                "candidate_selected",
                extra={
                    "mode": current.value,
                    "score": round(candidate.information_score, 4),
                    "ranked": len(ranked),
                    "reason": candidate.selection_reason,
                },
            )
            return candidate

        logger.debug("no_candidate", extra={"pool_size": len(items)})
        return None


# =============================================================================
# HELPERS
# =============================================================================


def _uncertainty_spread(pool: Sequence[Item]) -> float:
    """Spread between the most and least uncertain group means."""
    by_group: dict[str, list[float]] = defaultdict(list)
    for item in pool:
        by_group[item.group].append(metrics.uncertainty(item.pair_votes))
    if len(by_group) < 2:
        return 0.0
    means = [sum(values) / len(values) for values in by_group.values()]
    return max(means) - min(means)


def _pair_reason(a: ScoredItem, b: ScoredItem) -> str:
    reasons = []
    if a.uncertainty > HIGH_UNCERTAINTY or b.uncertainty > HIGH_UNCERTAINTY:
        reasons.append("High uncertainty - maximum learning potential")
    if abs(a.item.rating - b.item.rating) < CLOSE_RATING_DIFF:
        reasons.append("Close ratings - competitive matchup")
    if (a.deficit + b.deficit) / 2.0 > UNDERREPRESENTED_DEFICIT:
        reasons.append("Underrepresented items - balancing dataset")
    if a.group != b.group:
        reasons.append("Cross-group comparison - diverse perspective")
    if not reasons:
        reasons.append("Optimal information score")
    return ", ".join(reasons)


def _calibration_reason(entry: ScoredItem) -> str:
    return f"High information potential calibration vote (uncertainty: {entry.uncertainty:.1f})"

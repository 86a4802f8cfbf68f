"""
Item and pair metrics for information-driven selection.

All metrics are pure functions of vote counts, ratings and group status.
They are recomputed on every scoring pass and never stored.

INVARIANT: Uncertainty is non-increasing in vote count and never drops
below the configured floor.
"""

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from matchbuffer.config import (
    DEFAULT_UNCERTAINTY,
    MAX_EXPECTED_RATING_DIFF,
    MIN_UNCERTAINTY,
    UNCERTAINTY_DECAY_RATE,
    VOTE_SCARCITY_CEILING,
    ScoringWeights,
)
from matchbuffer.models.item import GroupStatus, Item

# Group representation bounds
UNKNOWN_GROUP_REPRESENTATION = 0.5
NEVER_SELECTED_BOOST = 1.5
MAX_REPRESENTATION = 2.0
STALENESS_HOURS = 24.0

# Calibration
CALIBRATION_VOTE_CEILING = 10
CALIBRATION_BONUS_WEIGHT = 0.5


# =============================================================================
# ITEM METRICS
# =============================================================================


def uncertainty(
    votes: int,
    base: float = DEFAULT_UNCERTAINTY,
    floor: float = MIN_UNCERTAINTY,
    decay: float = UNCERTAINTY_DECAY_RATE,
) -> float:
    """
    Rating uncertainty after a number of head-to-head votes.

    Decays geometrically from the base value and is floored.
    """
    return max(floor, base * decay ** max(0, votes))


def information_potential(item: Item, base: float = DEFAULT_UNCERTAINTY) -> float:
    """
    Expected information gain from showing an item.

    Combines normalized uncertainty (50%), vote scarcity (30%) and win-rate
    balance (20%). Items with a win rate near 0.5 are the least settled.
    """
    uncertainty_term = uncertainty(item.pair_votes, base=base) / base
    scarcity_term = max(0.0, 1.0 - item.pair_votes / VOTE_SCARCITY_CEILING)
    balance_term = 1.0 - abs(item.win_rate - 0.5) * 2.0
    return 0.5 * uncertainty_term + 0.3 * scarcity_term + 0.2 * balance_term


def representation_deficit(votes: int, average_votes: float) -> float:
    """
    How far an item lags behind the average vote count, in [0, 1].

    Zero when the pool average is zero or the item is at/above it.
    """
    if average_votes <= 0:
        return 0.0
    return max(0.0, (average_votes - votes) / average_votes)


def group_representation(
    status: GroupStatus | None,
    now: datetime | None = None,
) -> float:
    """
    Boost for groups that have not been selected recently.

    Returns:
        0.5 for a group without a status record
        priority * 1.5 for a group never selected
        priority * (1 + staleness), staleness saturating after 24 hours
        Always capped at 2.0
    """
    if status is None:
        return UNKNOWN_GROUP_REPRESENTATION

    if status.last_selected is None:
        return min(MAX_REPRESENTATION, status.priority * NEVER_SELECTED_BOOST)

    now = now or datetime.now(UTC)
    last = status.last_selected
    if last.tzinfo is None:
        last = last.replace(tzinfo=UTC)
    hours = max(0.0, (now - last).total_seconds() / 3600.0)
    staleness = min(1.0, hours / STALENESS_HOURS)
    return min(MAX_REPRESENTATION, status.priority * (1.0 + staleness))


def average_votes(items: Sequence[Item]) -> float:
    """Mean head-to-head vote count of a pool (0 for an empty pool)."""
    if not items:
        return 0.0
    return sum(item.pair_votes for item in items) / len(items)


def group_representations(
    statuses: Mapping[str, GroupStatus],
    groups: set[str],
    now: datetime | None = None,
) -> dict[str, float]:
    """Representation boost per group, computed once per pass."""
    now = now or datetime.now(UTC)
    return {group: group_representation(statuses.get(group), now) for group in groups}


# =============================================================================
# PAIR AND CALIBRATION SCORES
# =============================================================================


def rating_proximity(rating_a: float, rating_b: float) -> float:
    """Closeness of two ratings, 1.0 for equal and 0.0 past the max gap."""
    return max(0.0, 1.0 - abs(rating_a - rating_b) / MAX_EXPECTED_RATING_DIFF)


def pair_score(
    uncertainty_a: float,
    uncertainty_b: float,
    rating_a: float,
    rating_b: float,
    deficit_a: float,
    deficit_b: float,
    representation_a: float,
    representation_b: float,
    weights: ScoringWeights,
    base: float = DEFAULT_UNCERTAINTY,
) -> float:
    """
    Information score of comparing two items.

    Weighted sum of average normalized uncertainty, rating proximity,
    average representation deficit and average group representation.
    The representation term ranges up to 2.0, so scores are not bounded by 1.
    """
    avg_uncertainty = (uncertainty_a + uncertainty_b) / 2.0 / base
    proximity = rating_proximity(rating_a, rating_b)
    avg_deficit = (deficit_a + deficit_b) / 2.0
    avg_representation = (representation_a + representation_b) / 2.0

    return (
        weights.uncertainty * avg_uncertainty
        + weights.proximity * proximity
        + weights.deficit * avg_deficit
        + weights.diversity * avg_representation
    )


def needs_calibration(item: Item) -> bool:
    """Only items with fewer than 10 calibration votes are calibrated."""
    return item.calibration_votes < CALIBRATION_VOTE_CEILING


def calibration_score(item: Item, potential: float) -> float:
    """Information potential plus a bonus that shrinks with calibration votes."""
    remaining = max(0.0, 1.0 - item.calibration_votes / CALIBRATION_VOTE_CEILING)
    return potential + CALIBRATION_BONUS_WEIGHT * remaining

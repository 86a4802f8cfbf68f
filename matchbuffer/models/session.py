"""
Session models: the units handed to the consumer.

A session is either a head-to-head pair vote or a single-item calibration
vote. Sessions are created by the selection layer, buffered by the preload
cache and dropped once consumed.
"""

from dataclasses import dataclass
from enum import Enum

from matchbuffer.models.item import Item, ScoredItem


class VoteMode(str, Enum):
    """How the items of a session were chosen."""

    SAME_GROUP = "same_group"
    CROSS_GROUP = "cross_group"
    CALIBRATION = "calibration"


def pair_key(first_id: str, second_id: str) -> str:
    """Order-independent key for a pair of item ids."""
    low, high = sorted((first_id, second_id))
    return f"{low}|{high}"


@dataclass(frozen=True)
class PairSession:
    """A head-to-head vote between two items."""

    first: Item
    second: Item
    mode: VoteMode
    information_score: float | None = None
    selection_reason: str | None = None
    enhanced: bool = False

    @property
    def key(self) -> str:
        return pair_key(self.first.id, self.second.id)

    @property
    def items(self) -> tuple[Item, ...]:
        return (self.first, self.second)


@dataclass(frozen=True)
class CalibrationSession:
    """A single-item vote used to establish an initial rating."""

    item: Item
    information_score: float | None = None
    selection_reason: str | None = None
    enhanced: bool = False

    @property
    def mode(self) -> VoteMode:
        return VoteMode.CALIBRATION

    @property
    def key(self) -> str:
        return self.item.id

    @property
    def items(self) -> tuple[Item, ...]:
        return (self.item,)


Session = PairSession | CalibrationSession


def session_item_ids(session: Session) -> set[str]:
    """Ids of every item shown by a session."""
    return {item.id for item in session.items}


# =============================================================================
# SCORING CANDIDATES
# =============================================================================


@dataclass(frozen=True, slots=True)
class CandidatePair:
    """Two items and the information value of comparing them."""

    first: ScoredItem
    second: ScoredItem
    information_score: float
    mode: VoteMode
    selection_reason: str

    @property
    def key(self) -> str:
        return pair_key(self.first.id, self.second.id)

    def to_session(self, enhanced: bool = True) -> PairSession:
        return PairSession(
            first=self.first.item,
            second=self.second.item,
            mode=self.mode,
            information_score=self.information_score,
            selection_reason=self.selection_reason,
            enhanced=enhanced,
        )


@dataclass(frozen=True, slots=True)
class SingleCandidate:
    """One item and the information value of calibrating it."""

    item: ScoredItem
    information_score: float
    selection_reason: str

    @property
    def mode(self) -> VoteMode:
        return VoteMode.CALIBRATION

    def to_session(self, enhanced: bool = True) -> CalibrationSession:
        return CalibrationSession(
            item=self.item.item,
            information_score=self.information_score,
            selection_reason=self.selection_reason,
            enhanced=enhanced,
        )


Candidate = CandidatePair | SingleCandidate

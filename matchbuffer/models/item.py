from dataclasses import dataclass
from datetime import datetime

# Priority bounds for group weighting
MIN_GROUP_PRIORITY = 0.1
MAX_GROUP_PRIORITY = 3.0

DEFAULT_RATING = 1500.0


@dataclass(frozen=True)
class Item:
    """
    A votable media asset.

    Attributes:
        id: Stable item identifier
        group: Collection the item belongs to
        media_ref: Content identifier or URL of the item's image
        name: Display name
        rating: Elo-like running rating
        pair_votes: Head-to-head votes the item took part in
        wins: Head-to-head votes the item won
        calibration_votes: Single-item calibration votes received
        traits: Metadata key/value pairs (used for visibility rules)
        promoted: Promoted items may be shown even if their asset fails to load
    """

    id: str
    group: str
    media_ref: str
    name: str = ""
    rating: float = DEFAULT_RATING
    pair_votes: int = 0
    wins: int = 0
    calibration_votes: int = 0
    traits: tuple[tuple[str, str], ...] = ()
    promoted: bool = False

    @property
    def win_rate(self) -> float:
        """Share of head-to-head votes won (0.5 when unvoted)."""
        if self.pair_votes <= 0:
            return 0.5
        return self.wins / self.pair_votes


@dataclass(frozen=True, slots=True)
class ScoredItem:
    """
    An item annotated with the metrics of one scoring pass.

    Metrics are transient: they are recomputed from vote counts on every
    pass and never stored.
    """

    item: Item
    uncertainty: float
    information_potential: float
    deficit: float
    representation: float

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def group(self) -> str:
        return self.item.group


@dataclass
class GroupStatus:
    """Selection state for one group of items."""

    name: str
    active: bool = True
    priority: float = 1.0
    item_count: int = 0
    avg_votes_per_item: float = 0.0
    last_selected: datetime | None = None


def clamp_priority(priority: float) -> float:
    """Clamp a group priority into the supported range."""
    return max(MIN_GROUP_PRIORITY, min(MAX_GROUP_PRIORITY, priority))

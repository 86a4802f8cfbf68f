"""
Store interfaces consumed by the selection layer.

The item and vote stores are external collaborators. The selection layer
only needs a filtered read of the item pool and read/write access to group
status records.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from matchbuffer.models.item import GroupStatus, Item


@dataclass(frozen=True)
class ItemQuery:
    """
    Filter for an item pool read.

    Attributes:
        group: Restrict to a single group (None = all groups)
        exclude_groups: Groups to leave out, typically the inactive ones
        exclude_ids: Item ids to leave out
        max_calibration_votes: Only items with fewer calibration votes
        limit: Maximum number of items returned
    """

    group: str | None = None
    exclude_groups: frozenset[str] = frozenset()
    exclude_ids: frozenset[str] = frozenset()
    max_calibration_votes: int | None = None
    limit: int = 2000


class ItemStore(Protocol):
    """Read access to the item pool."""

    async def query_items(self, query: ItemQuery) -> Sequence[Item]: ...


class GroupStatusStore(Protocol):
    """Read/write access to group status records."""

    async def load_group_statuses(self) -> Sequence[GroupStatus]: ...

    async def save_group_status(self, status: GroupStatus) -> None: ...

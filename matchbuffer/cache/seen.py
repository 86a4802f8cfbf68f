"""
Bounded recency sets of items and pairs already shown this session.
"""

from collections import OrderedDict
from collections.abc import Iterator

from matchbuffer.models.session import PairSession, Session


class RecencySet:
    """
    Insertion-ordered set that evicts its oldest members past capacity.

    Re-adding a member makes it the most recent one.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[str, None] = OrderedDict()

    def add(self, key: str) -> None:
        self._entries[key] = None
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def discard(self, key: str) -> None:
        self._entries.pop(key, None)

    def trim(self, keep_last: int) -> None:
        """Keep only the most recent `keep_last` members."""
        while len(self._entries) > max(0, keep_last):
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def recent(self) -> list[str]:
        """Members, oldest first."""
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


class SeenTracker:
    """Items and pairs consumed recently, used to avoid repeats."""

    def __init__(self, max_items: int = 50, max_pairs: int = 1500) -> None:
        self.items = RecencySet(max_items)
        self.pairs = RecencySet(max_pairs)

    def mark(self, session: Session) -> None:
        for item in session.items:
            self.items.add(item.id)
        if isinstance(session, PairSession):
            self.pairs.add(session.key)

    def excluded_ids(self) -> frozenset[str]:
        return frozenset(self.items)

    def excluded_pairs(self) -> frozenset[str]:
        return frozenset(self.pairs)

    def reset(self, keep_last: int = 2) -> None:
        self.items.trim(keep_last)
        self.pairs.trim(keep_last)

    def clear(self) -> None:
        self.items.clear()
        self.pairs.clear()

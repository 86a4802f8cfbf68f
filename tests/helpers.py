"""Builders and in-memory fakes shared by the test modules."""

import asyncio
import random
from collections.abc import Sequence

from matchbuffer.models.item import GroupStatus, Item
from matchbuffer.models.session import Session
from matchbuffer.store.base import ItemQuery


def make_item(
    item_id: str,
    group: str = "alpha",
    pair_votes: int = 0,
    rating: float = 1500.0,
    calibration_votes: int = 10,
    wins: int = 0,
    media_ref: str | None = None,
    traits: tuple[tuple[str, str], ...] = (),
    promoted: bool = False,
) -> Item:
    """Build an item; calibrated by default so pair modes are chosen."""
    return Item(
        id=item_id,
        group=group,
        media_ref=media_ref or f"https://cdn.example.com/{item_id}.png",
        name=item_id.upper(),
        rating=rating,
        pair_votes=pair_votes,
        wins=wins,
        calibration_votes=calibration_votes,
        traits=traits,
        promoted=promoted,
    )


class FakeItemStore:
    """In-memory item and group status store honoring ItemQuery filters."""

    def __init__(
        self,
        items: Sequence[Item] = (),
        statuses: Sequence[GroupStatus] = (),
        delay: float = 0.0,
    ) -> None:
        self.items = list(items)
        self.statuses = {status.name: status for status in statuses}
        self.delay = delay
        self.queries: list[ItemQuery] = []
        self.saved: list[GroupStatus] = []
        self.fail_saves = False

    async def query_items(self, query: ItemQuery) -> list[Item]:
        self.queries.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        result = [
            item
            for item in self.items
            if (query.group is None or item.group == query.group)
            and item.group not in query.exclude_groups
            and item.id not in query.exclude_ids
            and (
                query.max_calibration_votes is None
                or item.calibration_votes < query.max_calibration_votes
            )
        ]
        return result[: query.limit]

    async def load_group_statuses(self) -> list[GroupStatus]:
        return list(self.statuses.values())

    async def save_group_status(self, status: GroupStatus) -> None:
        if self.fail_saves:
            raise ConnectionError("store unavailable")
        self.saved.append(status)
        self.statuses[status.name] = status


class FakeValidator:
    """Session validator that fails the first `fail_first` validations."""

    def __init__(self, fail_first: int = 0, always_fail: bool = False) -> None:
        self.fail_first = fail_first
        self.always_fail = always_fail
        self.calls = 0
        self.forgotten: list[str] = []
        self.cleared = 0

    async def validate_session(self, session: Session) -> bool:
        self.calls += 1
        await asyncio.sleep(0)
        if self.always_fail:
            return False
        return self.calls > self.fail_first

    def forget(self, media_ref: str) -> None:
        self.forgotten.append(media_ref)

    def clear(self) -> None:
        self.cleared += 1


class FixedRandom(random.Random):
    """Random source whose random() always returns the same value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

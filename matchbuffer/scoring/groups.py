"""
Group registry: in-memory selection state per item group.

The registry is loaded from the group status store at startup and written
back whenever an operator changes a group or the engine selects from one.

INVARIANT: Priorities held by the registry are always within
[MIN_GROUP_PRIORITY, MAX_GROUP_PRIORITY].
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from matchbuffer.models.item import GroupStatus, Item, clamp_priority
from matchbuffer.store.base import GroupStatusStore

logger = logging.getLogger(__name__)


class GroupRegistry:
    """
    Table of group statuses shared by the scoring engine and the admin API.

    Mutators return False for unknown group names. Store write-back failures
    are logged and never fail the caller.
    """

    def __init__(self, store: GroupStatusStore | None = None) -> None:
        self._store = store
        self._groups: dict[str, GroupStatus] = {}

    async def load(self) -> int:
        """Replace the table with the store's records. Returns group count."""
        if self._store is None:
            return len(self._groups)

        records = await self._store.load_group_statuses()
        self._groups = {
            record.name: replace(record, priority=clamp_priority(record.priority))
            for record in records
        }
        logger.info("group_registry_loaded", extra={"groups": len(self._groups)})
        return len(self._groups)

    def observe(self, items: Iterable[Item]) -> None:
        """
        Recompute item counts and average votes from an item pool.

        Groups seen for the first time are registered as active.
        """
        counts: dict[str, int] = defaultdict(int)
        votes: dict[str, int] = defaultdict(int)
        for item in items:
            counts[item.group] += 1
            votes[item.group] += item.pair_votes

        for name, count in counts.items():
            status = self._groups.get(name)
            if status is None:
                status = GroupStatus(name=name)
                self._groups[name] = status
            status.item_count = count
            status.avg_votes_per_item = votes[name] / count

    def get(self, name: str) -> GroupStatus | None:
        return self._groups.get(name)

    def statuses(self) -> dict[str, GroupStatus]:
        """Snapshot of all statuses keyed by group name."""
        return {name: replace(status) for name, status in self._groups.items()}

    def inactive_groups(self) -> frozenset[str]:
        return frozenset(name for name, status in self._groups.items() if not status.active)

    def active_groups(self) -> list[str]:
        return sorted(name for name, status in self._groups.items() if status.active)

    async def set_active(self, name: str, active: bool) -> bool:
        status = self._groups.get(name)
        if status is None:
            return False
        status.active = active
        logger.info("group_active_changed", extra={"group": name, "active": active})
        await self._save(status)
        return True

    async def set_priority(self, name: str, priority: float) -> bool:
        status = self._groups.get(name)
        if status is None:
            return False
        status.priority = clamp_priority(priority)
        logger.info("group_priority_changed", extra={"group": name, "priority": status.priority})
        await self._save(status)
        return True

    async def set_all_active(self, active: bool) -> int:
        """Set every group's active flag. Returns the number of groups changed."""
        changed = [status for status in self._groups.values() if status.active != active]
        for status in changed:
            status.active = active
            await self._save(status)
        return len(changed)

    async def mark_selected(self, groups: Iterable[str], when: datetime | None = None) -> None:
        """Stamp last_selected on the given known groups."""
        when = when or datetime.now(UTC)
        for name in set(groups):
            status = self._groups.get(name)
            if status is None:
                continue
            status.last_selected = when
            await self._save(status)

    def stats(self) -> dict[str, Any]:
        """Summary for the admin API."""
        active = [status for status in self._groups.values() if status.active]
        return {
            "total_groups": len(self._groups),
            "active_groups": len(active),
            "inactive_groups": len(self._groups) - len(active),
            "active_items": sum(status.item_count for status in active),
            "never_selected": sorted(
                status.name for status in active if status.last_selected is None
            ),
        }

    async def _save(self, status: GroupStatus) -> None:
        if self._store is None:
            return
        try:
            await self._store.save_group_status(replace(status))
        except Exception as e:
            logger.warning(
                "group_status_write_failed",
                extra={"group": status.name, "error": str(e)},
            )

"""
Database CRUD operations.

Provides async functions for reading the item pool and for reading and
writing group status records.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from matchbuffer.models.db import GroupStatusDB, ItemDB
from matchbuffer.models.item import GroupStatus, Item, clamp_priority

# --- Item Operations ---


async def query_items(
    session: AsyncSession,
    *,
    group: str | None = None,
    exclude_groups: Iterable[str] = (),
    exclude_ids: Iterable[str] = (),
    max_calibration_votes: int | None = None,
    limit: int = 2000,
) -> list[ItemDB]:
    """
    Fetch candidate items, least voted first.

    Args:
        group: Restrict to one group
        exclude_groups: Groups to leave out (inactive groups)
        exclude_ids: Item ids to leave out
        max_calibration_votes: Only items with fewer calibration votes
        limit: Maximum number of rows
    """
    stmt = select(ItemDB)
    if group is not None:
        stmt = stmt.where(ItemDB.group == group)

    excluded_groups = list(exclude_groups)
    if excluded_groups:
        stmt = stmt.where(ItemDB.group.not_in(excluded_groups))

    excluded_ids = list(exclude_ids)
    if excluded_ids:
        stmt = stmt.where(ItemDB.id.not_in(excluded_ids))

    if max_calibration_votes is not None:
        stmt = stmt.where(ItemDB.calibration_votes < max_calibration_votes)

    stmt = stmt.order_by(ItemDB.pair_votes.asc(), ItemDB.id).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_item(session: AsyncSession, item_id: str) -> ItemDB | None:
    """Get an item by id."""
    result = await session.execute(select(ItemDB).where(ItemDB.id == item_id))
    return result.scalar_one_or_none()


async def upsert_items(session: AsyncSession, items: Iterable[Item]) -> int:
    """
    Insert or update items.

    Existing rows are overwritten with the given aggregates.
    Returns the number of items written.
    """
    count = 0
    for item in items:
        existing = await get_item(session, item.id)
        traits = [list(pair) for pair in item.traits]

        if existing:
            existing.group = item.group
            existing.media_ref = item.media_ref
            existing.name = item.name
            existing.rating = item.rating
            existing.pair_votes = item.pair_votes
            existing.wins = item.wins
            existing.calibration_votes = item.calibration_votes
            existing.traits = traits
            existing.promoted = item.promoted
        else:
            session.add(
                ItemDB(
                    id=item.id,
                    group=item.group,
                    media_ref=item.media_ref,
                    name=item.name,
                    rating=item.rating,
                    pair_votes=item.pair_votes,
                    wins=item.wins,
                    calibration_votes=item.calibration_votes,
                    traits=traits,
                    promoted=item.promoted,
                )
            )
        count += 1

    await session.flush()
    return count


def item_to_model(db_item: ItemDB) -> Item:
    """Convert a database item to a domain model."""
    return Item(
        id=db_item.id,
        group=db_item.group,
        media_ref=db_item.media_ref,
        name=db_item.name or "",
        rating=db_item.rating,
        pair_votes=db_item.pair_votes,
        wins=db_item.wins,
        calibration_votes=db_item.calibration_votes,
        traits=tuple((str(key), str(value)) for key, value in (db_item.traits or [])),
        promoted=bool(db_item.promoted),
    )


# --- Group Status Operations ---


async def get_group_status(session: AsyncSession, name: str) -> GroupStatusDB | None:
    """Get a group status record by name."""
    result = await session.execute(select(GroupStatusDB).where(GroupStatusDB.name == name))
    return result.scalar_one_or_none()


async def get_group_statuses(session: AsyncSession) -> list[GroupStatusDB]:
    """Get all group status records, ordered by name."""
    result = await session.execute(select(GroupStatusDB).order_by(GroupStatusDB.name))
    return list(result.scalars().all())


async def upsert_group_status(session: AsyncSession, status: GroupStatus) -> GroupStatusDB:
    """
    Insert or update a group status record.

    Priority is clamped before it is stored.
    """
    existing = await get_group_status(session, status.name)
    priority = clamp_priority(status.priority)

    if existing:
        existing.active = status.active
        existing.priority = priority
        existing.item_count = status.item_count
        existing.avg_votes_per_item = status.avg_votes_per_item
        existing.last_selected = status.last_selected
        await session.flush()
        return existing

    db_status = GroupStatusDB(
        name=status.name,
        active=status.active,
        priority=priority,
        item_count=status.item_count,
        avg_votes_per_item=status.avg_votes_per_item,
        last_selected=status.last_selected,
    )
    session.add(db_status)
    await session.flush()
    return db_status


def group_status_to_model(db_status: GroupStatusDB) -> GroupStatus:
    """Convert a database group status to a domain model."""
    return GroupStatus(
        name=db_status.name,
        active=db_status.active,
        priority=clamp_priority(db_status.priority),
        item_count=db_status.item_count,
        avg_votes_per_item=db_status.avg_votes_per_item,
        last_selected=db_status.last_selected,
    )

"""
SQLAlchemy implementation of the item and group status stores.
"""

import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matchbuffer.db.operations import (
    get_group_statuses,
    group_status_to_model,
    item_to_model,
    query_items,
    upsert_group_status,
)
from matchbuffer.models.item import GroupStatus, Item
from matchbuffer.store.base import ItemQuery

logger = logging.getLogger(__name__)


class SqlItemStore:
    """
    Item and group status store backed by the application database.

    Each call opens its own short-lived session so the store can be shared
    by concurrent refill producers.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def query_items(self, query: ItemQuery) -> Sequence[Item]:
        async with self._session_factory() as session:
            rows = await query_items(
                session,
                group=query.group,
                exclude_groups=query.exclude_groups,
                exclude_ids=query.exclude_ids,
                max_calibration_votes=query.max_calibration_votes,
                limit=query.limit,
            )
            return [item_to_model(row) for row in rows]

    async def load_group_statuses(self) -> Sequence[GroupStatus]:
        async with self._session_factory() as session:
            rows = await get_group_statuses(session)
            return [group_status_to_model(row) for row in rows]

    async def save_group_status(self, status: GroupStatus) -> None:
        async with self._session_factory() as session:
            await upsert_group_status(session, status)
            await session.commit()
        logger.debug(
            "group_status_saved",
            extra={"group": status.name, "active": status.active, "priority": status.priority},
        )

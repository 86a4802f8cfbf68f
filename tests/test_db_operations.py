"""Tests for database operations and the SQL item store."""

from datetime import UTC, datetime

import pytest
from helpers import make_item
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from matchbuffer.db.operations import (
    get_group_statuses,
    get_item,
    group_status_to_model,
    item_to_model,
    query_items,
    upsert_group_status,
    upsert_items,
)
from matchbuffer.models.db import Base
from matchbuffer.models.item import GroupStatus
from matchbuffer.store.base import ItemQuery
from matchbuffer.store.sql import SqlItemStore


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session: AsyncSession) -> AsyncSession:
    await upsert_items(
        session,
        [
            make_item("a1", group="alpha", pair_votes=5),
            make_item("a2", group="alpha", pair_votes=1, calibration_votes=2),
            make_item("b1", group="beta", pair_votes=3),
            make_item("c1", group="gamma", pair_votes=1),
        ],
    )
    await session.commit()
    return session


class TestItemOperations:
    async def test_upsert_inserts_and_updates(self, session: AsyncSession) -> None:
        """Re-upserting an item overwrites its aggregates."""
        assert await upsert_items(session, [make_item("a", pair_votes=1)]) == 1
        await session.commit()

        await upsert_items(session, [make_item("a", pair_votes=9, rating=1620.0)])
        await session.commit()

        row = await get_item(session, "a")
        assert row is not None
        assert row.pair_votes == 9
        assert row.rating == 1620.0

    async def test_least_voted_first(self, seeded: AsyncSession) -> None:
        rows = await query_items(seeded)

        assert [row.id for row in rows] == ["a2", "c1", "b1", "a1"]

    async def test_filters(self, seeded: AsyncSession) -> None:
        alpha = await query_items(seeded, group="alpha")
        assert {row.id for row in alpha} == {"a1", "a2"}

        no_beta = await query_items(seeded, exclude_groups={"beta"}, exclude_ids={"a2"})
        assert {row.id for row in no_beta} == {"a1", "c1"}

        uncalibrated = await query_items(seeded, max_calibration_votes=10)
        assert [row.id for row in uncalibrated] == ["a2"]

        limited = await query_items(seeded, limit=2)
        assert len(limited) == 2

    async def test_item_to_model(self, session: AsyncSession) -> None:
        item = make_item(
            "t1",
            group="alpha",
            traits=(("status", "revealed"), ("hat", "red")),
            promoted=True,
        )
        await upsert_items(session, [item])
        await session.commit()

        model = item_to_model(await get_item(session, "t1"))

        assert model == item


class TestGroupStatusOperations:
    async def test_upsert_clamps_priority(self, session: AsyncSession) -> None:
        await upsert_group_status(session, GroupStatus(name="alpha", priority=7.5))
        await session.commit()

        rows = await get_group_statuses(session)

        assert rows[0].priority == 3.0

    async def test_upsert_updates_existing(self, session: AsyncSession) -> None:
        await upsert_group_status(session, GroupStatus(name="alpha"))
        await session.commit()

        when = datetime(2026, 5, 1, 9, tzinfo=UTC)
        await upsert_group_status(
            session, GroupStatus(name="alpha", active=False, item_count=4, last_selected=when)
        )
        await session.commit()

        rows = await get_group_statuses(session)
        assert len(rows) == 1
        model = group_status_to_model(rows[0])
        assert model.active is False
        assert model.item_count == 4
        assert model.last_selected is not None

    async def test_ordered_by_name(self, session: AsyncSession) -> None:
        for name in ("gamma", "alpha", "beta"):
            await upsert_group_status(session, GroupStatus(name=name))
        await session.commit()

        rows = await get_group_statuses(session)

        assert [row.name for row in rows] == ["alpha", "beta", "gamma"]


class TestSqlItemStore:
    async def test_query_items(self, seeded: AsyncSession, session_factory) -> None:
        store = SqlItemStore(session_factory)

        items = await store.query_items(ItemQuery(exclude_groups=frozenset({"alpha"})))

        assert [item.id for item in items] == ["c1", "b1"]

    async def test_group_status_round_trip(self, session_factory) -> None:
        store = SqlItemStore(session_factory)

        await store.save_group_status(GroupStatus(name="alpha", active=False, priority=2.0))
        statuses = await store.load_group_statuses()

        assert len(statuses) == 1
        assert statuses[0].name == "alpha"
        assert statuses[0].active is False
        assert statuses[0].priority == 2.0

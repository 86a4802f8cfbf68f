"""Tests for the legacy selection strategy."""

import random

import pytest
from helpers import FakeItemStore, FixedRandom, make_item

from matchbuffer.models.item import GroupStatus
from matchbuffer.models.session import CalibrationSession, PairSession, VoteMode
from matchbuffer.scoring.groups import GroupRegistry
from matchbuffer.selection.legacy import LegacyStrategy
from matchbuffer.selection.strategies import Ok, SelectionRequest, Skip, SkipReason


async def _strategy(store: FakeItemStore, rng: random.Random | None = None) -> LegacyStrategy:
    registry = GroupRegistry(store)
    await registry.load()
    return LegacyStrategy(store, registry, rng=rng or random.Random(5))


class TestPickMode:
    @pytest.mark.parametrize(
        "roll, expected",
        [
            (0.10, VoteMode.CALIBRATION),
            (0.39, VoteMode.CALIBRATION),
            (0.50, VoteMode.SAME_GROUP),
            (0.85, VoteMode.CROSS_GROUP),
        ],
    )
    async def test_unfiltered_distribution(self, roll: float, expected: VoteMode) -> None:
        strategy = await _strategy(FakeItemStore(), FixedRandom(roll))

        assert strategy.pick_mode(None) is expected

    @pytest.mark.parametrize(
        "roll, expected",
        [(0.10, VoteMode.CALIBRATION), (0.50, VoteMode.SAME_GROUP), (0.95, VoteMode.SAME_GROUP)],
    )
    async def test_group_filter_distribution(self, roll: float, expected: VoteMode) -> None:
        strategy = await _strategy(FakeItemStore(), FixedRandom(roll))

        assert strategy.pick_mode("alpha") is expected


class TestLegacyStrategy:
    async def test_empty_pool(self) -> None:
        strategy = await _strategy(FakeItemStore())

        assert await strategy.attempt(SelectionRequest()) == Skip(SkipReason.EMPTY_POOL)

    async def test_sessions_are_unscored(self, sample_items) -> None:
        strategy = await _strategy(FakeItemStore(sample_items))

        result = await strategy.attempt(SelectionRequest())

        assert isinstance(result, Ok)
        assert result.session.enhanced is False
        assert result.session.information_score is None

    async def test_prefers_unseen_items(self) -> None:
        items = [make_item(name, group="X") for name in ("a", "b", "c", "d")]
        strategy = await _strategy(FakeItemStore(items))

        for _ in range(10):
            result = await strategy.attempt(SelectionRequest(exclude_ids=frozenset({"a", "b"})))
            assert isinstance(result.session, PairSession)
            assert result.session.key == "c|d"

    async def test_repeats_allowed_when_unseen_pool_is_too_small(self) -> None:
        items = [make_item("a", group="X"), make_item("b", group="X")]
        strategy = await _strategy(FakeItemStore(items))

        result = await strategy.attempt(
            SelectionRequest(exclude_ids=frozenset({"a"}), exclude_pairs=frozenset({"a|b"}))
        )

        assert isinstance(result, Ok)
        assert result.session.key == "a|b"

    async def test_calibration_session(self) -> None:
        strategy = await _strategy(
            FakeItemStore([make_item("solo", calibration_votes=0)]), FixedRandom(0.1)
        )

        result = await strategy.attempt(SelectionRequest())

        assert isinstance(result.session, CalibrationSession)
        assert result.session.item.id == "solo"

    async def test_calibration_backlog_widens_a_calibrated_pool(self) -> None:
        store = FakeItemStore(
            [
                make_item("a", group="X"),
                make_item("b", group="X"),
                make_item("fresh", group="X", calibration_votes=0),
            ]
        )
        registry = GroupRegistry(store)
        await registry.load()
        strategy = LegacyStrategy(store, registry, rng=FixedRandom(0.1), pool_limit=2)

        result = await strategy.attempt(SelectionRequest())

        assert isinstance(result.session, CalibrationSession)
        assert result.session.item.id == "fresh"
        backlog = store.queries[-1]
        assert backlog.max_calibration_votes == 10
        assert backlog.exclude_ids == frozenset({"a", "b"})

    async def test_no_candidate(self) -> None:
        strategy = await _strategy(FakeItemStore([make_item("solo", calibration_votes=10)]))

        assert await strategy.attempt(SelectionRequest()) == Skip(SkipReason.NO_CANDIDATE)

    async def test_group_filter(self, sample_items) -> None:
        store = FakeItemStore(sample_items)
        strategy = await _strategy(store)

        for _ in range(10):
            result = await strategy.attempt(SelectionRequest(group="gamma"))
            assert {item.group for item in result.session.items} == {"gamma"}

    async def test_inactive_groups_are_skipped(self, sample_items) -> None:
        store = FakeItemStore(
            sample_items,
            statuses=[
                GroupStatus(name="alpha", active=False),
                GroupStatus(name="beta", active=False),
            ],
        )
        strategy = await _strategy(store)

        for _ in range(10):
            result = await strategy.attempt(SelectionRequest())
            assert {item.group for item in result.session.items} == {"gamma"}

    async def test_excluded_media_never_served(self) -> None:
        items = [
            make_item("a", group="X"),
            make_item("b", group="X"),
            make_item("clip", group="X", media_ref="https://cdn.example.com/clip.mp4"),
        ]
        strategy = await _strategy(FakeItemStore(items))

        for _ in range(10):
            result = await strategy.attempt(SelectionRequest())
            assert result.session.key == "a|b"

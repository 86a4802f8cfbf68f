"""Tests for racing calls against a timer."""

import asyncio

import pytest

from matchbuffer.selection.timeouts import abandoned_count, race_with_timeout


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class TestRaceWithTimeout:
    async def test_fast_call_completes(self) -> None:
        async def fast() -> str:
            return "value"

        outcome = await race_with_timeout(fast(), timeout=1.0)

        assert outcome.completed is True
        assert outcome.value == "value"

    async def test_error_propagates_when_call_finishes_first(self) -> None:
        async def broken() -> None:
            raise ValueError("bad pool")

        with pytest.raises(ValueError, match="bad pool"):
            await race_with_timeout(broken(), timeout=1.0)

    async def test_timer_wins_and_late_result_is_ignored(self) -> None:
        release = asyncio.Event()
        finished = []

        async def slow() -> str:
            await release.wait()
            finished.append(True)
            return "late"

        before = abandoned_count()
        outcome = await race_with_timeout(slow(), timeout=0.01)

        assert outcome.completed is False
        assert outcome.value is None
        assert abandoned_count() == before + 1

        # The losing call was not cancelled
        release.set()
        await _settle()

        assert finished == [True]
        assert abandoned_count() == before

    async def test_late_error_is_collected(self) -> None:
        release = asyncio.Event()

        async def slow_failure() -> None:
            await release.wait()
            raise RuntimeError("too late")

        before = abandoned_count()
        outcome = await race_with_timeout(slow_failure(), timeout=0.01)
        assert outcome.completed is False

        release.set()
        await _settle()

        assert abandoned_count() == before

"""Tests for asset validation through the mirror layer."""

import asyncio

import httpx
import pytest
import respx
from helpers import make_item

from matchbuffer.cache.validation import AssetValidator
from matchbuffer.mirrors.resolver import AssetResolver
from matchbuffer.mirrors.tracker import MirrorHealthTracker
from matchbuffer.models.session import PairSession, VoteMode

V0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
M1 = "https://m1.example/ipfs/"
M2 = "https://m2.example/ipfs/"


@pytest.fixture
async def client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def resolver() -> AssetResolver:
    return AssetResolver(MirrorHealthTracker([M1, M2]))


class HangingValidator(AssetValidator):
    async def _probe(self, media_ref: str) -> bool:
        await asyncio.sleep(1)
        return True


class TestValidateItem:
    @respx.mock
    async def test_plain_url(self, resolver: AssetResolver, client: httpx.AsyncClient) -> None:
        respx.get("https://cdn.example.com/a.png").mock(return_value=httpx.Response(200))
        validator = AssetValidator(resolver, client)

        assert await validator.validate_item(make_item("a")) is True

    @respx.mock
    async def test_fails_over_to_next_mirror(
        self, resolver: AssetResolver, client: httpx.AsyncClient
    ) -> None:
        respx.get(f"{M1}{V0}").mock(return_value=httpx.Response(503))
        respx.get(f"{M2}{V0}").mock(return_value=httpx.Response(200))
        validator = AssetValidator(resolver, client)

        assert await validator.validate_item(make_item("a", media_ref=f"ipfs://{V0}")) is True

        assert resolver.tracker.health(M1).failure_count == 1
        assert resolver.tracker.health(M2).success_count == 1

    @respx.mock
    async def test_connection_errors_are_failures(
        self, resolver: AssetResolver, client: httpx.AsyncClient
    ) -> None:
        respx.get(f"{M1}{V0}").mock(side_effect=httpx.ConnectError("refused"))
        respx.get(f"{M2}{V0}").mock(return_value=httpx.Response(404))
        validator = AssetValidator(resolver, client)

        assert await validator.validate_item(make_item("a", media_ref=f"ipfs://{V0}")) is False

        assert resolver.tracker.health(M1).failure_count == 1
        assert resolver.tracker.health(M2).failure_count == 1

    @respx.mock
    async def test_results_are_cached(
        self, resolver: AssetResolver, client: httpx.AsyncClient
    ) -> None:
        route = respx.get("https://cdn.example.com/a.png").mock(return_value=httpx.Response(200))
        validator = AssetValidator(resolver, client)
        item = make_item("a")

        await validator.validate_item(item)
        await validator.validate_item(item)

        assert route.call_count == 1
        assert validator.cached_results == 1

        validator.forget(item.media_ref)
        await validator.validate_item(item)
        assert route.call_count == 2

        validator.clear()
        assert validator.cached_results == 0

    @respx.mock
    async def test_cache_is_bounded(
        self, resolver: AssetResolver, client: httpx.AsyncClient
    ) -> None:
        respx.get(url__startswith="https://cdn.example.com/").mock(
            return_value=httpx.Response(200)
        )
        validator = AssetValidator(resolver, client, max_cached=2)

        for name in ("a", "b", "c"):
            await validator.validate_item(make_item(name))

        assert validator.cached_results == 2

    async def test_deadline(self, resolver: AssetResolver, client: httpx.AsyncClient) -> None:
        validator = HangingValidator(resolver, client, timeout=0.01)

        assert await validator.validate_item(make_item("slow")) is False


class TestValidateSession:
    @respx.mock
    async def test_every_item_must_load(
        self, resolver: AssetResolver, client: httpx.AsyncClient
    ) -> None:
        respx.get("https://cdn.example.com/a.png").mock(return_value=httpx.Response(200))
        respx.get("https://cdn.example.com/b.png").mock(return_value=httpx.Response(500))
        validator = AssetValidator(resolver, client)
        session = PairSession(make_item("a"), make_item("b"), VoteMode.SAME_GROUP)

        assert await validator.validate_session(session) is False

    @respx.mock
    async def test_promoted_items_pass(
        self, resolver: AssetResolver, client: httpx.AsyncClient
    ) -> None:
        respx.get("https://cdn.example.com/a.png").mock(return_value=httpx.Response(200))
        respx.get("https://cdn.example.com/b.png").mock(return_value=httpx.Response(500))
        validator = AssetValidator(resolver, client)
        session = PairSession(make_item("a"), make_item("b", promoted=True), VoteMode.SAME_GROUP)

        assert await validator.validate_session(session) is True

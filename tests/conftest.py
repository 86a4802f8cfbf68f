import random

import httpx
import pytest
from helpers import FakeItemStore, make_item
from httpx import ASGITransport, AsyncClient

from matchbuffer.config import Settings
from matchbuffer.main import app
from matchbuffer.models.item import Item
from matchbuffer.services.container import Services, build_services, close_services

TEST_MIRRORS = ["https://m1.example/ipfs/", "https://m2.example/ipfs/"]


@pytest.fixture
def sample_items() -> list[Item]:
    """Twelve items spread over three groups."""
    return [
        make_item(f"{group}-{n}", group=group, pair_votes=n * 3, rating=1400.0 + n * 40)
        for group in ("alpha", "beta", "gamma")
        for n in range(4)
    ]


@pytest.fixture
def store(sample_items) -> FakeItemStore:
    return FakeItemStore(sample_items)


@pytest.fixture
async def services(store: FakeItemStore):
    """Service graph over in-memory stores; every asset loads."""
    config = Settings(
        mirror_urls=TEST_MIRRORS,
        preload_target_size=4,
        preload_minimum_size=1,
        preload_refill_trigger=2,
    )
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200))
    )
    services = build_services(config, store, store, http_client=http_client, rng=random.Random(4))
    await services.registry.load()
    services.registry.observe(store.items)
    yield services
    await close_services(services)


@pytest.fixture
async def client(services: Services):
    """Async client against the app with services installed (lifespan not run)."""
    app.state.services = services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.state.services = None

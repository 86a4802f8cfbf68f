"""Tests for the session endpoints."""

from httpx import ASGITransport, AsyncClient
from helpers import make_item

from matchbuffer.main import app
from matchbuffer.models.session import CalibrationSession, PairSession, VoteMode
from matchbuffer.services.container import Services

V0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


def _seed(services: Services) -> list[PairSession]:
    """Put three known sessions in the buffer, top last."""
    sessions = [
        PairSession(make_item("a"), make_item("b"), VoteMode.SAME_GROUP),
        PairSession(make_item("c"), make_item("d"), VoteMode.SAME_GROUP),
        PairSession(
            make_item("e", media_ref=f"ipfs://{V0}/5.png"),
            make_item("f"),
            VoteMode.SAME_GROUP,
            information_score=0.91,
            selection_reason="Close ratings - competitive matchup",
            enhanced=True,
        ),
    ]
    services.cache._buffer = list(sessions)
    return sessions


class TestNextSession:
    async def test_empty_buffer_is_known_failure(self, client: AsyncClient) -> None:
        response = await client.get("/sessions/next")

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "known_failure"
        assert data["failure"]["kind"] == "empty_result"

    async def test_pops_top_session(self, client: AsyncClient, services: Services) -> None:
        _seed(services)

        response = await client.get("/sessions/next")

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "success"
        session = data["data"]
        assert session["key"] == "e|f"
        assert session["mode"] == "same_group"
        assert session["enhanced"] is True
        assert session["information_score"] == 0.91
        assert session["items"][0]["image_url"] == f"https://m1.example/ipfs/{V0}/5.png"
        assert session["items"][1]["image_url"] == "https://cdn.example.com/f.png"
        assert "e|f" not in {s.key for s in services.cache._buffer}

    async def test_calibration_session_shape(
        self, client: AsyncClient, services: Services
    ) -> None:
        services.cache._buffer = [CalibrationSession(make_item("solo", calibration_votes=0))]

        data = (await client.get("/sessions/next")).json()["data"]

        assert data["mode"] == "calibration"
        assert data["key"] == "solo"
        assert len(data["items"]) == 1

    async def test_group_filter(self, client: AsyncClient, services: Services) -> None:
        services.cache._buffer = [
            PairSession(
                make_item("b1", group="beta"), make_item("b2", group="beta"), VoteMode.SAME_GROUP
            ),
            PairSession(make_item("a1"), make_item("a2"), VoteMode.SAME_GROUP),
        ]

        data = (await client.get("/sessions/next", params={"group": "beta"})).json()["data"]

        assert data["key"] == "b1|b2"

    async def test_service_not_started(self) -> None:
        app.state.services = None
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/sessions/next")

        assert response.status_code == 503
        data = response.json()
        assert data["outcome"] == "known_failure"
        assert data["failure"]["kind"] == "service_unavailable"


class TestSkip:
    async def test_skip_returns_next_session(
        self, client: AsyncClient, services: Services
    ) -> None:
        _seed(services)

        response = await client.post("/sessions/skip")

        data = response.json()
        assert data["outcome"] == "success"
        assert data["data"]["key"] == "c|d"
        assert "e|f" not in {s.key for s in services.cache._buffer}

    async def test_skip_with_nothing_left(self, client: AsyncClient) -> None:
        data = (await client.post("/sessions/skip")).json()

        assert data["outcome"] == "known_failure"
        assert data["failure"]["kind"] == "asset_unresolvable"


class TestMaintenance:
    async def test_reset_tracking(self, client: AsyncClient, services: Services) -> None:
        _seed(services)
        await client.get("/sessions/next")

        response = await client.post("/sessions/reset-tracking", json={"keep_last": 0})

        assert response.status_code == 200
        assert response.json()["data"]["seen_items"] == 0

    async def test_reset_tracking_without_body(self, client: AsyncClient) -> None:
        response = await client.post("/sessions/reset-tracking")

        assert response.status_code == 200
        assert response.json()["outcome"] == "success"

    async def test_reset_tracking_rejects_negative(self, client: AsyncClient) -> None:
        response = await client.post("/sessions/reset-tracking", json={"keep_last": -1})

        assert response.status_code == 422

    async def test_force_reset_refills(self, client: AsyncClient, services: Services) -> None:
        _seed(services)

        response = await client.post("/sessions/force-reset")

        assert response.status_code == 200
        size = response.json()["data"]["size"]
        assert 1 <= size <= 4
        keys = {session.key for session in services.cache._buffer}
        assert "e|f" not in keys

    async def test_status(self, client: AsyncClient, services: Services) -> None:
        _seed(services)

        data = (await client.get("/sessions/status")).json()["data"]

        assert data["size"] == 3
        assert data["target_size"] == 4
        assert "requests" in data["selection"]
        assert "current_ratio" in data["selection"]

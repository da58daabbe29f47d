"""
Tests for the HTTP API.
"""
import asyncio

import httpx
import pytest
import pytest_asyncio

from tests.conftest import MINUTE_MS, SERVER_URL, T0, make_program, make_service
from tuner_guide.config import CustomSettings
from tuner_guide.dependencies import get_guide_service
from tuner_guide.main import app
from tuner_guide.services.guide_service import GuideService
from tuner_guide.services.refresh_scheduler import NowNextRefresher


async def _never_wake(seconds: float) -> None:
    await asyncio.Event().wait()


def build_guide(data_source, clock, server_address=SERVER_URL) -> GuideService:
    settings = CustomSettings(_env_file=None, server_address=server_address)
    refresher = NowNextRefresher.from_settings(data_source, settings, clock=clock, sleep=_never_wake)
    return GuideService(settings, data_source, refresher)


@pytest_asyncio.fixture
async def guide(data_source, clock):
    s1 = make_service(1, remote_control_key_id=1, has_logo_data=True)
    s2 = make_service(2, remote_control_key_id=1)
    s3 = make_service(3, remote_control_key_id=4)
    data_source.services = [s1, s2, s3]
    data_source.programs = {
        1: [make_program(11, T0 - 5 * MINUTE_MS, 30, service_id=1)],
        2: [make_program(21, T0 - 5 * MINUTE_MS, 30, service_id=2)],
        3: [
            make_program(32, T0 + 25 * MINUTE_MS, 30, name="Drama", service_id=3),
            make_program(31, T0 - 5 * MINUTE_MS, 30, name="Anime", service_id=3),
        ],
    }
    service = build_guide(data_source, clock)
    app.dependency_overrides[get_guide_service] = lambda: service
    yield service
    app.dependency_overrides.clear()
    await service.close()


@pytest_asyncio.fixture
async def client(guide):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


class TestRoutes:
    @pytest.mark.asyncio
    async def test_reload(self, client):
        response = await client.post("/reload")

        assert response.status_code == 200
        assert response.json() == {
            "status": "fetched",
            "services": 3,
            "unique_services": 2,
            "duplicate_candidates": 2,
            "error": None,
        }

    @pytest.mark.asyncio
    async def test_reload_twice_uses_cached_list(self, client, data_source):
        await client.post("/reload")
        response = await client.post("/reload")

        assert response.json()["status"] == "cached"
        assert data_source.service_calls == 1

    @pytest.mark.asyncio
    async def test_services_collapse_simulcasts_by_default(self, client):
        await client.post("/reload")

        unique = (await client.get("/services")).json()
        everything = (await client.get("/services", params={"unique": "false"})).json()

        assert [s["id"] for s in unique["services"]] == [1, 3]
        assert [s["id"] for s in everything["services"]] == [1, 2, 3]
        assert unique["services"][0]["logo_url"] == f"{SERVER_URL}/api/services/1/logo"
        assert unique["services"][0]["now_next"]["now"]["name"] == "News"
        assert unique["services"][1]["now_next"]["now"] is None

    @pytest.mark.asyncio
    async def test_now_next_in_requested_timezone(self, client):
        await client.post("/reload")

        response = await client.get("/services/3/now-next", params={"timezone": "Asia/Tokyo"})

        body = response.json()
        assert response.status_code == 200
        assert body["now"]["name"] == "Anime"
        assert body["next"]["name"] == "Drama"
        assert body["now"]["start_time"].endswith("+09:00")
        assert body["refresh_after"] is not None
        assert body["fetching"] is False

    @pytest.mark.asyncio
    async def test_invalid_timezone(self, client):
        await client.post("/reload")

        response = await client.get("/services/3/now-next", params={"timezone": "Mars/Olympus"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_service(self, client):
        await client.post("/reload")

        response = await client.get("/services/99/now-next")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_programs_are_sorted(self, client):
        await client.post("/reload")

        response = await client.get("/services/3/programs")

        body = response.json()
        assert body["total_programs"] == 2
        assert [p["id"] for p in body["programs"]] == [31, 32]

    @pytest.mark.asyncio
    async def test_program_fetch_failure_maps_to_bad_gateway(self, client, data_source):
        await client.post("/reload")
        data_source.failing_program_ids = {3}

        response = await client.get("/services/3/programs")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "FETCH_FAILED"

    @pytest.mark.asyncio
    async def test_urls(self, client):
        await client.post("/reload")

        response = await client.get("/services/2/urls")

        assert response.json() == {
            "service_id": 2,
            "logo_url": None,
            "stream_url": f"{SERVER_URL}/api/services/2/stream",
        }

    @pytest.mark.asyncio
    async def test_health_reports_list_failure(self, client, data_source):
        data_source.fail_services = True

        reload = await client.post("/reload")
        health = await client.get("/health")

        assert reload.json()["status"] == "failed"
        assert health.json()["status"] == "degraded"
        assert health.json()["error"] == "Mirakurun request failed with status 500."


class TestUnconfiguredServer:
    @pytest.mark.asyncio
    async def test_reload_reports_configuration_error(self, data_source, clock):
        guide = build_guide(data_source, clock, server_address="  ")
        app.dependency_overrides[get_guide_service] = lambda: guide
        try:
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
                response = await http.post("/reload")
        finally:
            app.dependency_overrides.clear()
            await guide.close()

        assert response.json()["status"] == "failed"
        assert response.json()["error"] == "Set a valid Mirakurun server URL in settings."
        assert data_source.service_calls == 0

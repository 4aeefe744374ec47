from datetime import timedelta

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from gatekeeper.core.config import settings
from gatekeeper.middleware.rate_limit import RateLimitMiddleware, rate_limit_headers
from gatekeeper.services.cache import ExpiringCounterStore, RateGovernor, settings_policy
from tests.utils import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limited_app(clock: FakeClock, monkeypatch: pytest.MonkeyPatch) -> FastAPI:
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    monkeypatch.setattr(settings, "trust_forwarded_headers", False)
    monkeypatch.setattr(settings, "rate_limit_max_requests", 3)
    monkeypatch.setattr(settings, "rate_limit_window", timedelta(minutes=1))

    app = FastAPI()
    app.state.calls = 0

    @app.get("/ping")
    async def ping(request: Request):
        request.app.state.calls += 1
        return {"ok": True}

    governor = RateGovernor(ExpiringCounterStore(clock=clock), settings_policy(settings))
    app.add_middleware(RateLimitMiddleware, governor=governor, app_settings=settings)
    return app


def client_for(app: FastAPI, ip: str = "203.0.113.5") -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app, client=(ip, 40000)), base_url="http://test")


def test_rate_limit_headers():
    info = {"limit": 10, "remaining": 7, "reset_time": 1_700_000_060}

    assert rate_limit_headers(info) == {
        "X-RateLimit-Limit": "10",
        "X-RateLimit-Remaining": "7",
        "X-RateLimit-Reset": "1700000060",
    }


@pytest.mark.anyio
class TestRateLimitMiddleware:
    """Test the IP-keyed gate in front of routing."""

    async def test_rejects_over_limit(self, limited_app: FastAPI):
        async with client_for(limited_app) as client:
            statuses = [(await client.get("/ping")).status_code for _ in range(4)]
            rejected = await client.get("/ping")

        assert statuses == [200, 200, 200, 429]
        assert rejected.text == "Too many requests"
        assert rejected.headers["content-type"].startswith("text/plain")
        assert rejected.headers["X-RateLimit-Remaining"] == "0"

    async def test_rejected_requests_never_reach_handler(self, limited_app: FastAPI):
        async with client_for(limited_app) as client:
            for _ in range(6):
                await client.get("/ping")

        assert limited_app.state.calls == 3

    async def test_admitted_response_headers(self, limited_app: FastAPI):
        async with client_for(limited_app) as client:
            response = await client.get("/ping")

        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert "X-RateLimit-Reset" in response.headers

    async def test_clients_counted_separately(self, limited_app: FastAPI):
        async with client_for(limited_app, "203.0.113.5") as first:
            for _ in range(3):
                await first.get("/ping")
            assert (await first.get("/ping")).status_code == 429

        async with client_for(limited_app, "198.51.100.1") as second:
            assert (await second.get("/ping")).status_code == 200

    async def test_unknown_route_counts(self, limited_app: FastAPI):
        """Test that the gate runs before routing, so 404s use up the quota too."""
        async with client_for(limited_app) as client:
            for _ in range(3):
                assert (await client.get("/missing")).status_code == 404
            assert (await client.get("/ping")).status_code == 429

    async def test_admitted_after_window(self, limited_app: FastAPI, clock: FakeClock):
        async with client_for(limited_app) as client:
            for _ in range(4):
                await client.get("/ping")

            clock.advance(60)

            assert (await client.get("/ping")).status_code == 200

    async def test_forwarded_for_ignored_unless_trusted(
        self, limited_app: FastAPI, monkeypatch: pytest.MonkeyPatch
    ):
        async with client_for(limited_app) as client:
            for n in range(3):
                await client.get("/ping", headers={"X-Forwarded-For": f"198.51.100.{n}"})

            assert (await client.get("/ping")).status_code == 429

            monkeypatch.setattr(settings, "trust_forwarded_headers", True)
            response = await client.get("/ping", headers={"X-Forwarded-For": "198.51.100.99"})

        assert response.status_code == 200

    async def test_disabled(self, limited_app: FastAPI, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(settings, "rate_limit_enabled", False)

        async with client_for(limited_app) as client:
            statuses = {(await client.get("/ping")).status_code for _ in range(10)}
            response = await client.get("/ping")

        assert statuses == {200}
        assert "X-RateLimit-Limit" not in response.headers

    async def test_limit_changes_apply_immediately(
        self, limited_app: FastAPI, monkeypatch: pytest.MonkeyPatch
    ):
        async with client_for(limited_app) as client:
            for _ in range(3):
                await client.get("/ping")

            monkeypatch.setattr(settings, "rate_limit_max_requests", 5)

            assert (await client.get("/ping")).status_code == 200
            assert (await client.get("/ping")).status_code == 200
            assert (await client.get("/ping")).status_code == 429

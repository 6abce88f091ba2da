from fastapi import FastAPI
from fastapi.testclient import TestClient

from taskflow.config import settings
from taskflow.main import create_app
from taskflow.middleware import RateLimitMiddleware


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _limited_app(clock: FakeClock, max_requests: int = 2, window_seconds: float = 60) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, max_requests=max_requests, window_seconds=window_seconds, clock=clock)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    return app


def test_requests_over_budget_get_429():
    client = TestClient(_limited_app(FakeClock()))

    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 200
    blocked = client.get("/ping")
    assert blocked.status_code == 429
    assert blocked.json()["detail"].startswith("Too many requests")
    assert blocked.headers["retry-after"] == "60"


def test_window_rolls_forward():
    clock = FakeClock()
    client = TestClient(_limited_app(clock))

    client.get("/ping")
    clock.now += 30
    client.get("/ping")
    assert client.get("/ping").status_code == 429

    clock.now += 31
    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 429


def test_app_applies_configured_budget(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 3)
    client = TestClient(create_app())

    statuses = [client.get("/api/health").status_code for _ in range(4)]
    assert statuses == [200, 200, 200, 429]


def test_limiter_can_be_disabled(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
    monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 1)
    client = TestClient(create_app())

    assert [client.get("/api/health").status_code for _ in range(3)] == [200, 200, 200]


def test_idle_addresses_are_forgotten():
    clock = FakeClock()
    limiter = RateLimitMiddleware(FastAPI(), max_requests=2, window_seconds=60, clock=clock)

    assert limiter._allow("10.0.0.1")
    assert limiter._allow("10.0.0.2")
    clock.now += 61
    assert limiter._allow("10.0.0.3")

    assert set(limiter._hits) == {"10.0.0.3"}

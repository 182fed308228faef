"""Health endpoints and middleware behaviour."""

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from heroes.config import get_settings
from heroes.main import create_app


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_readiness_without_redis(client: AsyncClient) -> None:
    """Redis is switched off in tests, so it reports 'disabled' and the app is still ready."""
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok", "redis": "disabled"}


async def test_version(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert response.json()["version"] == "0.1.0"


async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36


async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "req-42"})
    assert response.headers["x-request-id"] == "req-42"


async def test_no_rate_limit_headers_without_redis(client: AsyncClient) -> None:
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert "x-ratelimit-limit" not in response.headers


async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/health",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "GET"},
    )
    assert "access-control-allow-origin" in response.headers


class FakePipeline:
    def __init__(self, store: "FakeRedis") -> None:
        self.store = store
        self.ops: list[tuple] = []

    def incr(self, key: str) -> "FakePipeline":
        self.ops.append(("incr", key))
        return self

    def expire(self, key: str, seconds: int) -> "FakePipeline":
        self.ops.append(("expire", key, seconds))
        return self

    async def execute(self) -> list:
        results: list = []
        for op in self.ops:
            if op[0] == "incr":
                self.store.counts[op[1]] = self.store.counts.get(op[1], 0) + 1
                results.append(self.store.counts[op[1]])
            else:
                self.store.ttls[op[1]] = op[2]
                results.append(True)
        return results


class FakeRedis:
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)


async def test_rate_limit_blocks_excess(database: str, monkeypatch: pytest.MonkeyPatch) -> None:
    """Fourth request in a window of three returns 429 with Retry-After."""
    monkeypatch.setenv("HH_RATE_LIMIT_REQUESTS", "3")
    get_settings.cache_clear()
    fake = FakeRedis()
    monkeypatch.setattr("heroes.middleware.rate_limit.current_redis", lambda: fake)
    monkeypatch.setattr("heroes.middleware.rate_limit.time", SimpleNamespace(time=lambda: 1_700_000_000.0))

    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as ac:
        allowed = [await ac.get("/api/auth/me") for _ in range(3)]
        blocked = await ac.get("/api/auth/me")
        health = await ac.get("/health")

    assert [r.status_code for r in allowed] == [401, 401, 401]
    assert [r.headers["x-ratelimit-remaining"] for r in allowed] == ["2", "1", "0"]
    assert allowed[0].headers["x-ratelimit-limit"] == "3"

    assert blocked.status_code == 429
    assert blocked.json() == {"detail": "Rate limit exceeded. Try again later."}
    assert blocked.headers["retry-after"] == "60"
    assert blocked.headers["x-ratelimit-remaining"] == "0"

    assert health.status_code == 200
    assert "x-ratelimit-limit" not in health.headers

    (key,) = fake.counts
    assert key.startswith("hh:ratelimit:") and key.endswith(f":{1_700_000_000 // 60}")
    assert fake.counts[key] == 4
    assert fake.ttls[key] == 61

"""Tests for the REST API."""

import json

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from api import main

EXAMPLE = "<div>   <!-- hi -->\n<pre>  a   b  </pre>   <span onclick=\"x( 1,2 )\">t</span>  </div>"
EXAMPLE_COMPRESSED = "<div> <pre>  a   b  </pre> <span onclick=\"x( 1,2 )\">t</span> </div>"


class FakeRedis:
    """In-memory stand-in for the async Redis client."""

    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def ping(self):
        return True


class DownRedis:
    """Client whose server went away after startup."""

    def __init__(self):
        self.calls: list[str] = []

    async def _fail(self, name):
        self.calls.append(name)
        raise RedisConnectionError("Connection refused")

    async def get(self, key):
        await self._fail("get")

    async def setex(self, key, ttl, value):
        await self._fail("setex")

    async def ping(self):
        await self._fail("ping")


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main, "redis_client", None)
    return TestClient(main.app)


@pytest.fixture
def cached_client(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(main, "redis_client", fake)
    return TestClient(main.app), fake


@pytest.fixture
def down_client(monkeypatch):
    down = DownRedis()
    monkeypatch.setattr(main, "redis_client", down)
    return TestClient(main.app), down


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["version"] == main.VERSION
        assert body["cache_enabled"] is False
        assert body["redis_connected"] is False

    def test_health_with_cache(self, cached_client):
        client, _ = cached_client
        body = client.get("/health").json()
        assert body["cache_enabled"] is True
        assert body["redis_connected"] is True

    def test_cache_stats_without_redis(self, client):
        body = client.get("/cache/stats").json()
        assert body["enabled"] is False
        assert body["connected"] is False
        assert body["ttl_seconds"] == main.CACHE_TTL
        assert body["keys_count"] is None


class TestCompressEndpoint:
    def test_compress_defaults(self, client):
        response = client.post("/compress", json={"html": EXAMPLE})
        assert response.status_code == 200
        assert response.json() == {"html": EXAMPLE_COMPRESSED}

    def test_compress_with_flags(self, client):
        response = client.post("/compress", json={
            "html": '<ul>\n  <li class="a">x</li>\n</ul>',
            "remove_intertag_spaces": True,
            "remove_quotes": True,
        })
        assert response.json()["html"] == "<ul><li class=a>x</li></ul>"

    def test_compress_disabled(self, client):
        response = client.post("/compress", json={"html": EXAMPLE, "enabled": False})
        assert response.json()["html"] == EXAMPLE

    def test_custom_preserve_pattern(self, client):
        response = client.post("/compress", json={
            "html": "<p>{{ a   b }}</p>   <p>c</p>",
            "preserve_patterns": [r"\{\{.*?\}\}"],
        })
        assert response.json()["html"] == "<p>{{ a   b }}</p> <p>c</p>"

    def test_invalid_pattern_returns_422(self, client):
        response = client.post("/compress", json={"html": "<p>x</p>", "preserve_patterns": ["("]})
        assert response.status_code == 422
        assert "Invalid regex pattern" in response.json()["detail"]

    def test_missing_html_returns_422(self, client):
        assert client.post("/compress", json={}).status_code == 422

    def test_result_cached(self, cached_client):
        client, fake = cached_client
        client.post("/compress", json={"html": EXAMPLE})
        assert list(fake.store.values()) == [EXAMPLE_COMPRESSED]
        key = next(iter(fake.store))
        assert key.startswith("compress:")

        fake.store[key] = "<cached/>"
        assert client.post("/compress", json={"html": EXAMPLE}).json()["html"] == "<cached/>"


class TestStatsEndpoint:
    def test_stats(self, client):
        response = client.post("/compress/stats", json={"html": EXAMPLE})
        assert response.status_code == 200
        body = response.json()
        assert body["html"] == EXAMPLE_COMPRESSED
        assert body["original_length"] == len(EXAMPLE)
        assert body["compressed_length"] == len(EXAMPLE_COMPRESSED)
        assert body["preserved_blocks"] == [
            {"kind": "event", "index": 0, "text": "x( 1,2 )"},
            {"kind": "pre", "index": 0, "text": "<pre>  a   b  </pre>"},
        ]

    def test_stats_cached_as_json(self, cached_client):
        client, fake = cached_client
        first = client.post("/compress/stats", json={"html": EXAMPLE}).json()
        (key, value), = fake.store.items()
        assert key.startswith("compress_stats:")
        assert json.loads(value) == first
        assert client.post("/compress/stats", json={"html": EXAMPLE}).json() == first

    def test_stats_invalid_pattern(self, client):
        response = client.post("/compress/stats", json={"html": "<p>x</p>", "preserve_patterns": ["[a-"]})
        assert response.status_code == 422


class TestRedisOutage:
    def test_compress_still_served(self, down_client):
        client, down = down_client
        response = client.post("/compress", json={"html": "<p>a   b</p>"})
        assert response.status_code == 200
        assert response.json() == {"html": "<p>a b</p>"}
        assert down.calls == ["get", "setex"]

    def test_stats_still_served(self, down_client):
        client, _ = down_client
        response = client.post("/compress/stats", json={"html": EXAMPLE})
        assert response.status_code == 200
        assert response.json()["html"] == EXAMPLE_COMPRESSED

    def test_health_reports_disconnected(self, down_client):
        client, _ = down_client
        body = client.get("/health").json()
        assert body["cache_enabled"] is True
        assert body["redis_connected"] is False

    def test_cache_stats_reports_disconnected(self, down_client):
        client, _ = down_client
        body = client.get("/cache/stats").json()
        assert body["enabled"] is True
        assert body["connected"] is False
        assert body["keys_count"] is None


class TestBatchEndpoint:
    def test_batch(self, client):
        response = client.post("/compress/batch", json={
            "items": [
                {"id": "one", "html": EXAMPLE},
                {"id": "two", "html": "<p>  x  </p>"},
            ],
        })
        assert response.status_code == 200
        body = response.json()
        assert [item["id"] for item in body["items"]] == ["one", "two"]
        assert body["items"][0]["html"] == EXAMPLE_COMPRESSED
        assert body["items"][1]["html"] == "<p> x </p>"
        assert body["total_original_length"] == len(EXAMPLE) + len("<p>  x  </p>")
        assert body["total_compressed_length"] == len(EXAMPLE_COMPRESSED) + len("<p> x </p>")
        assert body["overall_ratio"] == pytest.approx(
            body["total_compressed_length"] / body["total_original_length"]
        )

    def test_empty_batch(self, client):
        body = client.post("/compress/batch", json={"items": []}).json()
        assert body["items"] == []
        assert body["overall_ratio"] == 1.0
        assert body["overall_savings_pct"] == 0.0

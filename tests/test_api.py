"""Tests for the FastAPI routes."""

from __future__ import annotations

from collections.abc import Callable, Generator
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import HEALTHY_URL
from statuspage.api.server import create_app
from statuspage.config import Settings
from statuspage.health.checker import StatusChecker
from statuspage.health.store import MemoryKV, ResultStore
from statuspage.targets.registry import Target, TargetRegistry


@pytest.fixture
def cfg() -> Settings:
    return Settings(scheduler_enabled=False, store_backend="memory", status_cache_max_age=20)


@pytest.fixture
def client(
    cfg: Settings,
    targets: list[Target],
    store: ResultStore,
    make_checker: Callable[..., StatusChecker],
) -> Generator[TestClient, None, None]:
    app = create_app(cfg)
    app.state.registry = TargetRegistry(targets=targets)
    app.state.store = store
    app.state.checker = make_checker(targets)
    with TestClient(app) as c:
        yield c


class TestStatusEndpoint:
    def test_cold_start_placeholders(self, client: TestClient) -> None:
        resp = client.get("/api/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["overall"] is None
        assert data["items"] == [
            {"id": "a", "group": "APIs", "url": HEALTHY_URL, "ok": None},
            {"id": "b", "group": "Render", "url": "https://unreachable.example.com/", "ok": None},
        ]

    def test_cache_control(self, client: TestClient) -> None:
        resp = client.get("/api/status")
        assert resp.headers["cache-control"] == "public, max-age=20"

    def test_does_not_probe(self, client: TestClient) -> None:
        client.app.state.checker = MagicMock()
        client.get("/api/status")
        client.app.state.checker.run_cycle.assert_not_called()

    def test_degraded_is_still_200(self, client: TestClient) -> None:
        client.post("/api/run-now")
        resp = client.get("/api/status")
        assert resp.status_code == 200
        assert resp.json()["overall"]["overall"] == "degraded"


class TestRunNow:
    def test_acknowledges(self, client: TestClient) -> None:
        resp = client.post("/api/run-now")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_status_reflects_cycle(self, client: TestClient) -> None:
        client.post("/api/run-now")
        data = client.get("/api/status").json()

        a, b = data["items"]
        assert a["id"] == "a" and a["ok"] is True and a["status"] == 200
        assert b["id"] == "b" and b["ok"] is False and b["status"] == 0
        assert b["error"]
        assert data["overall"]["overall"] == "degraded"
        assert data["overall"]["at"]

    def test_repeat_overwrites(self, cfg: Settings, transport: httpx.MockTransport) -> None:
        kv = MemoryKV()
        registry = TargetRegistry(targets=[Target(id="a", group="APIs", url=HEALTHY_URL)])
        app = create_app(cfg)
        app.state.registry = registry
        app.state.store = ResultStore(kv)
        app.state.checker = StatusChecker(registry, app.state.store, timeout_ms=500, transport=transport)

        with TestClient(app) as c:
            c.post("/api/run-now")
            first = c.get("/api/status").json()
            c.post("/api/run-now")
            second = c.get("/api/status").json()

        assert sorted(kv.keys()) == ["status:a", "status:overall"]
        assert second["overall"]["overall"] == "operational"
        assert second["items"][0]["at"] >= first["items"][0]["at"]

    def test_get_is_not_a_trigger(self, client: TestClient) -> None:
        resp = client.get("/api/run-now")
        assert resp.status_code == 200
        assert resp.text == "OK"
        assert client.get("/api/status").json()["overall"] is None


class TestCORSAndFallback:
    def test_preflight(self, client: TestClient) -> None:
        resp = client.options("/api/status")
        assert resp.status_code == 200
        assert resp.content == b""
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-methods"] == "GET,POST,OPTIONS"
        assert resp.headers["access-control-allow-headers"] == "content-type,authorization"

    def test_preflight_skips_store(self, client: TestClient) -> None:
        store = MagicMock()
        client.app.state.store = store
        client.options("/api/run-now", headers={
            "Origin": "https://status.example.com",
            "Access-Control-Request-Method": "POST",
        })
        assert store.method_calls == []

    def test_cors_on_json(self, client: TestClient) -> None:
        resp = client.get("/api/status")
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_configured_origin(
        self, targets: list[Target], store: ResultStore, make_checker: Callable[..., StatusChecker],
    ) -> None:
        cfg = Settings(
            scheduler_enabled=False, store_backend="memory",
            cors_allow_origin="https://status.example.com",
        )
        app = create_app(cfg)
        app.state.registry = TargetRegistry(targets=targets)
        app.state.store = store
        app.state.checker = make_checker(targets)
        with TestClient(app) as c:
            resp = c.get("/api/status")
        assert resp.headers["access-control-allow-origin"] == "https://status.example.com"

    @pytest.mark.parametrize("method,path", [
        ("GET", "/"),
        ("GET", "/anything/else"),
        ("POST", "/api/status"),
        ("DELETE", "/api/run-now"),
        ("PUT", "/api"),
    ])
    def test_fallback_ok(self, client: TestClient, method: str, path: str) -> None:
        resp = client.request(method, path)
        assert resp.status_code == 200
        assert resp.text == "OK"
        assert resp.headers["access-control-allow-origin"] == "*"


class TestLifespan:
    def test_builds_components_from_settings(self, tmp_path) -> None:
        targets_file = tmp_path / "targets.yaml"
        targets_file.write_text("targets:\n  - id: a\n    group: APIs\n    url: https://a.example.com/\n")
        cfg = Settings(
            scheduler_enabled=False,
            store_backend="sqlite",
            store_path=str(tmp_path / "status.db"),
            targets_file=str(targets_file),
        )
        app = create_app(cfg)
        with TestClient(app) as c:
            data = c.get("/api/status").json()
            assert isinstance(app.state.checker, StatusChecker)
            assert app.state.scheduler is None
        assert data == {
            "overall": None,
            "items": [{"id": "a", "group": "APIs", "url": "https://a.example.com/", "ok": None}],
        }

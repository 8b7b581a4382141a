"""Tests for the read-only HTTP status surface."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from portx_bot.evaluator import evaluate
from portx_bot.health import HealthMonitor
from portx_bot.state import BotState
from portx_bot.web.server import create_app


@pytest.fixture
def health():
    return HealthMonitor()


@pytest.fixture
def client(registry, ledger, health, clock):
    app = create_app(registry, ledger, health, BotState(started_at=clock()), clock=clock)
    return TestClient(app)


def test_signals_endpoint_filters_by_destination(client, registry, long_request, short_request):
    registry.create(long_request, destination=-100)
    registry.create(short_request, destination=-200)

    body = client.get("/api/signals", params={"destination": "-100"}).json()

    assert body["count"] == 1
    assert body["signals"][0]["pair"] == "BTC_USDT"
    assert body["signals"][0]["status"] == "PENDING"
    assert body["signals"][0]["created_at"].startswith("2026-03-02T01:00")


def test_signals_endpoint_requires_destination(client):
    assert client.get("/api/signals").status_code == 422


def test_recap_endpoint(client, registry, ledger, long_request, clock):
    signal = registry.get(registry.create(long_request, destination="chan"))
    clock.advance(minutes=1)
    triggered = evaluate(signal, 101.0, clock()).signal
    clock.advance(minutes=1)
    result = evaluate(triggered, 111.0, clock())
    ledger.record(result.closure)

    body = client.get("/api/recap", params={"destination": "chan", "hours": 1}).json()

    assert body["tp"] == 1
    assert body["total"] == 1
    assert body["win_rate"] == 100.0
    assert body["records"][0]["outcome"] == "TP"

    clock.advance(hours=2)
    assert client.get("/api/recap", params={"destination": "chan", "hours": 1}).json()["total"] == 0


def test_recap_rejects_non_positive_window(client):
    assert client.get("/api/recap", params={"destination": "1", "hours": 0}).status_code == 422


def test_health_endpoint(client, registry, health, long_request):
    registry.create(long_request, destination=1)
    health.set_telegram_ok(False)

    body = client.get("/api/health").json()

    assert body["telegram"] == "ERROR"
    assert body["price_feed"] == "OK"
    assert body["mode"] == "TEST"
    assert body["active_signals"] == 1
    assert body["closed_signals"] == 0


def test_recap_window_end_moves_with_clock(client, clock):
    body = client.get("/api/recap", params={"destination": "1"}).json()

    assert body["since"] == (clock() - timedelta(hours=24)).isoformat()


@pytest.mark.asyncio
async def test_serve_web_hands_app_to_uvicorn(monkeypatch, client):
    import uvicorn

    from portx_bot.config import AppConfig
    from portx_bot.main import _serve_web

    served = []

    class FakeServer:
        def __init__(self, config):
            self.config = config

        async def serve(self):
            served.append(self.config)

    monkeypatch.setattr(uvicorn, "Server", FakeServer)
    config = AppConfig.model_validate(
        {
            "telegram": {"api_id": 1, "api_hash": "hash", "bot_token": "token", "target_chat_id": -100},
            "web": {"enabled": True, "host": "0.0.0.0", "port": 9000},
        }
    )

    await _serve_web(config, client.app)

    assert served[0].app is client.app
    assert (served[0].host, served[0].port) == ("0.0.0.0", 9000)

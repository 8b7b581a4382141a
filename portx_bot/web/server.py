"""Read-only HTTP status surface: active signals, recaps and health."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import FastAPI, Query

from portx_bot.health import HealthMonitor
from portx_bot.ledger import HistoryLedger
from portx_bot.registry import SignalRegistry
from portx_bot.state import BotState


def _destination(raw: str) -> int | str:
    try:
        return int(raw)
    except ValueError:
        return raw


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def create_app(
    registry: SignalRegistry,
    ledger: HistoryLedger,
    health: HealthMonitor,
    state: BotState,
    position_lookup: Callable[[str], Any] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    now_fn = clock or (lambda: datetime.now(UTC))
    app = FastAPI(title="portx_bot status")

    @app.get("/api/signals")
    async def list_signals(destination: str = Query(...)) -> dict[str, Any]:
        summaries = registry.list_active(_destination(destination), position_lookup)
        return {
            "destination": destination,
            "count": len(summaries),
            "signals": [_jsonable(asdict(s)) for s in summaries],
        }

    @app.get("/api/recap")
    async def recap(destination: str = Query(...), hours: float = Query(24, gt=0)) -> dict[str, Any]:
        since = now_fn() - timedelta(hours=hours)
        summary = ledger.recap(_destination(destination), since)
        return {
            "destination": destination,
            "since": since.isoformat(),
            "tp": summary.tp,
            "sl": summary.sl,
            "expired": summary.expired,
            "total": summary.total,
            "win_rate": summary.win_rate,
            "records": [_jsonable(asdict(r)) for r in summary.records],
        }

    @app.get("/api/health")
    async def health_status() -> dict[str, Any]:
        return {
            **health.snapshot(),
            "mode": state.mode,
            "started_at": state.started_at.isoformat(),
            "active_signals": len(registry),
            "closed_signals": len(ledger),
        }

    return app

"""System health tracking for the price feed, Telegram and the tick loop."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class HealthStatus:
    price_feed: str = "OK"
    telegram: str = "OK"
    price_consecutive_errors: int = 0
    last_price_error: str | None = None
    last_tick_at: datetime | None = None
    ticks: int = 0


class HealthMonitor:
    def __init__(self, logger: Any | None = None, degraded_after: int = 3) -> None:
        self.logger = logger
        self.degraded_after = degraded_after
        self.status = HealthStatus()

    def record_tick(self, report: Any) -> None:
        """Update from a scheduler ``TickReport``."""
        self.status.last_tick_at = report.started_at
        self.status.ticks += 1
        if report.failed_pairs and not report.prices:
            self.status.price_consecutive_errors += 1
            self.status.last_price_error = next(iter(report.failed_pairs.values()))
            if self.status.price_consecutive_errors >= self.degraded_after:
                if self.status.price_feed != "ERROR":
                    self._log_warning(
                        "HealthMonitor: price feed failed {} ticks in a row",
                        self.status.price_consecutive_errors,
                    )
                self.status.price_feed = "ERROR"
            return
        if report.prices:
            self.status.price_consecutive_errors = 0
            self.status.price_feed = "DEGRADED" if report.failed_pairs else "OK"

    def set_telegram_ok(self, ok: bool) -> None:
        self.status.telegram = "OK" if ok else "ERROR"

    def snapshot(self) -> dict[str, str | int | None]:
        return {
            "price_feed": self.status.price_feed,
            "telegram": self.status.telegram,
            "price_consecutive_errors": self.status.price_consecutive_errors,
            "last_price_error": self.status.last_price_error,
            "last_tick_at": self.status.last_tick_at.isoformat() if self.status.last_tick_at else None,
            "ticks": self.status.ticks,
        }

    def _log_warning(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "warning"):
            self.logger.warning(message, *args)

"""Time-of-day jobs: daily recap and morning briefing."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from loguru import logger as default_logger

from portx_bot.ledger import HistoryLedger
from portx_bot.models import DAILY_RECAP, MORNING_BRIEFING
from portx_bot.notifier import Notifier
from portx_bot.registry import SignalRegistry


def parse_hhmm(value: str) -> time:
    hours, minutes = value.strip().split(":", 1)
    return time(hour=int(hours), minute=int(minutes))


@dataclass(slots=True, frozen=True)
class RecapJob:
    kind: str
    at: time


class RecapScheduler:
    """Fires each job once per local calendar day at or after its configured time."""

    def __init__(
        self,
        registry: SignalRegistry,
        ledger: HistoryLedger,
        notifier: Notifier,
        timezone: str = "UTC",
        daily_recap_time: str = "23:59",
        morning_briefing_time: str = "08:00",
        window_hours: float = 24,
        check_interval_sec: float = 30,
        clock: Callable[[], datetime] | None = None,
        logger: Any | None = None,
    ) -> None:
        self.registry = registry
        self.ledger = ledger
        self.notifier = notifier
        self.tz = ZoneInfo(timezone)
        self.jobs = (
            RecapJob(kind=DAILY_RECAP, at=parse_hhmm(daily_recap_time)),
            RecapJob(kind=MORNING_BRIEFING, at=parse_hhmm(morning_briefing_time)),
        )
        self.window = timedelta(hours=window_hours)
        self.check_interval_sec = check_interval_sec
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger or default_logger
        self._last_fired: dict[str, date] = {}

    async def run_loop(self) -> None:
        self.prime()
        while True:
            try:
                await self.check_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self.logger.exception("RecapScheduler error: {}", exc)
            await asyncio.sleep(self.check_interval_sec)

    def prime(self, now: datetime | None = None) -> None:
        """Mark jobs whose time already passed today as done, so a restart does not resend them."""
        local = (now or self.clock()).astimezone(self.tz)
        for job in self.jobs:
            if local.time() >= job.at:
                self._last_fired[job.kind] = local.date()

    async def check_once(self, now: datetime | None = None) -> list[str]:
        now = now or self.clock()
        local = now.astimezone(self.tz)
        fired: list[str] = []
        for job in self.jobs:
            if local.time() < job.at or self._last_fired.get(job.kind) == local.date():
                continue
            self._last_fired[job.kind] = local.date()
            if job.kind == DAILY_RECAP:
                await self.send_daily_recap(now)
            else:
                await self.send_morning_briefing(now)
            fired.append(job.kind)
        return fired

    async def send_daily_recap(self, now: datetime) -> int:
        since = now - self.window
        sent = 0
        for destination in self.ledger.destinations(since):
            recap = self.ledger.recap(destination, since)
            hours = self.window.total_seconds() / 3600
            if await self._notify(destination, DAILY_RECAP, {"recap": recap, "hours": hours}):
                sent += 1
        self.logger.info("Daily recap sent to {} destination(s)", sent)
        return sent

    async def send_morning_briefing(self, now: datetime) -> int:
        since = now - self.window
        destinations = list(self.ledger.destinations(since))
        for signal in self.registry.active():
            if signal.destination not in destinations:
                destinations.append(signal.destination)

        sent = 0
        for destination in destinations:
            payload = {
                "signals": self.registry.list_active(destination),
                "recap": self.ledger.recap(destination, since),
                "now": now,
            }
            if await self._notify(destination, MORNING_BRIEFING, payload):
                sent += 1
        self.logger.info("Morning briefing sent to {} destination(s)", sent)
        return sent

    async def _notify(self, destination: int | str, kind: str, payload: dict[str, Any]) -> bool:
        try:
            await self.notifier.notify(destination, kind, payload)
            return True
        except Exception as exc:  # noqa: BLE001
            self.logger.error("Notify failed kind={} destination={} err={}", kind, destination, exc)
            return False

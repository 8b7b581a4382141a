"""Background monitor that mirrors open MEXC futures positions for status output."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol

from portx_bot.models import LivePosition


class PositionSource(Protocol):
    async def get_open_positions(self) -> list[LivePosition]: ...


class PositionSync:
    """Keeps the latest position per pair; never touches signal state."""

    def __init__(self, source: PositionSource, interval_sec: float = 10.0, logger: Any | None = None) -> None:
        self.source = source
        self.interval_sec = interval_sec
        self.logger = logger
        self._by_pair: dict[str, LivePosition] = {}
        self.synced_at: datetime | None = None

    async def run_loop(self) -> None:
        while True:
            started = datetime.now(UTC)
            try:
                await self.sync_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self._error("PositionSync error: {}", exc)
            elapsed = (datetime.now(UTC) - started).total_seconds()
            if elapsed > self.interval_sec:
                self._warning("PositionSync API sync took {:.2f}s (>{}s)", elapsed, self.interval_sec)
            await asyncio.sleep(self.interval_sec)

    async def sync_once(self) -> list[LivePosition]:
        positions = await self.source.get_open_positions()
        self._by_pair = {p.pair: p for p in positions}
        self.synced_at = datetime.now(UTC)
        return positions

    def position_for(self, pair: str) -> LivePosition | None:
        return self._by_pair.get(pair)

    def _warning(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "warning"):
            self.logger.warning(message, *args)
        elif self.logger is not None and hasattr(self.logger, "info"):
            self.logger.info(message, *args)

    def _error(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "error"):
            self.logger.error(message, *args)

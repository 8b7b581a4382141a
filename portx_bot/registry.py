"""In-memory registry of active signals."""

from __future__ import annotations

import math
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

from portx_bot.errors import InvalidSignal
from portx_bot.models import SIDES, LivePosition, Signal, SignalRequest, SignalSummary


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SignalRegistry:
    """Owns every active ``Signal``; callers only ever see copies."""

    def __init__(self, clock: Callable[[], datetime] | None = None, logger: Any | None = None) -> None:
        self.clock = clock or _utcnow
        self.logger = logger
        self._signals: dict[str, Signal] = {}

    def __len__(self) -> int:
        return len(self._signals)

    def __contains__(self, signal_id: object) -> bool:
        return signal_id in self._signals

    def create(self, request: SignalRequest, destination: int | str, now: datetime | None = None) -> str:
        self._validate(request)
        created_at = now or self.clock()
        signal_id = f"S{int(created_at.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}"
        self._signals[signal_id] = Signal(
            id=signal_id,
            pair=request.pair,
            side=request.side,
            entry_low=float(request.entry_low),
            entry_high=float(request.entry_high),
            stop_loss_initial=float(request.stop_loss),
            take_profit=float(request.take_profit) if request.take_profit is not None else None,
            trail_start_pct=float(request.trail_start_pct),
            trail_gap_pct=float(request.trail_gap_pct),
            max_runtime=timedelta(minutes=request.max_runtime_min),
            created_at=created_at,
            destination=destination,
            note=request.note,
        )
        self._info(
            "Registry: created signal id={} pair={} side={} entry={}-{} sl={} tp={} destination={}",
            signal_id,
            request.pair,
            request.side,
            request.entry_low,
            request.entry_high,
            request.stop_loss,
            request.take_profit,
            destination,
        )
        return signal_id

    def get(self, signal_id: str) -> Signal | None:
        signal = self._signals.get(signal_id)
        return replace(signal) if signal is not None else None

    def for_each_active(self, fn: Callable[[Signal], None]) -> None:
        for signal in list(self._signals.values()):
            fn(replace(signal))

    def active(self) -> list[Signal]:
        return [replace(signal) for signal in self._signals.values()]

    def pairs(self) -> set[str]:
        return {signal.pair for signal in self._signals.values()}

    def apply(self, signal: Signal) -> bool:
        """Store the evaluated state of a still-active signal."""
        if signal.id not in self._signals:
            return False
        if signal.closed:
            self.remove(signal.id)
            return True
        self._signals[signal.id] = replace(signal)
        return True

    def remove(self, signal_id: str) -> Signal | None:
        removed = self._signals.pop(signal_id, None)
        if removed is not None:
            self._info("Registry: removed signal id={} pair={}", signal_id, removed.pair)
        return removed

    def list_active(
        self,
        destination: int | str,
        positions: Callable[[str], LivePosition | None] | None = None,
    ) -> list[SignalSummary]:
        rows = [s for s in self._signals.values() if s.destination == destination]
        rows.sort(key=lambda s: s.created_at)
        return [SignalSummary.from_signal(s, positions(s.pair) if positions else None) for s in rows]

    def _validate(self, request: SignalRequest) -> None:
        if not request.pair:
            raise InvalidSignal("pair is required")
        if request.side not in SIDES:
            raise InvalidSignal(f"side must be LONG or SHORT, got {request.side!r}")
        for name in ("entry_low", "entry_high", "stop_loss"):
            value = getattr(request, name)
            if value is None or not math.isfinite(value) or value <= 0:
                raise InvalidSignal(f"{name} must be a positive number")
        if request.entry_low > request.entry_high:
            raise InvalidSignal("entry low must not exceed entry high")
        if request.take_profit is not None and (not math.isfinite(request.take_profit) or request.take_profit <= 0):
            raise InvalidSignal("take_profit must be a positive number")
        if request.trail_start_pct < 0 or request.trail_gap_pct < 0 or request.trail_gap_pct >= 1:
            raise InvalidSignal("trailing percentages out of range")
        if request.max_runtime_min <= 0:
            raise InvalidSignal("max runtime must be positive")

    def _info(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "info"):
            self.logger.info(message, *args)

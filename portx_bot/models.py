"""Domain models for signal tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

LONG = "LONG"
SHORT = "SHORT"
SIDES = frozenset({LONG, SHORT})

PENDING = "PENDING"
TRIGGERED = "TRIGGERED"
CLOSED = "CLOSED"

TP = "TP"
SL = "SL"
EXPIRED = "EXPIRED"
OUTCOMES = (TP, SL, EXPIRED)

ENTRY_TRIGGERED = "EntryTriggered"
TAKE_PROFIT_HIT = "TakeProfitHit"
STOP_LOSS_HIT = "StopLossHit"
TRAILING_UPDATED = "TrailingUpdated"
EXPIRED_EVENT = "Expired"
DAILY_RECAP = "DailyRecap"
MORNING_BRIEFING = "MorningBriefing"

DEFAULT_TRAIL_START_PCT = 0.03
DEFAULT_TRAIL_GAP_PCT = 0.02
DEFAULT_MAX_RUNTIME_MIN = 720


@dataclass(slots=True, frozen=True)
class SignalRequest:
    pair: str
    side: str
    entry_low: float
    entry_high: float
    stop_loss: float
    take_profit: float | None = None
    trail_start_pct: float = DEFAULT_TRAIL_START_PCT
    trail_gap_pct: float = DEFAULT_TRAIL_GAP_PCT
    max_runtime_min: int = DEFAULT_MAX_RUNTIME_MIN
    note: str | None = None


@dataclass(slots=True)
class Signal:
    id: str
    pair: str
    side: str
    entry_low: float
    entry_high: float
    stop_loss_initial: float
    take_profit: float | None
    trail_start_pct: float
    trail_gap_pct: float
    max_runtime: timedelta
    created_at: datetime
    destination: int | str
    note: str | None = None

    status: str = PENDING
    triggered: bool = False
    triggered_at: datetime | None = None
    trigger_price: float | None = None
    current_stop_loss: float | None = None
    trailing_active: bool = False
    extreme_price: float | None = None
    close_reason: str | None = None
    close_price: float | None = None
    closed_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.current_stop_loss is None:
            self.current_stop_loss = self.stop_loss_initial

    @property
    def is_long(self) -> bool:
        return self.side == LONG

    @property
    def closed(self) -> bool:
        return self.status == CLOSED

    @property
    def expires_at(self) -> datetime:
        return self.created_at + self.max_runtime

    def in_entry_zone(self, price: float) -> bool:
        return self.entry_low <= price <= self.entry_high


@dataclass(slots=True, frozen=True)
class ClosureRecord:
    signal_id: str
    destination: int | str
    pair: str
    side: str
    outcome: str
    entry_low: float
    entry_high: float
    final_stop: float
    take_profit: float | None
    created_at: datetime
    closed_at: datetime
    close_price: float | None

    @classmethod
    def from_signal(cls, signal: Signal) -> ClosureRecord:
        if not signal.closed or signal.close_reason is None or signal.closed_at is None:
            raise ValueError(f"signal {signal.id} is not closed")
        return cls(
            signal_id=signal.id,
            destination=signal.destination,
            pair=signal.pair,
            side=signal.side,
            outcome=signal.close_reason,
            entry_low=signal.entry_low,
            entry_high=signal.entry_high,
            final_stop=float(signal.current_stop_loss),
            take_profit=signal.take_profit,
            created_at=signal.created_at,
            closed_at=signal.closed_at,
            close_price=signal.close_price,
        )


@dataclass(slots=True, frozen=True)
class LifecycleEvent:
    kind: str
    signal_id: str
    destination: int | str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Evaluation:
    """Result of evaluating one signal against one price sample."""

    signal: Signal
    events: list[LifecycleEvent] = field(default_factory=list)
    closure: ClosureRecord | None = None

    @property
    def closed(self) -> bool:
        return self.closure is not None


@dataclass(slots=True, frozen=True)
class LivePosition:
    pair: str
    side: str
    volume: float
    entry_price: float
    leverage: int
    liquidation_price: float | None
    unrealized_pnl: float


@dataclass(slots=True, frozen=True)
class SignalSummary:
    id: str
    pair: str
    side: str
    status: str
    entry_low: float
    entry_high: float
    stop_loss: float
    stop_loss_initial: float
    take_profit: float | None
    trailing_active: bool
    trigger_price: float | None
    created_at: datetime
    expires_at: datetime
    note: str | None = None
    live_position: LivePosition | None = None

    @classmethod
    def from_signal(cls, signal: Signal, live_position: LivePosition | None = None) -> SignalSummary:
        return cls(
            id=signal.id,
            pair=signal.pair,
            side=signal.side,
            status=signal.status,
            entry_low=signal.entry_low,
            entry_high=signal.entry_high,
            stop_loss=float(signal.current_stop_loss),
            stop_loss_initial=signal.stop_loss_initial,
            take_profit=signal.take_profit,
            trailing_active=signal.trailing_active,
            trigger_price=signal.trigger_price,
            created_at=signal.created_at,
            expires_at=signal.expires_at,
            note=signal.note,
            live_position=live_position,
        )

    @property
    def triggered(self) -> bool:
        return self.status == TRIGGERED

    def age_minutes(self, now: datetime) -> float:
        return (now - self.created_at).total_seconds() / 60


@dataclass(slots=True, frozen=True)
class RecapSummary:
    destination: int | str
    since: datetime
    records: tuple[ClosureRecord, ...]
    tp: int
    sl: int
    expired: int

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def win_rate(self) -> float | None:
        decided = self.tp + self.sl
        if decided == 0:
            return None
        return self.tp / decided * 100

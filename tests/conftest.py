"""Shared fixtures: injectable clock, fake price feed and fake notifier."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from portx_bot.errors import NotifyFailed, PriceFetchFailed
from portx_bot.ledger import HistoryLedger
from portx_bot.models import SignalRequest
from portx_bot.registry import SignalRegistry

T0 = datetime(2026, 3, 2, 1, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakePriceSource:
    """Serves scripted prices per pair; an Exception in the script is raised instead."""

    def __init__(self) -> None:
        self.prices: dict[str, object] = {}
        self.calls: list[str] = []

    def set(self, pair: str, value: object) -> None:
        self.prices[pair] = value

    async def get_price(self, pair: str, now: datetime | None = None) -> float:
        self.calls.append(pair)
        value = self.prices.get(pair)
        if value is None:
            raise PriceFetchFailed(pair, "no price scripted")
        if isinstance(value, Exception):
            raise value
        return value


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[object, str, dict]] = []
        self.fail_kinds: set[str] = set()

    async def notify(self, destination, kind: str, payload: dict) -> None:
        if kind in self.fail_kinds:
            raise NotifyFailed(destination, kind, "telegram down")
        self.sent.append((destination, kind, payload))

    def kinds(self) -> list[str]:
        return [kind for _, kind, _ in self.sent]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock) -> SignalRegistry:
    return SignalRegistry(clock=clock)


@pytest.fixture
def ledger() -> HistoryLedger:
    return HistoryLedger()


@pytest.fixture
def prices() -> FakePriceSource:
    return FakePriceSource()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def long_request() -> SignalRequest:
    return SignalRequest(
        pair="BTC_USDT",
        side="LONG",
        entry_low=100.0,
        entry_high=102.0,
        stop_loss=95.0,
        take_profit=110.0,
        trail_start_pct=0.03,
        trail_gap_pct=0.02,
        max_runtime_min=60,
    )


@pytest.fixture
def short_request() -> SignalRequest:
    return SignalRequest(
        pair="ETH_USDT",
        side="SHORT",
        entry_low=198.0,
        entry_high=200.0,
        stop_loss=210.0,
        take_profit=180.0,
        trail_start_pct=0.03,
        trail_gap_pct=0.02,
        max_runtime_min=60,
    )

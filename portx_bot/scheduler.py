"""Polling loop that advances every active signal against the price feed."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from loguru import logger as default_logger

from portx_bot.errors import PriceFetchFailed
from portx_bot.evaluator import evaluate
from portx_bot.ledger import HistoryLedger
from portx_bot.models import ClosureRecord, LifecycleEvent
from portx_bot.notifier import Notifier
from portx_bot.registry import SignalRegistry


class PriceSource(Protocol):
    async def get_price(self, pair: str, now: datetime | None = None) -> float: ...


@dataclass(slots=True)
class TickReport:
    started_at: datetime
    prices: dict[str, float] = field(default_factory=dict)
    failed_pairs: dict[str, str] = field(default_factory=dict)
    evaluated: int = 0
    events: list[LifecycleEvent] = field(default_factory=list)
    closures: list[ClosureRecord] = field(default_factory=list)


class SignalScheduler:
    """Runs one tick at a time: fetch prices per pair, evaluate, apply, notify."""

    def __init__(
        self,
        registry: SignalRegistry,
        ledger: HistoryLedger,
        price_source: PriceSource,
        notifier: Notifier,
        logger: Any | None = None,
        clock: Callable[[], datetime] | None = None,
        interval_sec: float = 5.0,
        fetch_timeout_sec: float = 15.0,
        exit_on_trigger_tick: bool = True,
        health: Any | None = None,
    ) -> None:
        self.registry = registry
        self.ledger = ledger
        self.price_source = price_source
        self.notifier = notifier
        self.logger = logger or default_logger
        self.clock = clock or (lambda: datetime.now(UTC))
        self.interval_sec = interval_sec
        self.fetch_timeout_sec = fetch_timeout_sec
        self.exit_on_trigger_tick = exit_on_trigger_tick
        self.health = health
        self._tick_lock = asyncio.Lock()
        self._pending: set[asyncio.Task[None]] = set()
        self._chains: dict[str, asyncio.Task[None]] = {}

    async def run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self.logger.exception("Scheduler tick error: {}", exc)
            elapsed = loop.time() - started
            if elapsed > self.interval_sec:
                self.logger.warning("Scheduler tick took {:.2f}s (> interval {}s)", elapsed, self.interval_sec)
            await asyncio.sleep(max(self.interval_sec - elapsed, 0))

    async def tick(self) -> TickReport:
        async with self._tick_lock:
            now = self.clock()
            report = TickReport(started_at=now)
            signals = self.registry.active()
            if signals:
                pairs = sorted(self.registry.pairs())
                report.prices, report.failed_pairs = await self._fetch_prices(pairs, now)

                for signal in signals:
                    # price None still lets never-triggered signals expire on time
                    price = report.prices.get(signal.pair)
                    evaluation = evaluate(signal, price, now, exit_on_trigger_tick=self.exit_on_trigger_tick)
                    if not self.registry.apply(evaluation.signal):
                        continue
                    report.evaluated += 1
                    if evaluation.closure is not None and self.ledger.record(evaluation.closure):
                        report.closures.append(evaluation.closure)
                        self.logger.info(
                            "Signal closed id={} pair={} side={} reason={} price={}",
                            evaluation.closure.signal_id,
                            evaluation.closure.pair,
                            evaluation.closure.side,
                            evaluation.closure.outcome,
                            evaluation.closure.close_price,
                        )
                    for event in evaluation.events:
                        report.events.append(event)
                        self.logger.info("Signal event {} id={} pair={}", event.kind, event.signal_id, signal.pair)
                    if evaluation.events:
                        self._dispatch(signal.id, evaluation.events)

            if self.health is not None:
                self.health.record_tick(report)
            return report

    async def drain(self) -> None:
        """Wait for in-flight notifications (used on shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _fetch_prices(self, pairs: list[str], now: datetime) -> tuple[dict[str, float], dict[str, str]]:
        results = await asyncio.gather(*(self._fetch_one(pair, now) for pair in pairs), return_exceptions=True)
        prices: dict[str, float] = {}
        failed: dict[str, str] = {}
        for pair, result in zip(pairs, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                failed[pair] = str(result)
                self.logger.warning("Price fetch failed pair={} err={}", pair, result)
            else:
                prices[pair] = result
        return prices, failed

    async def _fetch_one(self, pair: str, now: datetime) -> float:
        try:
            price = await asyncio.wait_for(self.price_source.get_price(pair, now), timeout=self.fetch_timeout_sec)
        except TimeoutError as exc:
            raise PriceFetchFailed(pair, f"timeout after {self.fetch_timeout_sec}s") from exc
        except PriceFetchFailed:
            raise
        except Exception as exc:  # noqa: BLE001
            raise PriceFetchFailed(pair, str(exc)) from exc

        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise PriceFetchFailed(pair, f"non-numeric price {price!r}")
        if not math.isfinite(price) or price < 0:
            raise PriceFetchFailed(pair, f"invalid price {price!r}")
        return float(price)

    def _dispatch(self, signal_id: str, events: list[LifecycleEvent]) -> None:
        # chained per signal: a tick's messages wait for the previous tick's
        previous = self._chains.get(signal_id)
        task = asyncio.create_task(self._notify_all(events, previous), name=f"notify-{signal_id}")
        self._chains[signal_id] = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(lambda done: self._release_chain(signal_id, done))

    def _release_chain(self, signal_id: str, task: asyncio.Task[None]) -> None:
        if self._chains.get(signal_id) is task:
            del self._chains[signal_id]

    async def _notify_all(self, events: list[LifecycleEvent], previous: asyncio.Task[None] | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        for event in events:
            await self._notify(event)

    async def _notify(self, event: LifecycleEvent) -> None:
        try:
            await self.notifier.notify(event.destination, event.kind, event.payload)
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "Notify failed kind={} id={} destination={} err={}",
                event.kind,
                event.signal_id,
                event.destination,
                exc,
            )

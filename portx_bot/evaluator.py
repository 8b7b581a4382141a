"""Per-signal lifecycle evaluation.

``evaluate`` is pure: it works on a copy of the signal and returns the new
state together with the events to announce. Phases run in a fixed order:
expiry, entry, take-profit, trailing, stop-loss. Take-profit is checked
before the stop so a sample that satisfies both closes as TP.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from portx_bot.errors import InternalInvariantViolation
from portx_bot.models import (
    CLOSED,
    ENTRY_TRIGGERED,
    EXPIRED,
    EXPIRED_EVENT,
    SL,
    STOP_LOSS_HIT,
    TAKE_PROFIT_HIT,
    TP,
    TRAILING_UPDATED,
    TRIGGERED,
    ClosureRecord,
    Evaluation,
    LifecycleEvent,
    Signal,
)
from portx_bot.trailing import apply_trailing, is_improvement


def evaluate(
    signal: Signal,
    price: float | None,
    now: datetime,
    exit_on_trigger_tick: bool = True,
) -> Evaluation:
    """Advance ``signal`` by one price sample.

    ``price`` may be ``None`` when no sample is available; only the expiry
    phase runs in that case. With ``exit_on_trigger_tick`` disabled a signal
    that triggers is not checked for TP/SL until the next sample.
    """
    if signal.closed:
        raise InternalInvariantViolation(f"closed signal {signal.id} evaluated again")

    sig = replace(signal)
    result = Evaluation(signal=sig)

    if not sig.triggered:
        if now - sig.created_at > sig.max_runtime:
            _close(sig, EXPIRED, None, now)
            result.events.append(
                _event(
                    EXPIRED_EVENT,
                    sig,
                    max_runtime_min=int(sig.max_runtime.total_seconds() // 60),
                    last_price=price,
                )
            )
            result.closure = ClosureRecord.from_signal(sig)
            return result

        if price is None or not sig.in_entry_zone(price):
            return result

        sig.triggered = True
        sig.status = TRIGGERED
        sig.triggered_at = now
        sig.trigger_price = price
        sig.extreme_price = price
        result.events.append(_event(ENTRY_TRIGGERED, sig, price=price))
        if not exit_on_trigger_tick:
            return result

    if price is None:
        return result

    if sig.take_profit is not None and _take_profit_reached(sig, price):
        _close(sig, TP, price, now)
        result.events.append(_event(TAKE_PROFIT_HIT, sig, price=price))
        result.closure = ClosureRecord.from_signal(sig)
        return result

    previous_stop = float(sig.current_stop_loss)
    step = apply_trailing(sig, price)
    sig.extreme_price = step.extreme_price
    sig.trailing_active = step.trailing_active
    if step.moved_to is not None:
        if not is_improvement(sig.is_long, step.moved_to, previous_stop):
            raise InternalInvariantViolation(
                f"ratchet loosened stop for {sig.id}: {previous_stop} -> {step.moved_to}"
            )
        sig.current_stop_loss = step.moved_to
        result.events.append(
            _event(
                TRAILING_UPDATED,
                sig,
                price=price,
                previous_stop=previous_stop,
                gain_pct=step.gain * 100,
                extreme_price=step.extreme_price,
                activated_now=step.activated_now,
            )
        )

    if _stop_reached(sig, price):
        _close(sig, SL, price, now)
        result.events.append(
            _event(
                STOP_LOSS_HIT,
                sig,
                price=price,
                trailed=sig.current_stop_loss != sig.stop_loss_initial,
            )
        )
        result.closure = ClosureRecord.from_signal(sig)

    return result


def _take_profit_reached(sig: Signal, price: float) -> bool:
    if sig.is_long:
        return price >= sig.take_profit
    return price <= sig.take_profit


def _stop_reached(sig: Signal, price: float) -> bool:
    if sig.is_long:
        return price <= sig.current_stop_loss
    return price >= sig.current_stop_loss


def _close(sig: Signal, reason: str, price: float | None, now: datetime) -> None:
    sig.status = CLOSED
    sig.close_reason = reason
    sig.close_price = price
    sig.closed_at = now


def _event(kind: str, sig: Signal, **extra: object) -> LifecycleEvent:
    payload: dict[str, object] = {
        "pair": sig.pair,
        "side": sig.side,
        "entry_low": sig.entry_low,
        "entry_high": sig.entry_high,
        "stop_loss": sig.current_stop_loss,
        "stop_loss_initial": sig.stop_loss_initial,
        "take_profit": sig.take_profit,
        "trigger_price": sig.trigger_price,
    }
    payload.update(extra)
    return LifecycleEvent(kind=kind, signal_id=sig.id, destination=sig.destination, payload=payload)

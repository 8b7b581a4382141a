"""Trailing-stop ratchet.

The protective stop follows the best price reached since the entry trigger
(highest for LONG, lowest for SHORT) at a fixed gap, once the favourable
excursion from the trigger price reaches ``trail_start_pct``. It never moves
against the position.
"""

from __future__ import annotations

from dataclasses import dataclass

from portx_bot.errors import InternalInvariantViolation
from portx_bot.models import Signal


@dataclass(slots=True, frozen=True)
class TrailingResult:
    extreme_price: float
    stop_loss: float
    trailing_active: bool
    gain: float
    moved_to: float | None = None
    activated_now: bool = False


def favourable_gain(is_long: bool, trigger_price: float, extreme_price: float) -> float:
    if trigger_price <= 0:
        return 0.0
    change = (extreme_price - trigger_price) / trigger_price
    return change if is_long else -change


def is_improvement(is_long: bool, candidate: float, current: float) -> bool:
    return candidate > current if is_long else candidate < current


def apply_trailing(signal: Signal, price: float) -> TrailingResult:
    """Compute the ratchet step for ``price`` without mutating ``signal``."""
    if not signal.triggered or signal.trigger_price is None:
        raise InternalInvariantViolation(f"trailing evaluated on untriggered signal {signal.id}")

    current_stop = float(signal.current_stop_loss)
    previous_extreme = signal.extreme_price if signal.extreme_price is not None else signal.trigger_price
    if signal.is_long:
        extreme = max(previous_extreme, price)
    else:
        extreme = min(previous_extreme, price)

    gain = favourable_gain(signal.is_long, signal.trigger_price, extreme)
    if gain < signal.trail_start_pct:
        return TrailingResult(
            extreme_price=extreme,
            stop_loss=current_stop,
            trailing_active=signal.trailing_active,
            gain=gain,
        )

    activated_now = not signal.trailing_active
    if signal.is_long:
        candidate = extreme * (1 - signal.trail_gap_pct)
    else:
        candidate = extreme * (1 + signal.trail_gap_pct)

    if not is_improvement(signal.is_long, candidate, current_stop):
        return TrailingResult(
            extreme_price=extreme,
            stop_loss=current_stop,
            trailing_active=True,
            gain=gain,
            activated_now=activated_now,
        )

    return TrailingResult(
        extreme_price=extreme,
        stop_loss=candidate,
        trailing_active=True,
        gain=gain,
        moved_to=candidate,
        activated_now=activated_now,
    )

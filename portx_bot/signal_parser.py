"""Parser for ``#portx ... #end`` signal blocks."""

from __future__ import annotations

import math
import re

from portx_bot.errors import InvalidSignal
from portx_bot.models import (
    DEFAULT_MAX_RUNTIME_MIN,
    DEFAULT_TRAIL_GAP_PCT,
    DEFAULT_TRAIL_START_PCT,
    SIDES,
    SignalRequest,
)

START_MARKER = "#portx"
END_MARKER = "#end"

# leading integer, as in "100.5" or "90 min"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def normalize_pair(raw: str | None) -> str | None:
    """BTCUSDT.P -> BTC_USDT, BNBUSDT -> BNB_USDT, ETH_USDT stays."""
    if not raw:
        return None
    value = raw.strip().upper().replace("/", "_").replace("-", "_")
    if value.endswith(".P"):
        value = value[:-2]
    if "_" in value:
        return value
    if value.endswith("USDT") and len(value) > 4:
        return value[:-4] + "_USDT"
    return value or None


class SignalParser:
    """Turn a raw chat message into a validated ``SignalRequest``."""

    def __init__(
        self,
        trail_start_pct: float = DEFAULT_TRAIL_START_PCT,
        trail_gap_pct: float = DEFAULT_TRAIL_GAP_PCT,
        max_runtime_min: int = DEFAULT_MAX_RUNTIME_MIN,
    ) -> None:
        self.trail_start_pct = trail_start_pct
        self.trail_gap_pct = trail_gap_pct
        self.max_runtime_min = max_runtime_min

    def has_block(self, raw_text: str | None) -> bool:
        return self._extract_block(raw_text or "") is not None

    def parse(self, raw_text: str | None) -> SignalRequest:
        block = self._extract_block(raw_text or "")
        if block is None:
            raise InvalidSignal("no #portx ... #end block found")

        fields: dict[str, str] = {}
        for line in block.split("\n"):
            line = line.strip()
            if not line or line.lower().startswith(START_MARKER) or ":" not in line:
                continue
            key, value = line.split(":", 1)
            fields[key.strip().upper()] = value.strip()

        pair = normalize_pair(fields.get("PAIR"))
        side = (fields.get("SIDE") or "").strip().upper()
        if not pair or not side or "ENTRY" not in fields or "STOPLOSS" not in fields:
            raise InvalidSignal("missing required field (PAIR, SIDE, ENTRY, STOPLOSS)")
        if side not in SIDES:
            raise InvalidSignal(f"SIDE must be LONG or SHORT, got {side}")

        entry_low, entry_high = self._parse_entry(fields["ENTRY"])
        stop_loss = self._positive("STOPLOSS", fields["STOPLOSS"])
        take_profit = self._positive("TAKE_PROFIT", fields["TAKE_PROFIT"]) if fields.get("TAKE_PROFIT") else None

        max_runtime_min = self.max_runtime_min
        if fields.get("MAX_RUNTIME_MIN"):
            match = _LEADING_INT.match(fields["MAX_RUNTIME_MIN"])
            if match is None:
                raise InvalidSignal(f"MAX_RUNTIME_MIN must be a number of minutes, got {fields['MAX_RUNTIME_MIN']}")
            max_runtime_min = int(match.group(1))
            if max_runtime_min <= 0:
                raise InvalidSignal("MAX_RUNTIME_MIN must be positive")

        trail_start = self._percent("TRAIL_START_PCT", fields.get("TRAIL_START_PCT"), self.trail_start_pct)
        trail_gap = self._percent("TRAIL_GAP_PCT", fields.get("TRAIL_GAP_PCT"), self.trail_gap_pct)
        if trail_gap >= 1:
            raise InvalidSignal("TRAIL_GAP_PCT must be below 100%")

        return SignalRequest(
            pair=pair,
            side=side,
            entry_low=entry_low,
            entry_high=entry_high,
            stop_loss=stop_loss,
            take_profit=take_profit,
            trail_start_pct=trail_start,
            trail_gap_pct=trail_gap,
            max_runtime_min=max_runtime_min,
            note=fields.get("NOTE") or None,
        )

    def _extract_block(self, text: str) -> str | None:
        lower = text.lower()
        start = lower.find(START_MARKER)
        end = lower.find(END_MARKER, start + 1) if start != -1 else -1
        if start == -1 or end == -1:
            return None
        return text[start:end].replace("\r", "")

    def _parse_entry(self, value: str) -> tuple[float, float]:
        # "840-850" is a zone; a leading minus would be a negative price, rejected below
        parts = [p.strip() for p in value.split("-")] if "-" in value.strip()[1:] else [value.strip()]
        if len(parts) == 1:
            price = self._positive("ENTRY", parts[0])
            return price, price
        if len(parts) != 2:
            raise InvalidSignal(f"ENTRY must be a price or a low-high range, got {value}")
        low = self._positive("ENTRY", parts[0])
        high = self._positive("ENTRY", parts[1])
        if low > high:
            raise InvalidSignal("ENTRY low must not exceed ENTRY high")
        return low, high

    def _positive(self, name: str, value: str) -> float:
        number = self._number(name, value)
        if number <= 0:
            raise InvalidSignal(f"{name} must be positive")
        return number

    def _percent(self, name: str, value: str | None, default: float) -> float:
        if not value:
            return default
        number = self._number(name, value.rstrip("%").strip())
        if number < 0:
            raise InvalidSignal(f"{name} must not be negative")
        if number >= 1 or value.strip().endswith("%"):
            number /= 100
        return number

    def _number(self, name: str, value: str) -> float:
        try:
            number = float(value.replace(",", "."))
        except ValueError as exc:
            raise InvalidSignal(f"{name} is not a number: {value}") from exc
        if not math.isfinite(number):
            raise InvalidSignal(f"{name} is not a finite number")
        return number

"""Plain-text rendering of bot messages."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from portx_bot.models import (
    DAILY_RECAP,
    ENTRY_TRIGGERED,
    EXPIRED_EVENT,
    MORNING_BRIEFING,
    STOP_LOSS_HIT,
    TAKE_PROFIT_HIT,
    TRAILING_UPDATED,
    LivePosition,
    RecapSummary,
    SignalRequest,
    SignalSummary,
)

SEND_USAGE = "\n".join(
    [
        "Format /send:",
        "/send",
        "#portx",
        "PAIR: BNBUSDT.P",
        "SIDE: LONG",
        "ENTRY: 845.36",
        "STOPLOSS: 832.48",
        "TAKE_PROFIT: 876.88",
        "MAX_RUNTIME_MIN: 100",
        "#end",
    ]
)

_OUTCOME_ICONS = {"TP": "🏁", "SL": "🔴", "EXPIRED": "⏰"}


def fmt_price(value: float | None, empty: str = "—") -> str:
    if value is None:
        return empty
    return f"{value:.10g}"


def fmt_pct(fraction: float) -> str:
    """0.03 -> "3%", which the block parser reads back as 0.03."""
    return f"{fraction * 100:.10g}%"


def fmt_zone(low: float, high: float) -> str:
    if low == high:
        return fmt_price(low)
    return f"{fmt_price(low)} – {fmt_price(high)}"


def format_event(kind: str, payload: dict[str, object]) -> str:
    if kind == DAILY_RECAP:
        return format_recap(payload["recap"], title="📒 PortX – Daily Recap")
    if kind == MORNING_BRIEFING:
        return format_briefing(payload["signals"], payload["recap"], payload["now"])

    pair = payload.get("pair")
    side = payload.get("side")
    header = f"{pair} ({side})"
    if kind == ENTRY_TRIGGERED:
        return "\n".join(
            [
                f"✅ ENTRY TRIGGERED – {header}",
                f"Entry Zone: {fmt_zone(payload['entry_low'], payload['entry_high'])}",
                f"Trigger price: {fmt_price(payload.get('price'))}",
            ]
        )
    if kind == TAKE_PROFIT_HIT:
        return "\n".join(
            [
                f"🏁 TAKE PROFIT HIT – {header}",
                f"TP: {fmt_price(payload.get('take_profit'))}",
                f"Price at TP: {fmt_price(payload.get('price'))}",
            ]
        )
    if kind == STOP_LOSS_HIT:
        label = "TRAILING STOP HIT" if payload.get("trailed") else "STOP LOSS HIT"
        lines = [
            f"🔴 {label} – {header}",
            f"SL: {fmt_price(payload.get('stop_loss'))}",
            f"Price at SL: {fmt_price(payload.get('price'))}",
        ]
        if payload.get("trailed"):
            lines.append(f"Initial SL: {fmt_price(payload.get('stop_loss_initial'))}")
        return "\n".join(lines)
    if kind == TRAILING_UPDATED:
        title = "🛡 TRAILING ACTIVE" if payload.get("activated_now") else "🛡 TRAILING SL MOVED"
        return "\n".join(
            [
                f"{title} – {header}",
                f"SL: {fmt_price(payload.get('previous_stop'))} → {fmt_price(payload.get('stop_loss'))}",
                f"Best price: {fmt_price(payload.get('extreme_price'))}",
                f"Gain from trigger: {float(payload.get('gain_pct') or 0.0):.2f}%",
            ]
        )
    if kind == EXPIRED_EVENT:
        return (
            f"⏰ Signal EXPIRED – {header}\n"
            f"Entry zone never touched within {payload.get('max_runtime_min')} minutes."
        )
    return f"{kind} – {header}"


def format_registered(summary: SignalSummary) -> str:
    return "\n".join(
        [
            f"✅ Signal registered – {summary.pair} ({summary.side})",
            f"Entry: {fmt_zone(summary.entry_low, summary.entry_high)}",
            f"SL   : {fmt_price(summary.stop_loss)}",
            f"TP   : {fmt_price(summary.take_profit, empty='open (no fixed TP)')}",
            f"Runtime: {int((summary.expires_at - summary.created_at).total_seconds() // 60)} minutes",
        ]
    )


def format_block(request: SignalRequest) -> str:
    lines = [
        "#portx",
        f"PAIR: {request.pair}",
        f"SIDE: {request.side}",
    ]
    if request.entry_low == request.entry_high:
        lines.append(f"ENTRY: {fmt_price(request.entry_low)}")
    else:
        lines.append(f"ENTRY: {fmt_price(request.entry_low)}-{fmt_price(request.entry_high)}")
    lines.append(f"STOPLOSS: {fmt_price(request.stop_loss)}")
    if request.take_profit is not None:
        lines.append(f"TAKE_PROFIT: {fmt_price(request.take_profit)}")
    lines.append(f"MAX_RUNTIME_MIN: {request.max_runtime_min}")
    lines.append(f"TRAIL_START_PCT: {fmt_pct(request.trail_start_pct)}")
    lines.append(f"TRAIL_GAP_PCT: {fmt_pct(request.trail_gap_pct)}")
    if request.note:
        lines.append(f"NOTE: {request.note}")
    lines.append("#end")
    return "\n".join(lines)


def format_broadcast(request: SignalRequest) -> str:
    lines = [
        "🧭 PortX Crypto Lab – Futures Signal",
        "",
        f"PAIR  : {request.pair}",
        f"SIDE  : {request.side}",
        f"ENTRY : {fmt_zone(request.entry_low, request.entry_high)}",
        f"SL    : {fmt_price(request.stop_loss)}",
        f"TP    : {fmt_price(request.take_profit, empty='open (no fixed TP)')}",
        f"🕒 Max runtime : {request.max_runtime_min} minutes (auto EXPIRED if not triggered)",
    ]
    if request.note:
        lines.extend(["", f"📝 Note : {request.note}"])
    lines.extend(["", format_block(request)])
    return "\n".join(lines)


def format_status(summaries: list[SignalSummary], now: datetime) -> str:
    if not summaries:
        return "No active signals for this chat."

    blocks = []
    for i, s in enumerate(summaries, start=1):
        lines = [
            f"{i}) {s.pair} ({s.side})",
            f"Entry: {fmt_zone(s.entry_low, s.entry_high)}",
            f"SL   : {fmt_price(s.stop_loss)}" + (" (trailing)" if s.trailing_active else ""),
            f"TP   : {fmt_price(s.take_profit)}",
            f"Triggered: {'YES @ ' + fmt_price(s.trigger_price) if s.triggered else 'NO'}",
            f"Age: {s.age_minutes(now):.1f} minutes",
        ]
        if s.live_position is not None:
            lines.append("MEXC position:")
            lines.extend(_position_lines(s.live_position))
        blocks.append("\n".join(lines))
    return "📊 PortX – Active Signals\n\n" + "\n\n".join(blocks)


def format_recap(recap: RecapSummary, title: str = "📒 PortX – Recap") -> str:
    lines = [title, f"Since: {recap.since:%Y-%m-%d %H:%M} UTC", ""]
    if recap.total == 0:
        lines.append("No closed signals in this window.")
        return "\n".join(lines)

    for r in recap.records:
        icon = _OUTCOME_ICONS.get(r.outcome, "•")
        lines.append(f"{icon} {r.pair} ({r.side}) {r.outcome} @ {fmt_price(r.close_price)}")
    lines.append("")
    lines.append(f"TP: {recap.tp} | SL: {recap.sl} | EXPIRED: {recap.expired} | Total: {recap.total}")
    if recap.win_rate is not None:
        lines.append(f"Win rate: {recap.win_rate:.1f}%")
    return "\n".join(lines)


def format_briefing(summaries: list[SignalSummary], recap: RecapSummary, now: datetime) -> str:
    pending = sum(1 for s in summaries if not s.triggered)
    running = len(summaries) - pending
    lines = [
        "☀️ PortX – Morning Briefing",
        f"Active signals: {len(summaries)} (pending {pending}, running {running})",
    ]
    for s in summaries:
        state = "running" if s.triggered else "pending"
        lines.append(f"• {s.pair} ({s.side}) {state}, SL {fmt_price(s.stop_loss)}, TP {fmt_price(s.take_profit)}")
    lines.append("")
    lines.append(
        f"Last window: TP {recap.tp} | SL {recap.sl} | EXPIRED {recap.expired} | Total {recap.total}"
    )
    return "\n".join(lines)


def format_positions(positions: Iterable[LivePosition]) -> str:
    positions = list(positions)
    if not positions:
        return "❌ No active futures positions on MEXC."
    blocks = []
    for p in positions:
        blocks.append("\n".join([f"• {p.pair}", *_position_lines(p)]))
    return "📊 Futures Positions – MEXC\n\n" + "\n\n".join(blocks)


def _position_lines(p: LivePosition) -> list[str]:
    side = "🟢 LONG" if p.side == "LONG" else "🔴 SHORT"
    return [
        f"  Side : {side}",
        f"  Size : {fmt_price(p.volume)}",
        f"  Entry: {fmt_price(p.entry_price)}",
        f"  Lev  : {p.leverage}x",
        f"  Liq  : {fmt_price(p.liquidation_price)}",
        f"  PnL  : {fmt_price(p.unrealized_pnl)}",
    ]

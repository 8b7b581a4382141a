"""Tests for event rendering and Telegram delivery."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from portx_bot.errors import NotifyFailed
from portx_bot.formatting import format_event
from portx_bot.models import (
    DAILY_RECAP,
    ENTRY_TRIGGERED,
    EXPIRED_EVENT,
    STOP_LOSS_HIT,
    TRAILING_UPDATED,
    RecapSummary,
)
from portx_bot.notifier import TelegramNotifier
from portx_bot.telegram_bot import TelegramBot

BASE = {
    "pair": "BTC_USDT",
    "side": "LONG",
    "entry_low": 100.0,
    "entry_high": 102.0,
    "stop_loss": 105.84,
    "stop_loss_initial": 95.0,
    "take_profit": 110.0,
    "trigger_price": 101.0,
}


class RecordingSender:
    def __init__(self, delay=0.0, error=None):
        self.delay = delay
        self.error = error
        self.messages = []

    async def send_message(self, destination, text):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.messages.append((destination, text))


class TestFormatEvent:
    def test_entry(self):
        text = format_event(ENTRY_TRIGGERED, {**BASE, "price": 101.0})

        assert text.startswith("✅ ENTRY TRIGGERED – BTC_USDT (LONG)")
        assert "Entry Zone: 100 – 102" in text

    def test_trailing_stop_hit_mentions_initial_stop(self):
        text = format_event(STOP_LOSS_HIT, {**BASE, "price": 104.0, "trailed": True})

        assert text.startswith("🔴 TRAILING STOP HIT")
        assert "Initial SL: 95" in text

    def test_trailing_update(self):
        payload = {**BASE, "price": 108.0, "previous_stop": 102.9, "gain_pct": 6.93, "extreme_price": 108.0}

        text = format_event(TRAILING_UPDATED, payload)

        assert "SL: 102.9 → 105.84" in text
        assert "Gain from trigger: 6.93%" in text

    def test_expired(self):
        text = format_event(EXPIRED_EVENT, {**BASE, "max_runtime_min": 720})

        assert "720 minutes" in text

    def test_daily_recap(self):
        recap = RecapSummary(
            destination=1,
            since=datetime(2026, 3, 1, tzinfo=UTC),
            records=(),
            tp=0,
            sl=0,
            expired=0,
        )

        text = format_event(DAILY_RECAP, {"recap": recap, "hours": 24})

        assert text.startswith("📒 PortX – Daily Recap")
        assert "No closed signals" in text


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_delivers_rendered_text(self):
        sender = RecordingSender()

        await TelegramNotifier(sender).notify(-100, ENTRY_TRIGGERED, {**BASE, "price": 101.0})

        assert sender.messages[0][0] == -100
        assert "ENTRY TRIGGERED" in sender.messages[0][1]

    @pytest.mark.asyncio
    async def test_send_error_becomes_notify_failed(self):
        notifier = TelegramNotifier(RecordingSender(error=RuntimeError("chat not found")))

        with pytest.raises(NotifyFailed, match="chat not found") as info:
            await notifier.notify(-100, EXPIRED_EVENT, {**BASE, "max_runtime_min": 60})
        assert info.value.kind == EXPIRED_EVENT

    @pytest.mark.asyncio
    async def test_slow_send_times_out(self):
        notifier = TelegramNotifier(RecordingSender(delay=1.0), timeout_sec=0.05)

        with pytest.raises(NotifyFailed, match="timeout"):
            await notifier.notify(-100, EXPIRED_EVENT, {**BASE, "max_runtime_min": 60})


class FakeEvent:
    def __init__(self, chat_id, raw_text, is_private=False, sender_id=None):
        self.chat_id = chat_id
        self.raw_text = raw_text
        self.is_private = is_private
        self.sender_id = sender_id
        self.replies = []

    async def reply(self, text, **kwargs):
        self.replies.append(text)


class TestTelegramBot:
    def _bot(self):
        return TelegramBot(api_id=1, api_hash="hash", bot_token="1:token", session_name="test")

    @pytest.mark.asyncio
    async def test_send_requires_connection(self):
        with pytest.raises(RuntimeError, match="not connected"):
            await self._bot().send_message(-100, "hi")

    @pytest.mark.asyncio
    async def test_incoming_message_reply(self):
        bot = self._bot()
        seen = []

        async def handler(chat_id, text, is_private, sender_id):
            seen.append((chat_id, text, is_private, sender_id))
            return "pong"

        bot.set_handler(handler)
        event = FakeEvent(42, "/id", is_private=True, sender_id=7)
        await bot._on_new_message(event)

        assert seen == [(42, "/id", True, 7)]
        assert event.replies == ["pong"]

    @pytest.mark.asyncio
    async def test_handler_error_does_not_propagate(self):
        bot = self._bot()

        async def handler(*args):
            raise ValueError("boom")

        bot.set_handler(handler)
        event = FakeEvent(42, "hello")
        await bot._on_new_message(event)

        assert event.replies == []

    def test_connection_callback(self):
        states = []
        bot = TelegramBot(
            api_id=1,
            api_hash="hash",
            bot_token="1:token",
            session_name="test",
            on_connection_change=states.append,
        )

        bot._set_connected(True)
        assert bot.connected is True
        bot._set_connected(False)

        assert states == [True, False]
        assert bot.connected is False


def test_recap_since_is_rendered():
    since = datetime(2026, 3, 2, 0, 0, tzinfo=UTC) - timedelta(hours=24)
    recap = RecapSummary(destination=1, since=since, records=(), tp=0, sl=0, expired=0)

    assert "Since: 2026-03-01 00:00 UTC" in format_event(DAILY_RECAP, {"recap": recap, "hours": 24})

"""Chat command handling, independent of the Telegram transport."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from loguru import logger as default_logger

from portx_bot.errors import InvalidSignal
from portx_bot.formatting import (
    SEND_USAGE,
    format_broadcast,
    format_positions,
    format_recap,
    format_registered,
    format_status,
)
from portx_bot.ledger import HistoryLedger
from portx_bot.models import SignalSummary
from portx_bot.notifier import MessageSender
from portx_bot.position_sync import PositionSync
from portx_bot.registry import SignalRegistry
from portx_bot.signal_parser import SignalParser
from portx_bot.state import LIVE, TEST, BotState


class BotCommands:
    """Maps incoming chat messages to registry/ledger operations and reply texts."""

    def __init__(
        self,
        registry: SignalRegistry,
        ledger: HistoryLedger,
        parser: SignalParser,
        state: BotState,
        positions: PositionSync,
        sender: MessageSender,
        target_chat_id: int | str,
        recap_window_hours: float = 24,
        clock: Callable[[], datetime] | None = None,
        logger: Any | None = None,
    ) -> None:
        self.registry = registry
        self.ledger = ledger
        self.parser = parser
        self.state = state
        self.positions = positions
        self.sender = sender
        self.target_chat_id = target_chat_id
        self.recap_window_hours = recap_window_hours
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger or default_logger
        self._commands: dict[str, Callable[..., Any]] = {
            "/send": self.send,
            "/status": self.status,
            "/recap": self.recap,
            "/mode_live": self.mode_live,
            "/mode_test": self.mode_test,
            "/mode_status": self.mode_status,
            "/id": self.show_id,
            "/mypos": self.my_positions,
        }

    async def handle_message(
        self,
        chat_id: int | str,
        text: str,
        is_private: bool = False,
        sender_id: int | None = None,
    ) -> str | None:
        text = text or ""
        first_line = text.strip().split("\n", 1)[0]
        command = first_line.split(maxsplit=1)[0].split("@", 1)[0].lower() if first_line else ""
        handler = self._commands.get(command)
        if handler is not None:
            return await handler(chat_id=chat_id, text=text, is_private=is_private, sender_id=sender_id)
        if command.startswith("/"):
            return None
        return await self.register_block(chat_id=chat_id, text=text)

    async def register_block(self, chat_id: int | str, text: str) -> str | None:
        """A ``#portx`` block typed directly into a chat is tracked for that chat."""
        if not self.parser.has_block(text):
            return None
        try:
            request = self.parser.parse(text)
            signal_id = self.registry.create(request, destination=chat_id, now=self.clock())
        except InvalidSignal as exc:
            self.logger.info("Rejected signal block chat={} reason={}", chat_id, exc)
            return f"Invalid signal: {exc}"
        return format_registered(self._summary(signal_id))

    async def send(self, chat_id: int | str, text: str, is_private: bool = False, **_: Any) -> str | None:
        payload = "\n".join(text.split("\n")[1:]).strip()
        if not payload:
            return SEND_USAGE

        try:
            request = self.parser.parse(payload)
            signal_id = self.registry.create(request, destination=self.target_chat_id, now=self.clock())
        except InvalidSignal as exc:
            self.logger.info("Rejected /send from chat={} reason={}", chat_id, exc)
            return f"Invalid signal / missing required field: {exc}"

        broadcast = format_broadcast(request)
        if not self.state.is_live:
            return "🧪 TEST MODE – signal NOT posted to the channel, preview only.\n\n" + broadcast

        try:
            await self.sender.send_message(self.target_chat_id, broadcast)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("Broadcast failed signal={} target={} err={}", signal_id, self.target_chat_id, exc)
            return f"Signal registered ({signal_id}) but posting to the channel failed: {exc}"
        if is_private:
            return "Signal posted to the channel and registered in the engine."
        return None

    async def status(self, chat_id: int | str, **_: Any) -> str:
        summaries = self.registry.list_active(chat_id, self.positions.position_for)
        return format_status(summaries, self.clock())

    async def recap(self, chat_id: int | str, text: str = "", **_: Any) -> str:
        hours = self.recap_window_hours
        parts = text.split()
        if len(parts) > 1:
            try:
                hours = float(parts[1])
            except ValueError:
                return "Usage: /recap [hours]"
            if hours <= 0:
                return "Usage: /recap [hours]"
        since = self.clock() - timedelta(hours=hours)
        return format_recap(self.ledger.recap(chat_id, since), title=f"📒 PortX – Recap ({hours:g}h)")

    async def mode_live(self, **_: Any) -> str:
        self.state.set_mode(LIVE)
        self.logger.info("Mode set to LIVE")
        return "Mode set to LIVE. /send will post to the channel."

    async def mode_test(self, **_: Any) -> str:
        self.state.set_mode(TEST)
        self.logger.info("Mode set to TEST")
        return "Mode set to TEST. /send only previews in this chat, the engine still tracks the signal."

    async def mode_status(self, **_: Any) -> str:
        return f"Current mode: {self.state.mode}"

    async def show_id(self, chat_id: int | str, sender_id: int | None = None, **_: Any) -> str:
        return f"Chat ID: {chat_id}\nUser ID: {sender_id}"

    async def my_positions(self, **_: Any) -> str:
        try:
            positions = await self.positions.sync_once()
        except Exception as exc:  # noqa: BLE001
            self.logger.error("/mypos failed: {}", exc)
            return f"❌ Could not load MEXC positions: {exc}"
        return format_positions(positions)

    def _summary(self, signal_id: str) -> SignalSummary:
        signal = self.registry.get(signal_id)
        return SignalSummary.from_signal(signal)

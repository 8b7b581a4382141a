"""Outbound notifications for lifecycle events and recaps."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from portx_bot.errors import NotifyFailed
from portx_bot.formatting import format_event


class Notifier(Protocol):
    async def notify(self, destination: int | str, kind: str, payload: dict[str, Any]) -> None: ...


class MessageSender(Protocol):
    async def send_message(self, destination: int | str, text: str) -> None: ...


class TelegramNotifier:
    """Render an event and deliver it through a connected Telegram sender."""

    def __init__(self, sender: MessageSender, timeout_sec: float = 10.0, logger: Any | None = None) -> None:
        self.sender = sender
        self.timeout_sec = timeout_sec
        self.logger = logger

    async def notify(self, destination: int | str, kind: str, payload: dict[str, Any]) -> None:
        text = format_event(kind, payload)
        try:
            await asyncio.wait_for(self.sender.send_message(destination, text), timeout=self.timeout_sec)
        except asyncio.CancelledError:
            raise
        except TimeoutError as exc:
            raise NotifyFailed(destination, kind, f"timeout after {self.timeout_sec}s") from exc
        except Exception as exc:  # noqa: BLE001
            raise NotifyFailed(destination, kind, str(exc)) from exc

        if self.logger is not None and hasattr(self.logger, "debug"):
            self.logger.debug("Notified destination={} kind={}", destination, kind)

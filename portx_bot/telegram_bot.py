"""Telegram bot transport built on top of Telethon with reconnect support."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

MessageHandler = Callable[[int | str, str, bool, int | None], Awaitable[str | None]]


class TelegramBot:
    """Logs in with a bot token, routes new messages to a handler and sends outbound messages."""

    def __init__(
        self,
        api_id: int,
        api_hash: str,
        bot_token: str,
        session_name: str,
        logger: Any | None = None,
        on_connection_change: Callable[[bool], None] | None = None,
    ) -> None:
        self.api_id = api_id
        self.api_hash = api_hash
        self.bot_token = bot_token
        self.session_name = session_name
        self.logger = logger
        self.on_connection_change = on_connection_change

        self._client = None
        self._running = False
        self._connected = asyncio.Event()
        self._message_handler: MessageHandler | None = None

    def set_handler(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    async def start(self) -> None:
        """Start Telegram client, auto-reconnecting on disconnect/errors."""
        if self._running:
            return

        try:
            from telethon import TelegramClient, events
            from telethon.errors import FloodWaitError
        except ImportError as exc:
            raise RuntimeError(
                "Telethon is not installed. Add 'telethon' to requirements and install dependencies."
            ) from exc

        self._running = True
        retry_delay = 1

        while self._running:
            client = TelegramClient(self.session_name, self.api_id, self.api_hash)
            client.add_event_handler(self._on_new_message, events.NewMessage(incoming=True))
            self._client = client

            try:
                await client.start(bot_token=self.bot_token)
                retry_delay = 1
                self._set_connected(True)
                self._log_info("Telegram bot connected session={}", self.session_name)
                await client.run_until_disconnected()
                if self._running:
                    self._log_warning("Telegram disconnected, reconnecting in {}s", retry_delay)
                    await asyncio.sleep(retry_delay)
            except FloodWaitError as exc:
                wait_sec = int(getattr(exc, "seconds", 1) or 1)
                self._log_warning("Telegram FloodWaitError: wait {}s", wait_sec)
                await asyncio.sleep(wait_sec)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self._log_error("Telegram bot error: {}", exc)
                await asyncio.sleep(retry_delay)
            finally:
                self._set_connected(False)
                await client.disconnect()

            retry_delay = min(retry_delay * 2, 30)

    async def send_message(self, destination: int | str, text: str) -> None:
        if self._client is None or not self.connected:
            raise RuntimeError("Telegram client is not connected")
        await self._client.send_message(destination, text, parse_mode=None, link_preview=False)

    async def stop(self) -> None:
        """Gracefully stop Telegram client."""
        self._running = False
        if self._client is not None:
            await self._client.disconnect()

    async def _on_new_message(self, event: Any) -> None:
        if self._message_handler is None:
            return
        text = getattr(event, "raw_text", "") or ""
        try:
            reply = await self._message_handler(
                event.chat_id,
                text,
                bool(getattr(event, "is_private", False)),
                getattr(event, "sender_id", None),
            )
            if reply:
                await event.reply(reply, parse_mode=None, link_preview=False)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._log_error("Telegram handler error chat={} err={}", getattr(event, "chat_id", None), exc)

    def _set_connected(self, ok: bool) -> None:
        if ok:
            self._connected.set()
        else:
            self._connected.clear()
        if self.on_connection_change is not None:
            self.on_connection_change(ok)

    def _log_info(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "info"):
            self.logger.info(message, *args)

    def _log_warning(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "warning"):
            self.logger.warning(message, *args)
        elif self.logger is not None and hasattr(self.logger, "info"):
            self.logger.info(message, *args)

    def _log_error(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "error"):
            self.logger.error(message, *args)

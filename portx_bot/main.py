"""Application entrypoint."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
from pathlib import Path

from fastapi import FastAPI

from portx_bot.commands import BotCommands
from portx_bot.config import AppConfig, load_config
from portx_bot.health import HealthMonitor
from portx_bot.ledger import HistoryLedger
from portx_bot.logger import setup_logger
from portx_bot.mexc_client import MexcClient
from portx_bot.notifier import TelegramNotifier
from portx_bot.position_sync import PositionSync
from portx_bot.recap import RecapScheduler
from portx_bot.registry import SignalRegistry
from portx_bot.scheduler import SignalScheduler
from portx_bot.signal_parser import SignalParser
from portx_bot.state import BotState
from portx_bot.telegram_bot import TelegramBot


async def _serve_web(config: AppConfig, app: FastAPI) -> None:
    import uvicorn

    server = uvicorn.Server(uvicorn.Config(app, host=config.web.host, port=config.web.port, log_level="warning"))
    await server.serve()


async def run(config_path: str | Path = "config.yml") -> None:
    config: AppConfig = load_config(config_path)
    logger = setup_logger(
        config.logging.dir,
        config.logging.level,
        rotation=config.logging.rotation,
        retention=config.logging.retention,
    )

    state = BotState(mode=config.mode)
    registry = SignalRegistry(logger=logger)
    ledger = HistoryLedger()
    health = HealthMonitor(logger=logger)
    parser = SignalParser(
        trail_start_pct=config.signals.trail_start_pct,
        trail_gap_pct=config.signals.trail_gap_pct,
        max_runtime_min=config.signals.max_runtime_min,
    )
    mexc_client = MexcClient(
        api_key=config.mexc.api_key,
        api_secret=config.mexc.api_secret,
        spot_base_url=config.mexc.spot_base_url,
        futures_base_url=config.mexc.futures_base_url,
        timeout_sec=config.mexc.request_timeout_sec,
        max_retries=config.mexc.max_retries,
        logger=logger,
    )
    position_sync = PositionSync(mexc_client, interval_sec=config.engine.position_sync_interval_sec, logger=logger)

    tg_cfg = config.telegram
    bot = TelegramBot(
        api_id=tg_cfg.api_id,
        api_hash=tg_cfg.api_hash,
        bot_token=tg_cfg.bot_token,
        session_name=tg_cfg.session_name,
        logger=logger,
        on_connection_change=health.set_telegram_ok,
    )
    notifier = TelegramNotifier(bot, timeout_sec=config.engine.notify_timeout_sec, logger=logger)
    commands = BotCommands(
        registry=registry,
        ledger=ledger,
        parser=parser,
        state=state,
        positions=position_sync,
        sender=bot,
        target_chat_id=tg_cfg.target_chat_id,
        recap_window_hours=config.recap.window_hours,
        logger=logger,
    )
    bot.set_handler(commands.handle_message)

    scheduler = SignalScheduler(
        registry=registry,
        ledger=ledger,
        price_source=mexc_client,
        notifier=notifier,
        logger=logger,
        interval_sec=config.engine.tick_interval_sec,
        fetch_timeout_sec=config.mexc.request_timeout_sec * config.mexc.max_retries + 1,
        exit_on_trigger_tick=config.engine.exit_on_trigger_tick,
        health=health,
    )
    recap_scheduler = RecapScheduler(
        registry=registry,
        ledger=ledger,
        notifier=notifier,
        timezone=config.recap.timezone,
        daily_recap_time=config.recap.daily_recap_time,
        morning_briefing_time=config.recap.morning_briefing_time,
        window_hours=config.recap.window_hours,
        check_interval_sec=config.recap.check_interval_sec,
        logger=logger,
    )

    logger.info(
        "PortX signal engine starting mode={} tick={}s recap_tz={}",
        state.mode,
        config.engine.tick_interval_sec,
        config.recap.timezone,
    )

    tasks = [
        asyncio.create_task(bot.start(), name="telegram-bot"),
        asyncio.create_task(scheduler.run_loop(), name="signal-scheduler"),
        asyncio.create_task(position_sync.run_loop(), name="position-sync"),
        asyncio.create_task(recap_scheduler.run_loop(), name="recap-scheduler"),
    ]
    if config.web.enabled:
        from portx_bot.web.server import create_app

        app = create_app(registry, ledger, health, state, position_lookup=position_sync.position_for)
        tasks.append(asyncio.create_task(_serve_web(config, app), name="web"))
        logger.info("Web status surface on http://{}:{}", config.web.host, config.web.port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    try:
        while not stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=1)
            for task in tasks:
                if task.done() and not task.cancelled() and (exc := task.exception()) is not None:
                    logger.error("Task {} crashed: {}", task.get_name(), exc)
                    stop_event.set()
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    finally:
        logger.info("Shutting down")
        await scheduler.drain()
        await bot.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def main() -> None:
    asyncio.run(run(sys.argv[1] if len(sys.argv) > 1 else "config.yml"))


if __name__ == "__main__":
    main()

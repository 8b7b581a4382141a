"""Console and rotating file sinks for the signal engine."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"


def setup_logger(
    log_dir: str | Path = "logs",
    level: str = "INFO",
    rotation: str = "5 MB",
    retention: int = 5,
):
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stdout, level=level, format=LOG_FORMAT, enqueue=True)
    logger.add(
        path / "portx_bot.log",
        level=level,
        format=LOG_FORMAT,
        rotation=rotation,
        retention=retention,
        enqueue=True,
        encoding="utf-8",
    )
    # failed fetches/notifications only, for quick triage
    logger.add(
        path / "portx_bot.errors.log",
        level="WARNING",
        format=LOG_FORMAT,
        rotation=rotation,
        retention=retention,
        enqueue=True,
        encoding="utf-8",
    )
    return logger

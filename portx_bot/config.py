"""Configuration loading and validation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"

# environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "BOT_TOKEN": ("telegram", "bot_token"),
    "TARGET_GROUP_ID": ("telegram", "target_chat_id"),
    "TELEGRAM_API_ID": ("telegram", "api_id"),
    "TELEGRAM_API_HASH": ("telegram", "api_hash"),
    "MEXC_API_KEY": ("mexc", "api_key"),
    "MEXC_SECRET_KEY": ("mexc", "api_secret"),
}


class TelegramConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_id: int
    api_hash: str
    bot_token: str
    session_name: str = "portx_bot"
    target_chat_id: int


class MexcConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: str = ""
    api_secret: str = ""
    spot_base_url: str = "https://api.mexc.com"
    futures_base_url: str = "https://contract.mexc.com"
    request_timeout_sec: float = Field(default=10, gt=0)
    max_retries: int = Field(default=3, ge=1)


class EngineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tick_interval_sec: float = Field(default=5, gt=0)
    position_sync_interval_sec: float = Field(default=10, gt=0)
    exit_on_trigger_tick: bool = True
    notify_timeout_sec: float = Field(default=10, gt=0)


class SignalDefaultsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    trail_start_pct: float = Field(default=0.03, ge=0)
    trail_gap_pct: float = Field(default=0.02, ge=0, lt=1)
    max_runtime_min: int = Field(default=720, ge=1)


class RecapConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timezone: str = "Asia/Jakarta"
    daily_recap_time: str = Field(default="23:59", pattern=_HHMM)
    morning_briefing_time: str = Field(default="08:00", pattern=_HHMM)
    window_hours: float = Field(default=24, gt=0)
    check_interval_sec: float = Field(default=30, gt=0)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value


class WebConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    dir: str = "logs"
    level: str = Field(default="INFO", pattern=r"^(TRACE|DEBUG|INFO|SUCCESS|WARNING|ERROR|CRITICAL)$")
    rotation: str = "5 MB"
    retention: int = Field(default=5, ge=1)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: str = Field(default="TEST", pattern=r"^(TEST|LIVE)$")
    telegram: TelegramConfig
    mexc: MexcConfig = Field(default_factory=MexcConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    signals: SignalDefaultsConfig = Field(default_factory=SignalDefaultsConfig)
    recap: RecapConfig = Field(default_factory=RecapConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def apply_env_overrides(raw_data: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            raw_data.setdefault(section, {})
            raw_data[section][key] = value
    return raw_data


def load_config(path: str | Path = "config.yml", environ: dict[str, str] | None = None) -> AppConfig:
    """Load configuration from YAML file, apply env overrides and validate schema."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file '{config_path}' not found. Copy config.yml.example to config.yml first."
        )

    if environ is None:
        load_dotenv()

    with config_path.open("r", encoding="utf-8") as fh:
        raw_data = yaml.safe_load(fh) or {}

    raw_data = apply_env_overrides(raw_data, environ)
    try:
        return AppConfig.model_validate(raw_data)
    except ValidationError as exc:
        raise ValueError(f"Invalid config '{config_path}': {exc}") from exc

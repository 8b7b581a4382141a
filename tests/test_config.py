"""Tests for YAML configuration loading and environment overrides."""

from pathlib import Path

import pytest
import yaml

from portx_bot.config import apply_env_overrides, load_config

EXAMPLE = Path(__file__).resolve().parent.parent / "config.yml.example"

MINIMAL = {
    "telegram": {
        "api_id": 1,
        "api_hash": "hash",
        "bot_token": "1:token",
        "target_chat_id": -100,
    }
}


def _write(tmp_path, data):
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_example_config_is_valid():
    config = load_config(EXAMPLE, environ={})

    assert config.mode == "TEST"
    assert config.engine.tick_interval_sec == 5
    assert config.signals.max_runtime_min == 720
    assert config.recap.timezone == "Asia/Jakarta"


def test_defaults_fill_missing_sections(tmp_path):
    config = load_config(_write(tmp_path, MINIMAL), environ={})

    assert config.telegram.session_name == "portx_bot"
    assert config.mexc.spot_base_url == "https://api.mexc.com"
    assert config.engine.exit_on_trigger_tick is True
    assert config.signals.trail_gap_pct == 0.02
    assert config.web.enabled is False


def test_environment_overrides_secrets(tmp_path):
    environ = {
        "BOT_TOKEN": "999:env-token",
        "TARGET_GROUP_ID": "-1009876",
        "MEXC_API_KEY": "key",
        "MEXC_SECRET_KEY": "secret",
    }

    config = load_config(_write(tmp_path, MINIMAL), environ=environ)

    assert config.telegram.bot_token == "999:env-token"
    assert config.telegram.target_chat_id == -1009876
    assert config.mexc.api_key == "key"
    assert config.mexc.api_secret == "secret"


def test_env_can_supply_whole_section():
    raw = apply_env_overrides({}, {"TELEGRAM_API_ID": "5", "TELEGRAM_API_HASH": ""})

    assert raw == {"telegram": {"api_id": "5"}}


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yml", environ={})


@pytest.mark.parametrize(
    "patch",
    [
        {"mode": "PAPER"},
        {"unknown_section": {}},
        {"recap": {"timezone": "Mars/Olympus"}},
        {"recap": {"daily_recap_time": "24:00"}},
        {"signals": {"trail_gap_pct": 1.5}},
        {"engine": {"tick_interval_sec": 0}},
        {"logging": {"level": "LOUD"}},
    ],
)
def test_invalid_values_are_rejected(tmp_path, patch):
    with pytest.raises(ValueError, match="Invalid config"):
        load_config(_write(tmp_path, {**MINIMAL, **patch}), environ={})


def test_missing_telegram_section_is_rejected(tmp_path):
    with pytest.raises(ValueError, match="telegram"):
        load_config(_write(tmp_path, {"mode": "LIVE"}), environ={})

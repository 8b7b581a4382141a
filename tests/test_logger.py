"""Tests for log sink setup."""

from portx_bot.logger import setup_logger


def test_file_sinks_split_by_level(tmp_path):
    log = setup_logger(tmp_path / "logs", "INFO")
    try:
        log.info("Signal event EntryTriggered id=S1")
        log.warning("Price fetch failed pair=BTC_USDT")
        log.complete()

        main_log = (tmp_path / "logs" / "portx_bot.log").read_text(encoding="utf-8")
        error_log = (tmp_path / "logs" / "portx_bot.errors.log").read_text(encoding="utf-8")
    finally:
        log.remove()

    assert "EntryTriggered" in main_log
    assert "Price fetch failed" in main_log
    assert "Price fetch failed" in error_log
    assert "EntryTriggered" not in error_log

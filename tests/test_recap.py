"""Tests for the daily recap and morning briefing jobs."""

from datetime import UTC, datetime, timedelta

import pytest

from portx_bot.models import DAILY_RECAP, EXPIRED, MORNING_BRIEFING, SL, TP, ClosureRecord
from portx_bot.recap import RecapScheduler, parse_hhmm


def _at(day, hour, minute=0):
    return datetime(2026, 3, day, hour, minute, tzinfo=UTC)


def _closure(signal_id, outcome, closed_at, destination):
    return ClosureRecord(
        signal_id=signal_id,
        destination=destination,
        pair="BTC_USDT",
        side="LONG",
        outcome=outcome,
        entry_low=100.0,
        entry_high=102.0,
        final_stop=95.0,
        take_profit=110.0,
        created_at=closed_at - timedelta(hours=1),
        closed_at=closed_at,
        close_price=104.0,
    )


@pytest.fixture
def recap_scheduler(registry, ledger, notifier, clock):
    return RecapScheduler(registry=registry, ledger=ledger, notifier=notifier, clock=clock)


def test_parse_hhmm():
    assert parse_hhmm("08:05").hour == 8
    assert parse_hhmm(" 23:59 ").minute == 59
    with pytest.raises(ValueError):
        parse_hhmm("25:00")


class TestDailyRecap:
    @pytest.mark.asyncio
    async def test_fires_once_per_day(self, recap_scheduler, ledger, notifier):
        recap_scheduler.prime(_at(2, 9))
        ledger.record(_closure("S1", TP, _at(2, 12), destination=1))

        assert await recap_scheduler.check_once(_at(2, 23, 58)) == []
        assert await recap_scheduler.check_once(_at(2, 23, 59)) == [DAILY_RECAP]
        assert await recap_scheduler.check_once(_at(2, 23, 59)) == []

        assert notifier.kinds() == [DAILY_RECAP]

    @pytest.mark.asyncio
    async def test_only_destinations_with_closures_receive_recap(self, recap_scheduler, ledger, notifier):
        ledger.record(_closure("S1", TP, _at(2, 9), destination="a"))
        ledger.record(_closure("S2", SL, _at(2, 10), destination="a"))
        ledger.record(_closure("S3", EXPIRED, _at(2, 11), destination="b"))
        ledger.record(_closure("S4", TP, _at(1, 9), destination="stale"))

        sent = await recap_scheduler.send_daily_recap(_at(2, 23, 59))

        assert sent == 2
        by_destination = {dest: payload for dest, _, payload in notifier.sent}
        assert set(by_destination) == {"a", "b"}
        assert by_destination["a"]["recap"].tp == 1
        assert by_destination["a"]["recap"].sl == 1
        assert by_destination["a"]["hours"] == 24

    @pytest.mark.asyncio
    async def test_notify_failure_still_marks_job_done(self, recap_scheduler, ledger, notifier):
        notifier.fail_kinds.add(DAILY_RECAP)
        recap_scheduler.prime(_at(2, 9))
        ledger.record(_closure("S1", TP, _at(2, 12), destination=1))

        assert await recap_scheduler.check_once(_at(2, 23, 59)) == [DAILY_RECAP]
        assert await recap_scheduler.check_once(_at(2, 23, 59)) == []
        assert notifier.sent == []


class TestMorningBriefing:
    @pytest.mark.asyncio
    async def test_includes_destinations_with_active_signals(self, recap_scheduler, registry, ledger, notifier, long_request):
        registry.create(long_request, destination="live")
        ledger.record(_closure("S1", TP, _at(2, 2), destination="history"))

        fired = await recap_scheduler.check_once(_at(2, 8))

        assert fired == [MORNING_BRIEFING]
        by_destination = {dest: payload for dest, _, payload in notifier.sent}
        assert set(by_destination) == {"history", "live"}
        assert len(by_destination["live"]["signals"]) == 1
        assert by_destination["history"]["recap"].tp == 1
        assert by_destination["live"]["now"] == _at(2, 8)

    @pytest.mark.asyncio
    async def test_fires_again_next_day(self, recap_scheduler, registry, notifier, long_request):
        registry.create(long_request, destination=1)

        await recap_scheduler.check_once(_at(2, 8))
        await recap_scheduler.check_once(_at(2, 9))
        await recap_scheduler.check_once(_at(3, 8, 1))

        assert notifier.kinds() == [MORNING_BRIEFING, MORNING_BRIEFING]


@pytest.mark.asyncio
async def test_prime_skips_jobs_already_past(recap_scheduler, registry, notifier, long_request):
    registry.create(long_request, destination=1)
    recap_scheduler.prime(_at(2, 10))

    assert await recap_scheduler.check_once(_at(2, 10, 1)) == []
    assert await recap_scheduler.check_once(_at(3, 8)) == [MORNING_BRIEFING]


@pytest.mark.asyncio
async def test_job_times_follow_configured_timezone(registry, ledger, notifier, clock, long_request):
    scheduler = RecapScheduler(
        registry=registry,
        ledger=ledger,
        notifier=notifier,
        timezone="Europe/Berlin",
        morning_briefing_time="08:00",
        clock=clock,
    )
    registry.create(long_request, destination=1)

    # 07:00 UTC is 08:00 in Berlin in March (UTC+1)
    assert await scheduler.check_once(_at(2, 6, 59)) == []
    assert await scheduler.check_once(_at(2, 7)) == [MORNING_BRIEFING]

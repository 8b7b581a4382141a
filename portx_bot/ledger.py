"""Append-only history of closed signals and recap aggregation."""

from __future__ import annotations

from datetime import datetime

from portx_bot.models import EXPIRED, SL, TP, ClosureRecord, RecapSummary


class HistoryLedger:
    def __init__(self) -> None:
        self._records: list[ClosureRecord] = []
        self._signal_ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._records)

    def record(self, closure: ClosureRecord) -> bool:
        """Append ``closure``; a second record for the same signal is ignored."""
        if closure.signal_id in self._signal_ids:
            return False
        self._signal_ids.add(closure.signal_id)
        self._records.append(closure)
        return True

    def window(self, destination: int | str, since: datetime) -> list[ClosureRecord]:
        return [r for r in self._records if r.destination == destination and r.closed_at >= since]

    def destinations(self, since: datetime | None = None) -> list[int | str]:
        seen: dict[int | str, None] = {}
        for r in self._records:
            if since is None or r.closed_at >= since:
                seen.setdefault(r.destination, None)
        return list(seen)

    def recap(self, destination: int | str, since: datetime) -> RecapSummary:
        records = tuple(self.window(destination, since))
        counts = {TP: 0, SL: 0, EXPIRED: 0}
        for r in records:
            counts[r.outcome] += 1
        return RecapSummary(
            destination=destination,
            since=since,
            records=records,
            tp=counts[TP],
            sl=counts[SL],
            expired=counts[EXPIRED],
        )

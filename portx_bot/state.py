"""Runtime state helpers for bot lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

TEST = "TEST"
LIVE = "LIVE"
MODES = frozenset({TEST, LIVE})


@dataclass(slots=True)
class BotState:
    """Process-lifetime state; TEST mode previews broadcasts instead of posting them."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    mode: str = TEST

    @property
    def is_live(self) -> bool:
        return self.mode == LIVE

    def set_mode(self, mode: str) -> str:
        mode = mode.upper()
        if mode not in MODES:
            raise ValueError(f"unknown mode {mode!r}")
        self.mode = mode
        return mode

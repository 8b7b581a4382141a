"""Error taxonomy shared by intake, price feed, notifications and the engine."""

from __future__ import annotations


class PortxError(Exception):
    """Base class for all bot errors."""


class InvalidSignal(PortxError, ValueError):
    """Intake rejected a signal block; the message is shown back to the author."""


class PriceFetchFailed(PortxError, RuntimeError):
    def __init__(self, pair: str, reason: str) -> None:
        super().__init__(f"price fetch failed pair={pair}: {reason}")
        self.pair = pair
        self.reason = reason


class NotifyFailed(PortxError, RuntimeError):
    def __init__(self, destination: int | str, kind: str, reason: str) -> None:
        super().__init__(f"notify failed destination={destination} kind={kind}: {reason}")
        self.destination = destination
        self.kind = kind
        self.reason = reason


class InternalInvariantViolation(PortxError, AssertionError):
    """Programming error: engine state broke a lifecycle invariant."""

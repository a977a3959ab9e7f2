"""Clock utilities (UTC epoch seconds)."""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock, truncated to whole UTC epoch seconds."""

    def now(self) -> int:
        return int(datetime.now(timezone.utc).timestamp())


class ManualClock:
    """
    Externally advanced clock.

    Used by paper adapters and tests so window rollover and breaker
    expiry are deterministic. Never moves backwards.
    """

    def __init__(self, start: int = 1_700_000_000):
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock can only move forward")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError(f"Clock can only move forward ({timestamp} < {self._now})")
        self._now = int(timestamp)
        return self._now


def to_utc_iso(timestamp: int) -> str:
    """Epoch seconds -> ISO-8601 string with offset."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()

"""Time utility helpers and ledger clocks."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Protocol


def now_utc() -> datetime:
    """Return current timezone-aware UTC datetime."""
    return datetime.now(tz=UTC)


def to_ledger_timestamp(value: datetime) -> int:
    """Convert a datetime into whole ledger seconds (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def parse_ledger_time(value: str | int | datetime) -> int:
    """Parse an ISO string, datetime, or raw seconds into ledger seconds."""
    if isinstance(value, bool):
        raise ValueError("Ledger time cannot be a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        return to_ledger_timestamp(value)
    text = value.strip()
    if text.isdigit():
        return int(text)
    return to_ledger_timestamp(datetime.fromisoformat(text.replace("Z", "+00:00")))


class LedgerClock(Protocol):
    """Monotonic source of the current ledger instant."""

    def now(self) -> int: ...


class SystemLedgerClock:
    """Ledger clock backed by the host's UTC wall clock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def now(self) -> int:
        # Never step backwards even if the wall clock is adjusted.
        with self._lock:
            self._last = max(self._last, to_ledger_timestamp(now_utc()))
            return self._last


class ManualLedgerClock:
    """Ledger clock that only moves when told to."""

    def __init__(self, timestamp: int = 0) -> None:
        self._timestamp = timestamp

    def now(self) -> int:
        return self._timestamp

    def set(self, timestamp: int) -> None:
        if timestamp < self._timestamp:
            raise ValueError("Ledger clock cannot move backwards")
        self._timestamp = timestamp

    def advance(self, seconds: int) -> int:
        self.set(self._timestamp + seconds)
        return self._timestamp

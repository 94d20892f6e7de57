"""Injected clock and calendar capabilities.

Nothing in the gate core reads the system clock directly. Callers hand a
`Clock` and a `Calendar` in, so every date computation is reproducible in tests.

Weekday numbering follows the original platform calendar: 1 = Sunday … 7 = Saturday.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock, always timezone-aware UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Settable clock for tests and replays."""

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, delta: timedelta) -> datetime:
        self._now = self._now + delta
        return self._now


@dataclass(frozen=True, slots=True)
class Calendar:
    tz_name: str = "UTC"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.tz_name)

    def localize(self, ts: datetime) -> datetime:
        """Express `ts` in this calendar's timezone. Naive values are taken as UTC."""
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(self.tz)

    def local_date(self, ts: datetime) -> date:
        return self.localize(ts).date()

    def midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz)

    def start_of_day(self, ts: datetime) -> datetime:
        return self.midnight(self.local_date(ts))

    def weekday(self, ts: datetime) -> int:
        # isoweekday: Monday=1 … Sunday=7  →  Sunday=1 … Saturday=7
        return self.local_date(ts).isoweekday() % 7 + 1

    def midnight_after(self, ts: datetime, days: int) -> datetime:
        """Local midnight `days` calendar days after the day containing `ts`.

        Built from the local date rather than by adding 24h steps, so DST
        transitions never shift the result off midnight.
        """
        return self.midnight(self.local_date(ts) + timedelta(days=days))

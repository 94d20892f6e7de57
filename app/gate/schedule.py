"""Recurring daily unlock windows and recognition of their trigger names.

Trigger names changed over time. Installs from the single-schedule generation
still have `makeHay.timeUnlock` registered with the OS; the weekly generation
registers `makeHay.timeUnlock.<weekday>`. Every name in `UNLOCK_IDENTIFIERS`
means the same thing when it fires: the unlock window has begun.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable, Protocol

from loguru import logger

from app.gate.errors import SchedulingError
from app.gate.models import MINUTES_PER_DAY, WEEKDAYS, WeeklyGoalSchedule
from app.gate.shields import ShieldController

UNLOCK_PREFIX = "makeHay.timeUnlock"


def weekday_unlock_identifier(weekday: int) -> str:
    """Per-weekday name; weekday follows 1 = Sunday … 7 = Saturday."""
    return f"{UNLOCK_PREFIX}.{weekday}"


LEGACY_UNLOCK_IDENTIFIER = UNLOCK_PREFIX
WEEKDAY_UNLOCK_IDENTIFIERS: tuple[str, ...] = tuple(weekday_unlock_identifier(d) for d in WEEKDAYS)
UNLOCK_IDENTIFIERS: frozenset[str] = frozenset({LEGACY_UNLOCK_IDENTIFIER, *WEEKDAY_UNLOCK_IDENTIFIERS})


@dataclass(frozen=True, slots=True)
class DailyWindow:
    start_hour: int
    start_minute: int
    end_hour: int = 23
    end_minute: int = 59
    weekday: int | None = None  # None = every day
    repeats: bool = True


@dataclass(frozen=True, slots=True)
class WeekdayUnlockEntry:
    weekday: int  # 1=Sunday … 7=Saturday
    unlock_minutes: int  # minutes since local midnight


class SchedulingCapability(Protocol):
    """OS timer registration. `register` raises SchedulingError on rejection."""

    async def register(self, identifier: str, window: DailyWindow) -> None: ...

    async def unregister(self, identifiers: Iterable[str]) -> None: ...


class InMemoryScheduler:
    """Keeps registered windows in a dict and can fire them into a queue."""

    def __init__(self, triggers: asyncio.Queue[str | None] | None = None):
        self.windows: dict[str, DailyWindow] = {}
        self.triggers = triggers
        self.reject = False

    async def register(self, identifier: str, window: DailyWindow) -> None:
        if self.reject:
            raise SchedulingError(f"Registration rejected for {identifier}")
        self.windows[identifier] = window

    async def unregister(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self.windows.pop(identifier, None)

    async def fire(self, identifier: str) -> None:
        if self.triggers is None:
            raise RuntimeError("No trigger queue attached")
        await self.triggers.put(identifier)


def unlock_entries(schedule: WeeklyGoalSchedule) -> list[WeekdayUnlockEntry]:
    """One entry per weekday whose goals include an enabled time unlock."""
    return [
        WeekdayUnlockEntry(weekday=day, unlock_minutes=goals.time_unlock_goal.unlock_time_minutes)
        for day, goals in schedule.days.items()
        if goals.time_unlock_goal.is_enabled
    ]


def clamp_minute_of_day(minutes: int) -> int:
    return min(max(minutes, 0), MINUTES_PER_DAY - 1)


def window_for(minutes: int, weekday: int | None = None) -> DailyWindow:
    clamped = clamp_minute_of_day(minutes)
    return DailyWindow(start_hour=clamped // 60, start_minute=clamped % 60, weekday=weekday)


class UnlockScheduleRegistry:
    def __init__(self, scheduler: SchedulingCapability, shields: ShieldController):
        self._scheduler = scheduler
        self._shields = shields

    async def schedule_daily_unlock(self, minute_of_day: int) -> DailyWindow:
        window = window_for(minute_of_day)
        try:
            await self._scheduler.register(LEGACY_UNLOCK_IDENTIFIER, window)
        except SchedulingError:
            logger.warning(f"Daily unlock registration rejected at {minute_of_day} min")
            raise
        logger.info(f"Daily unlock scheduled at {window.start_hour:02d}:{window.start_minute:02d}")
        return window

    async def cancel_daily_unlock(self) -> None:
        await self._scheduler.unregister([LEGACY_UNLOCK_IDENTIFIER])
        logger.info("Daily unlock cancelled")

    async def schedule_weekly_unlocks(self, entries: Iterable[WeekdayUnlockEntry]) -> dict[str, DailyWindow]:
        """Replace every unlock monitor with one window per listed weekday.

        Entries at minute 0 are skipped: that goal is already met at midnight.
        """
        await self.cancel_weekly_unlocks()
        await self.cancel_daily_unlock()

        registered: dict[str, DailyWindow] = {}
        for entry in entries:
            if entry.weekday not in WEEKDAYS:
                raise ValueError(f"Weekday must be in 1..7, got {entry.weekday}")
            if clamp_minute_of_day(entry.unlock_minutes) == 0:
                continue
            identifier = weekday_unlock_identifier(entry.weekday)
            window = window_for(entry.unlock_minutes, weekday=entry.weekday)
            await self._scheduler.register(identifier, window)
            registered[identifier] = window
        logger.info(f"Weekly unlocks scheduled for {sorted(registered)}")
        return registered

    async def cancel_weekly_unlocks(self) -> None:
        await self._scheduler.unregister(WEEKDAY_UNLOCK_IDENTIFIERS)

    @staticmethod
    def matches(identifier: str) -> bool:
        return identifier in UNLOCK_IDENTIFIERS

    async def handle_trigger(self, identifier: str) -> bool:
        """Clear shields when a daily-unlock window of any generation begins.

        Unrelated identifiers are ignored (False). Shield failures propagate.
        """
        if not self.matches(identifier):
            logger.debug(f"Ignoring trigger {identifier!r}")
            return False
        logger.info(f"Unlock window began ({identifier}), clearing shields")
        await self._shields.update_shields(should_block=False)
        return True

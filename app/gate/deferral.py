"""When an edit is allowed to take effect.

Harder and neutral edits land immediately. Easier edits wait for the next
commitment boundary so they can never weaken the period already in progress.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from app.gate.calendar import Calendar
from app.gate.models import Intent


class AnchorKind(str, Enum):
    daily = "daily"
    weekly = "weekly"


@dataclass(frozen=True, slots=True)
class AnchorPolicy:
    kind: AnchorKind = AnchorKind.daily
    anchor_weekday: int | None = None  # 1=Sunday … 7=Saturday, weekly only

    def __post_init__(self) -> None:
        if not isinstance(self.kind, AnchorKind):
            object.__setattr__(self, "kind", AnchorKind(self.kind))
        if self.kind is AnchorKind.weekly and (self.anchor_weekday is None or not 1 <= self.anchor_weekday <= 7):
            raise ValueError(f"Weekly anchor must be a weekday in 1..7, got {self.anchor_weekday}")

    @classmethod
    def daily(cls) -> AnchorPolicy:
        return cls(kind=AnchorKind.daily)

    @classmethod
    def weekly(cls, anchor_weekday: int) -> AnchorPolicy:
        return cls(kind=AnchorKind.weekly, anchor_weekday=anchor_weekday)


def days_until_anchor(current_weekday: int, anchor_weekday: int) -> int:
    """Days to the next anchor weekday, in 1..7. Today never counts."""
    return (anchor_weekday - current_weekday) % 7 or 7


def effective_date(
    intent: Intent,
    now: datetime,
    calendar: Calendar,
    anchor: AnchorPolicy,
) -> datetime:
    if intent is Intent.harder or intent is Intent.neutral:
        return now
    if intent is Intent.easier:
        if anchor.kind is AnchorKind.weekly:
            days = days_until_anchor(calendar.weekday(now), anchor.anchor_weekday)
            return calendar.midnight_after(now, days)
        if anchor.kind is AnchorKind.daily:
            return calendar.midnight_after(now, 1)
    raise AssertionError(f"Unhandled intent: {intent!r}")

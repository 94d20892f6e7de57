"""Goal configuration, selection and pending-change contracts — Pydantic v2 models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MINUTES_PER_DAY = 24 * 60
WEEKDAYS = range(1, 8)  # 1=Sunday … 7=Saturday


class Intent(str, Enum):
    easier = "easier"
    harder = "harder"
    neutral = "neutral"


class ExerciseType(str, Enum):
    any = "any"
    walking = "walking"
    running = "running"
    cycling = "cycling"
    hiit = "hiit"
    strength_training = "strength_training"


class QuantityGoal(BaseModel):
    """Numeric daily target (steps, active energy kcal)."""

    model_config = ConfigDict(frozen=True)

    is_enabled: bool = True
    target: int = 10_000


class ExerciseGoal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    exercise_type: ExerciseType = ExerciseType.any
    is_enabled: bool = True
    target_minutes: int = 30


class TimeUnlockGoal(BaseModel):
    """Unlock once local time reaches `unlock_time_minutes` (minute of day)."""

    model_config = ConfigDict(frozen=True)

    is_enabled: bool = False
    unlock_time_minutes: int = Field(default=17 * 60, ge=0, lt=MINUTES_PER_DAY)


class GoalConfiguration(BaseModel):
    """Immutable set of goal dimensions. Compared structurally, never mutated."""

    model_config = ConfigDict(frozen=True)

    step_goal: QuantityGoal = Field(default_factory=QuantityGoal)
    active_energy_goal: QuantityGoal = Field(
        default_factory=lambda: QuantityGoal(is_enabled=False, target=500)
    )
    exercise_goals: tuple[ExerciseGoal, ...] = ()
    time_unlock_goal: TimeUnlockGoal = Field(default_factory=TimeUnlockGoal)


class WeeklyGoalSchedule(BaseModel):
    """One GoalConfiguration per weekday. Missing days are filled with defaults."""

    model_config = ConfigDict(frozen=True)

    days: dict[int, GoalConfiguration] = Field(default_factory=dict, validate_default=True)

    @field_validator("days")
    @classmethod
    def _fill_week(cls, days: dict[int, GoalConfiguration]) -> dict[int, GoalConfiguration]:
        unknown = sorted(set(days) - set(WEEKDAYS))
        if unknown:
            raise ValueError(f"Weekdays must be in 1..7, got {unknown}")
        return {day: days.get(day, GoalConfiguration()) for day in WEEKDAYS}

    @classmethod
    def repeating(cls, goals: GoalConfiguration) -> WeeklyGoalSchedule:
        return cls(days={day: goals for day in WEEKDAYS})

    def goal_for(self, weekday: int) -> GoalConfiguration:
        return self.days[weekday]

    def with_goal(self, weekday: int, goals: GoalConfiguration) -> WeeklyGoalSchedule:
        return WeeklyGoalSchedule(days={**self.days, weekday: goals})


class AppSelection(BaseModel):
    """Target set for the blocking capability (opaque app / category tokens)."""

    model_config = ConfigDict(frozen=True)

    applications: frozenset[str] = frozenset()
    categories: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.applications and not self.categories

    def drops_any_from(self, other: AppSelection) -> bool:
        """True when something blocked in `other` is no longer blocked here."""
        return bool(other.applications - self.applications or other.categories - self.categories)


class PendingChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    payload: dict[str, Any]
    effective_date: datetime


class EditDecision(BaseModel):
    """Outcome of a proposed edit: how it was classified and when it lands."""

    intent: Intent
    effective_date: datetime
    applied: bool = False
    unlock_schedule_synced: bool = True

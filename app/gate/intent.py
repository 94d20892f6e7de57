"""Classify a goal edit as easier, harder or neutral.

Each dimension is checked on its own and yields zero or more signals. The
signals are then reduced with a fixed priority: any easier signal makes the
whole edit easier, even when other dimensions got harder in the same edit.
Pure functions: no I/O, never raises.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, Iterator

from app.gate.models import GoalConfiguration, Intent, QuantityGoal, TimeUnlockGoal, WeeklyGoalSchedule


class Signal(str, Enum):
    easier = "easier"
    harder = "harder"


def _compare_targets(original: int, proposed: int) -> Iterator[Signal]:
    if proposed < original:
        yield Signal.easier
    elif proposed > original:
        yield Signal.harder


def _toggle_or_compare(
    was_enabled: bool,
    now_enabled: bool,
    original: int,
    proposed: int,
) -> Iterator[Signal]:
    if was_enabled and now_enabled:
        yield from _compare_targets(original, proposed)
    elif was_enabled:
        yield Signal.easier
    elif now_enabled:
        yield Signal.harder


def quantity_signals(original: QuantityGoal, proposed: QuantityGoal) -> Iterator[Signal]:
    """Lower target or disabling = easier; higher target or enabling = harder."""
    yield from _toggle_or_compare(
        original.is_enabled, proposed.is_enabled, original.target, proposed.target
    )


def exercise_signals(original: GoalConfiguration, proposed: GoalConfiguration) -> Iterator[Signal]:
    """Match sub-goals by id. New or re-enabled = harder; dropped or disabled = easier."""
    before = {g.id: g for g in original.exercise_goals}
    after = {g.id: g for g in proposed.exercise_goals}

    for goal_id, new in after.items():
        if not new.is_enabled:
            continue
        old = before.get(goal_id)
        if old is None or not old.is_enabled:
            yield Signal.harder
        else:
            yield from _compare_targets(old.target_minutes, new.target_minutes)

    for goal_id, old in before.items():
        if not old.is_enabled:
            continue
        new = after.get(goal_id)
        if new is None or not new.is_enabled:
            yield Signal.easier


def time_unlock_signals(original: TimeUnlockGoal, proposed: TimeUnlockGoal) -> Iterator[Signal]:
    """An earlier unlock minute is easier; a later one is harder."""
    yield from _toggle_or_compare(
        original.is_enabled,
        proposed.is_enabled,
        original.unlock_time_minutes,
        proposed.unlock_time_minutes,
    )


DimensionCheck = Callable[[GoalConfiguration, GoalConfiguration], Iterable[Signal]]

DIMENSIONS: dict[str, DimensionCheck] = {
    "step_goal": lambda o, p: quantity_signals(o.step_goal, p.step_goal),
    "active_energy_goal": lambda o, p: quantity_signals(o.active_energy_goal, p.active_energy_goal),
    "exercise_goals": exercise_signals,
    "time_unlock_goal": lambda o, p: time_unlock_signals(o.time_unlock_goal, p.time_unlock_goal),
}


def dimension_signals(
    original: GoalConfiguration,
    proposed: GoalConfiguration,
) -> dict[str, list[Signal]]:
    """Per-dimension signals, keyed by dimension name."""
    return {name: list(check(original, proposed)) for name, check in DIMENSIONS.items()}


def aggregate(signals: Iterable[Signal]) -> Intent:
    """Reduce signals to an Intent. Order of `signals` never matters."""
    seen = set(signals)
    if Signal.easier in seen:
        return Intent.easier
    if Signal.harder in seen:
        return Intent.harder
    return Intent.neutral


def classify(original: GoalConfiguration, proposed: GoalConfiguration) -> Intent:
    per_dimension = dimension_signals(original, proposed)
    return aggregate(s for signals in per_dimension.values() for s in signals)


def classify_schedule(original: WeeklyGoalSchedule, proposed: WeeklyGoalSchedule) -> Intent:
    """An edit to any weekday counts; easier on one day is easier for the week."""
    return aggregate(
        s
        for day, goals in proposed.days.items()
        for signals in dimension_signals(original.goal_for(day), goals).values()
        for s in signals
    )

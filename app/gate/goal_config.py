"""Stored goal configuration — storage keys, defaults, legacy migration.

The weekly schedule under WEEKLY_SCHEDULE_KEY is the source of truth. Two
older layouts are migrated on first load:
- a single GoalConfiguration under GOALS_KEY, repeated to all seven days;
- before that, only an integer step target under LEGACY_STEP_KEY.

GOALS_KEY is still written with today's goal whenever the schedule changes,
so readers of the single-goal layout keep working.

Loads that may migrate write to the store; run them under the schedule's
PendingChangeStore lock so a migration never overwrites a concurrent commit.
"""

from __future__ import annotations

from loguru import logger
from pydantic import ValidationError

from app.gate.models import GoalConfiguration, QuantityGoal, WeeklyGoalSchedule
from app.gate.storage import KeyValueStore

WEEKLY_SCHEDULE_KEY = "weeklyGoalScheduleData"
GOALS_KEY = "healthGoalData"
LEGACY_STEP_KEY = "dailyStepGoal"
PENDING_SCHEDULE_KEY = "pendingWeeklyGoalSchedule"
PENDING_SELECTION_KEY = "pendingFamilyActivitySelection"

# Present while the OS unlock windows may not match the stored schedule
UNLOCK_SYNC_KEY = "unlockScheduleDirty"


def _legacy_step_target(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


async def save_goals(store: KeyValueStore, goals: GoalConfiguration) -> None:
    await store.set(GOALS_KEY, goals.model_dump_json())


async def load_goals(store: KeyValueStore) -> GoalConfiguration:
    raw = await store.get(GOALS_KEY)
    if raw is not None:
        try:
            return GoalConfiguration.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Unreadable goals under {GOALS_KEY!r}, falling back")

    legacy = _legacy_step_target(await store.get(LEGACY_STEP_KEY))
    if legacy is not None:
        migrated = GoalConfiguration(step_goal=QuantityGoal(is_enabled=True, target=legacy))
        await save_goals(store, migrated)
        logger.info(f"Migrated legacy step target {legacy} into goal configuration")
        return migrated

    return GoalConfiguration()


async def load_weekly_schedule(store: KeyValueStore) -> WeeklyGoalSchedule:
    raw = await store.get(WEEKLY_SCHEDULE_KEY)
    if raw is not None:
        try:
            return WeeklyGoalSchedule.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Unreadable schedule under {WEEKLY_SCHEDULE_KEY!r}, rebuilding from goals")

    migrated = WeeklyGoalSchedule.repeating(await load_goals(store))
    await store.write_batch({WEEKLY_SCHEDULE_KEY: migrated.model_dump_json(), UNLOCK_SYNC_KEY: "1"})
    logger.info("Migrated single goal configuration to all seven weekdays")
    return migrated

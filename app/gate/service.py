"""Edit coordination and wake-up handling.

Ties the pure pieces (classify, effective_date) to the stateful ones
(pending slots, shields, unlock schedule). Every path that reads goals or the
selection first gives a due pending change the chance to land.

Goal edits act on the weekly schedule. A commit marks the OS unlock windows
dirty in the same batch; the marker is only removed once registration
succeeds, so a rejected registration is retried on the next pass.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

from loguru import logger

from app.gate.calendar import Calendar, Clock
from app.gate.deferral import AnchorPolicy, effective_date
from app.gate.errors import GateError, SchedulingError
from app.gate.goal_config import (
    GOALS_KEY,
    PENDING_SCHEDULE_KEY,
    PENDING_SELECTION_KEY,
    UNLOCK_SYNC_KEY,
    WEEKLY_SCHEDULE_KEY,
    load_weekly_schedule,
)
from app.gate.intent import classify_schedule
from app.gate.models import AppSelection, EditDecision, GoalConfiguration, Intent, WeeklyGoalSchedule
from app.gate.pending import PendingChangeStore
from app.gate.schedule import UnlockScheduleRegistry, unlock_entries
from app.gate.shields import ShieldController
from app.gate.storage import KeyValueStore


class GateService:
    def __init__(
        self,
        *,
        store: KeyValueStore,
        clock: Clock,
        calendar: Calendar,
        shields: ShieldController,
        registry: UnlockScheduleRegistry,
        goal_anchor: AnchorPolicy | None = None,
        selection_anchor: AnchorPolicy | None = None,
    ):
        self.store = store
        self.clock = clock
        self.calendar = calendar
        self.shields = shields
        self.registry = registry
        self.goal_anchor = goal_anchor or AnchorPolicy.daily()
        self.selection_anchor = selection_anchor or AnchorPolicy.daily()
        self.pending_schedule = PendingChangeStore(
            store, PENDING_SCHEDULE_KEY, WEEKLY_SCHEDULE_KEY, commit_extras=self._schedule_commit_extras
        )
        self.pending_selection = PendingChangeStore(store, PENDING_SELECTION_KEY, shields.selection_key)

    def _schedule_commit_extras(self, payload: dict[str, Any], now: datetime) -> dict[str, str]:
        schedule = WeeklyGoalSchedule.model_validate(payload)
        today = schedule.goal_for(self.calendar.weekday(now))
        return {GOALS_KEY: today.model_dump_json(), UNLOCK_SYNC_KEY: "1"}

    # ------------------------------------------------------------------
    # Pending application
    # ------------------------------------------------------------------

    async def apply_due_changes(self) -> bool:
        """Apply whichever pending schedule / selection changes are due."""
        now = self.clock.now()
        schedule_applied = await self.pending_schedule.apply_if_ready(now)
        selection_applied = await self.pending_selection.apply_if_ready(now)
        if selection_applied:
            await self.refresh_shields()
        await self.sync_unlock_schedule()
        return schedule_applied or selection_applied

    async def refresh_shields(self) -> None:
        """Re-apply shields so a committed selection takes effect while blocking."""
        if self.shields.is_blocking:
            await self.shields.update_shields(True)

    async def sync_unlock_schedule(self) -> bool:
        """Register per-weekday unlock windows if the schedule changed.

        False when registration was rejected; the dirty marker stays for a retry.
        """
        async with self.pending_schedule.lock:
            if await self.store.get(UNLOCK_SYNC_KEY) is None:
                return True
            schedule = await load_weekly_schedule(self.store)
            try:
                await self.registry.schedule_weekly_unlocks(unlock_entries(schedule))
            except SchedulingError:
                logger.warning("Unlock schedule registration rejected, will retry on next pass")
                return False
            await self.store.delete(UNLOCK_SYNC_KEY)
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def current_schedule(self) -> WeeklyGoalSchedule:
        await self.apply_due_changes()
        async with self.pending_schedule.lock:
            return await load_weekly_schedule(self.store)

    async def current_goals(self) -> GoalConfiguration:
        """Goals in force today."""
        schedule = await self.current_schedule()
        return schedule.goal_for(self.calendar.weekday(self.clock.now()))

    async def current_selection(self) -> AppSelection:
        await self.apply_due_changes()
        return await self.shields.get_selection()

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    async def propose_goal_change(self, proposed: GoalConfiguration) -> EditDecision:
        """Apply one configuration to every weekday."""
        return await self._propose_schedule(lambda _: WeeklyGoalSchedule.repeating(proposed))

    async def propose_weekday_goal_change(self, weekday: int, proposed: GoalConfiguration) -> EditDecision:
        return await self._propose_schedule(lambda schedule: schedule.with_goal(weekday, proposed))

    async def _propose_schedule(self, edit) -> EditDecision:
        original = await self.current_schedule()
        proposed = edit(original)
        intent = classify_schedule(original, proposed)
        now = self.clock.now()
        when = effective_date(intent, now, self.calendar, self.goal_anchor)
        await self.pending_schedule.set_pending(proposed.model_dump(mode="json"), when)
        applied = await self.pending_schedule.apply_if_ready(now)
        synced = await self.sync_unlock_schedule()
        logger.info(f"Goal edit classified {intent.value}, effective {when.isoformat()}, applied={applied}")
        return EditDecision(intent=intent, effective_date=when, applied=applied, unlock_schedule_synced=synced)

    async def propose_selection_change(self, selection: AppSelection) -> EditDecision:
        """Unblocking anything is easier and waits; blocking more lands now."""
        original = await self.current_selection()
        if selection.drops_any_from(original):
            intent = Intent.easier
        elif selection != original:
            intent = Intent.harder
        else:
            intent = Intent.neutral
        now = self.clock.now()
        when = effective_date(intent, now, self.calendar, self.selection_anchor)
        await self.pending_selection.set_pending(selection.model_dump(mode="json"), when)
        applied = await self.pending_selection.apply_if_ready(now)
        if applied:
            await self.refresh_shields()
        logger.info(f"Selection edit classified {intent.value}, effective {when.isoformat()}, applied={applied}")
        return EditDecision(intent=intent, effective_date=when, applied=applied)

    # ------------------------------------------------------------------
    # Wake-ups
    # ------------------------------------------------------------------

    async def handle_wakeup(self, identifier: str) -> bool:
        """Entry point for an OS trigger. True if it was a daily-unlock trigger.

        The unlock is handled first and only its shield failure propagates.
        The due-change pass that follows logs its failures; the next wake-up
        retries it.
        """
        try:
            return await self.registry.handle_trigger(identifier)
        finally:
            try:
                await self.apply_due_changes()
            except GateError as exc:
                logger.warning(f"Due-change pass after {identifier!r} failed: {exc}")

    async def drain_triggers(self, queue: asyncio.Queue[str | None]) -> int:
        """Handle identifiers from `queue` until a None sentinel. Returns count handled.

        A failing trigger is logged and the loop moves on to the next one.
        """
        handled = 0
        while True:
            identifier = await queue.get()
            try:
                if identifier is None:
                    return handled
                await self.handle_wakeup(identifier)
                handled += 1
            except Exception:
                logger.exception(f"Wake-up for {identifier!r} failed")
            finally:
                queue.task_done()

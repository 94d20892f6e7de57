"""Gate HTTP router — intent, pending changes, shields, unlock schedule, triggers."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel

from app.auth import verify_api_key
from app.config import settings
from app.gate.calendar import Calendar
from app.gate.deferral import AnchorKind, effective_date
from app.gate.deps import anchor_policy, get_gate_service
from app.gate.intent import classify, dimension_signals
from app.gate.models import (
    AppSelection,
    EditDecision,
    GoalConfiguration,
    Intent,
    PendingChange,
    WeeklyGoalSchedule,
)
from app.gate.service import GateService

router = APIRouter(prefix="/gate", tags=["gate"], dependencies=[Depends(verify_api_key)])


class ClassifyRequest(BaseModel):
    original: GoalConfiguration
    proposed: GoalConfiguration


class ClassifyResponse(BaseModel):
    intent: Intent
    signals: dict[str, list[str]]


class EffectiveDateRequest(BaseModel):
    intent: Intent
    now: datetime | None = None
    tz: str | None = None
    policy: AnchorKind = AnchorKind.daily
    anchor_weekday: int | None = None


class ShieldsRequest(BaseModel):
    should_block: bool


class UnlockScheduleRequest(BaseModel):
    minute_of_day: int


# ---------------------------------------------------------------------------
# Pure decisions
# ---------------------------------------------------------------------------


@router.post("/intent", response_model=ClassifyResponse)
async def classify_edit(body: ClassifyRequest) -> ClassifyResponse:
    signals = dimension_signals(body.original, body.proposed)
    return ClassifyResponse(
        intent=classify(body.original, body.proposed),
        signals={name: [s.value for s in found] for name, found in signals.items()},
    )


@router.post("/effective-date")
async def compute_effective_date(
    body: EffectiveDateRequest,
    gate: GateService = Depends(get_gate_service),
) -> dict:
    try:
        anchor = anchor_policy(body.policy, body.anchor_weekday)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    calendar = Calendar(body.tz or settings.default_tz)
    try:
        calendar.tz
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=422, detail=f"Unknown timezone: {calendar.tz_name!r}")
    now = body.now or gate.clock.now()
    return {"effective_date": effective_date(body.intent, now, calendar, anchor)}


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


@router.get("/goals", response_model=GoalConfiguration)
async def get_goals(gate: GateService = Depends(get_gate_service)) -> GoalConfiguration:
    return await gate.current_goals()


@router.post("/goals", response_model=EditDecision)
async def propose_goals(
    proposed: GoalConfiguration,
    gate: GateService = Depends(get_gate_service),
) -> EditDecision:
    return await gate.propose_goal_change(proposed)


@router.get("/schedule", response_model=WeeklyGoalSchedule)
async def get_schedule(gate: GateService = Depends(get_gate_service)) -> WeeklyGoalSchedule:
    return await gate.current_schedule()


@router.put("/schedule/{weekday}", response_model=EditDecision)
async def propose_weekday_goals(
    proposed: GoalConfiguration,
    weekday: int = Path(ge=1, le=7),
    gate: GateService = Depends(get_gate_service),
) -> EditDecision:
    return await gate.propose_weekday_goal_change(weekday, proposed)


@router.get("/goals/pending",response_model=PendingChange | None)
async def get_pending_goals(gate: GateService = Depends(get_gate_service)) -> PendingChange | None:
    return await gate.pending_schedule.get_pending()


@router.delete("/goals/pending", status_code=204)
async def cancel_pending_goals(gate: GateService = Depends(get_gate_service)) -> None:
    await gate.pending_schedule.cancel()


@router.post("/goals/pending/apply")
async def apply_pending(gate: GateService = Depends(get_gate_service)) -> dict[str, bool]:
    return {"applied": await gate.apply_due_changes()}


# ---------------------------------------------------------------------------
# Selection & shields
# ---------------------------------------------------------------------------


@router.get("/selection", response_model=AppSelection)
async def get_selection(gate: GateService = Depends(get_gate_service)) -> AppSelection:
    return await gate.current_selection()


@router.put("/selection", response_model=EditDecision)
async def propose_selection(
    selection: AppSelection,
    gate: GateService = Depends(get_gate_service),
) -> EditDecision:
    return await gate.propose_selection_change(selection)


@router.get("/selection/pending", response_model=PendingChange | None)
async def get_pending_selection(gate: GateService = Depends(get_gate_service)) -> PendingChange | None:
    return await gate.pending_selection.get_pending()


@router.delete("/selection/pending", status_code=204)
async def cancel_pending_selection(gate: GateService = Depends(get_gate_service)) -> None:
    await gate.pending_selection.cancel()


@router.post("/shields")
async def update_shields(
    body: ShieldsRequest,
    gate: GateService = Depends(get_gate_service),
) -> dict[str, bool]:
    await gate.shields.update_shields(body.should_block)
    return {"blocking": gate.shields.is_blocking}


# ---------------------------------------------------------------------------
# Unlock schedule & triggers
# ---------------------------------------------------------------------------


@router.put("/unlock-schedule")
async def schedule_unlock(
    body: UnlockScheduleRequest,
    gate: GateService = Depends(get_gate_service),
) -> dict:
    window = await gate.registry.schedule_daily_unlock(body.minute_of_day)
    return {
        "start": f"{window.start_hour:02d}:{window.start_minute:02d}",
        "end": f"{window.end_hour:02d}:{window.end_minute:02d}",
        "repeats": window.repeats,
    }


@router.delete("/unlock-schedule", status_code=204)
async def cancel_unlock(gate: GateService = Depends(get_gate_service)) -> None:
    await gate.registry.cancel_daily_unlock()


@router.post("/triggers/{identifier}")
async def fire_trigger(
    identifier: str,
    gate: GateService = Depends(get_gate_service),
) -> dict:
    return {"identifier": identifier, "matched": await gate.handle_wakeup(identifier)}


@router.post("/shields/authorize", status_code=204)
async def authorize_shields(gate: GateService = Depends(get_gate_service)) -> None:
    await gate.shields.request_authorization()

"""Wiring of the gate service for the HTTP app.

The platform capabilities (app blocking, OS timers) live outside this
process; the in-memory implementations stand in until an integrator swaps
them through `app.state.gate` or a dependency override.
"""

from __future__ import annotations

from fastapi import Request

from app.config import Settings, settings
from app.db import async_session
from app.gate.calendar import Calendar, SystemClock
from app.gate.deferral import AnchorKind, AnchorPolicy
from app.gate.schedule import InMemoryScheduler, UnlockScheduleRegistry
from app.gate.service import GateService
from app.gate.shields import InMemoryBlocker, ShieldController
from app.gate.storage import SqlKeyValueStore


def anchor_policy(kind: AnchorKind | str, anchor_weekday: int | None = None) -> AnchorPolicy:
    kind = AnchorKind(kind)
    if kind is AnchorKind.weekly:
        return AnchorPolicy.weekly(anchor_weekday)
    return AnchorPolicy.daily()


def build_gate_service(cfg: Settings = settings) -> GateService:
    store = SqlKeyValueStore(async_session)
    shields = ShieldController(InMemoryBlocker(authorized=False), store)
    return GateService(
        store=store,
        clock=SystemClock(),
        calendar=Calendar(cfg.default_tz),
        shields=shields,
        registry=UnlockScheduleRegistry(InMemoryScheduler(), shields),
        goal_anchor=anchor_policy(cfg.deferral_policy, cfg.deferral_anchor_weekday),
        selection_anchor=anchor_policy(cfg.selection_deferral_policy, cfg.deferral_anchor_weekday),
    )


def get_gate_service(request: Request) -> GateService:
    gate = getattr(request.app.state, "gate", None)
    if gate is None:
        gate = build_gate_service()
        request.app.state.gate = gate
    return gate

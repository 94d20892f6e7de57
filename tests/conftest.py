"""Shared fixtures for the test suite."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from app.gate.calendar import Calendar, FixedClock
from app.gate.deferral import AnchorPolicy
from app.gate.deps import get_gate_service
from app.gate.schedule import InMemoryScheduler, UnlockScheduleRegistry
from app.gate.service import GateService
from app.gate.shields import InMemoryBlocker, ShieldController
from app.gate.storage import InMemoryKeyValueStore
from app.main import app

TZ = "America/New_York"


def local(*args: int) -> datetime:
    """Aware datetime in the test calendar's timezone."""
    return datetime(*args, tzinfo=ZoneInfo(TZ))


# ---------------------------------------------------------------------------
# Fake DB session (no real Postgres needed)
# ---------------------------------------------------------------------------

class FakeResult:
    def __init__(self, row: tuple[Any, ...] | None):
        self._row = row

    def fetchone(self):
        return self._row


class FakeSession:
    """Minimal stand-in for AsyncSession used by SqlKeyValueStore tests."""

    def __init__(self, rows: dict[str, str] | None = None, fail_on: str | None = None):
        self.rows = rows or {}
        self.fail_on = fail_on
        self.executed: list[tuple[str, dict[str, Any]]] = []
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, stmt, params=None):
        sql = str(stmt)
        params = params or {}
        if self.fail_on is not None and self.fail_on in sql:
            raise SQLAlchemyError("boom")
        self.executed.append((sql, params))
        if sql.startswith("SELECT"):
            value = self.rows.get(params["key"])
            return FakeResult(None if value is None else (value,))
        return FakeResult(None)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def clock():
    # Tuesday 17 Feb 2026, 15:30 local
    return FixedClock(local(2026, 2, 17, 15, 30))


@pytest.fixture()
def calendar():
    return Calendar(TZ)


@pytest.fixture()
def store():
    return InMemoryKeyValueStore()


@pytest.fixture()
def blocker():
    return InMemoryBlocker(authorized=True)


@pytest.fixture()
def triggers():
    return asyncio.Queue()


@pytest.fixture()
def scheduler(triggers):
    return InMemoryScheduler(triggers)


@pytest.fixture()
def shields(blocker, store):
    return ShieldController(blocker, store)


@pytest.fixture()
def registry(scheduler, shields):
    return UnlockScheduleRegistry(scheduler, shields)


@pytest.fixture()
def gate(store, clock, calendar, shields, registry):
    return GateService(
        store=store,
        clock=clock,
        calendar=calendar,
        shields=shields,
        registry=registry,
        goal_anchor=AnchorPolicy.daily(),
        selection_anchor=AnchorPolicy.daily(),
    )


@pytest.fixture()
def override_gate(gate):
    """Override the FastAPI dependency so no real DB or platform is needed."""
    app.dependency_overrides[get_gate_service] = lambda: gate
    yield gate
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_gate):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

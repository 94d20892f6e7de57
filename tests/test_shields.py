"""Tests for ShieldController."""

from __future__ import annotations

import pytest

from app.gate.errors import AuthorizationError
from app.gate.models import AppSelection
from app.gate.shields import SELECTION_KEY, InMemoryBlocker, ShieldController

SOCIAL = AppSelection(applications=frozenset({"app.social", "app.video"}), categories=frozenset({"games"}))


class TestSelection:
    @pytest.mark.asyncio
    async def test_empty_by_default(self, shields):
        selection = await shields.get_selection()
        assert selection.is_empty

    @pytest.mark.asyncio
    async def test_roundtrip_through_store(self, shields, store):
        await shields.set_selection(SOCIAL)
        assert SELECTION_KEY in store.data
        assert await shields.get_selection() == SOCIAL

    @pytest.mark.asyncio
    async def test_read_failure_reports_empty(self, shields, store):
        await shields.set_selection(SOCIAL)
        store.fail_reads = True
        assert (await shields.get_selection()).is_empty

    @pytest.mark.asyncio
    async def test_unreadable_blob_reports_empty(self, shields, store):
        store.data[SELECTION_KEY] = "{broken"
        assert (await shields.get_selection()).is_empty


class TestUpdateShields:
    @pytest.mark.asyncio
    async def test_requires_authorization(self, store):
        controller = ShieldController(InMemoryBlocker(authorized=False), store)
        with pytest.raises(AuthorizationError):
            await controller.update_shields(True)

    @pytest.mark.asyncio
    async def test_block_applies_selection(self, shields, blocker):
        await shields.set_selection(SOCIAL)
        await shields.update_shields(True)
        assert blocker.shielded == SOCIAL
        assert shields.is_blocking is True

    @pytest.mark.asyncio
    async def test_unblock_clears(self, shields, blocker):
        await shields.set_selection(SOCIAL)
        await shields.update_shields(True)
        await shields.update_shields(False)
        assert blocker.shielded is None
        assert shields.is_blocking is False

    @pytest.mark.asyncio
    async def test_block_with_empty_selection_clears(self, shields, blocker):
        await shields.update_shields(True)
        assert blocker.shielded is None
        assert blocker.calls == ["clear"]

    @pytest.mark.asyncio
    async def test_repeated_block_is_idempotent(self, shields, blocker):
        await shields.set_selection(SOCIAL)
        for _ in range(3):
            await shields.update_shields(True)
        assert blocker.shielded == SOCIAL
        assert set(blocker.calls) == {"apply"}
        assert shields.is_blocking is True


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_request_grants(self, store):
        blocker = InMemoryBlocker(authorized=False)
        controller = ShieldController(blocker, store)
        await controller.request_authorization()
        assert blocker.is_authorized

    @pytest.mark.asyncio
    async def test_request_denied(self, store):
        controller = ShieldController(InMemoryBlocker(authorized=False, grant_on_request=False), store)
        with pytest.raises(AuthorizationError):
            await controller.request_authorization()

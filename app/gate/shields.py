"""Shield management on top of an injected blocking capability."""

from __future__ import annotations

import asyncio
from typing import Protocol

from loguru import logger
from pydantic import ValidationError

from app.gate.errors import AuthorizationError, PersistenceError
from app.gate.models import AppSelection
from app.gate.storage import KeyValueStore

SELECTION_KEY = "familyActivitySelection"


class BlockingCapability(Protocol):
    """Platform app-blocking primitive."""

    @property
    def is_authorized(self) -> bool: ...

    async def request_authorization(self) -> bool: ...

    async def apply(self, selection: AppSelection) -> None: ...

    async def clear(self) -> None: ...


class InMemoryBlocker:
    """Records shield state instead of touching a platform API."""

    def __init__(self, authorized: bool = True, grant_on_request: bool = True):
        self.authorized = authorized
        self.grant_on_request = grant_on_request
        self.shielded: AppSelection | None = None
        self.calls: list[str] = []

    @property
    def is_authorized(self) -> bool:
        return self.authorized

    async def request_authorization(self) -> bool:
        self.authorized = self.authorized or self.grant_on_request
        return self.authorized

    async def apply(self, selection: AppSelection) -> None:
        self.calls.append("apply")
        self.shielded = selection

    async def clear(self) -> None:
        self.calls.append("clear")
        self.shielded = None


class ShieldController:
    """Applies or clears shields for the stored selection.

    Serialized with its own lock. Repeating a call with the same desired state
    re-issues the same capability call and nothing else, so it is idempotent.
    """

    def __init__(self, blocker: BlockingCapability, store: KeyValueStore, selection_key: str = SELECTION_KEY):
        self._blocker = blocker
        self._store = store
        self._lock = asyncio.Lock()
        self.selection_key = selection_key
        self.is_blocking = False

    async def request_authorization(self) -> None:
        async with self._lock:
            if not await self._blocker.request_authorization():
                raise AuthorizationError("Blocking authorization was denied")

    async def _load_selection(self) -> AppSelection:
        raw = await self._store.get(self.selection_key)
        if raw is None:
            return AppSelection()
        try:
            return AppSelection.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Unreadable selection under {self.selection_key!r}, using empty selection")
            return AppSelection()

    async def update_shields(self, should_block: bool) -> None:
        async with self._lock:
            if not self._blocker.is_authorized:
                raise AuthorizationError("Blocking capability has not been authorized")
            selection = await self._load_selection()
            if should_block and not selection.is_empty:
                await self._blocker.apply(selection)
                self.is_blocking = True
            else:
                await self._blocker.clear()
                self.is_blocking = False
        logger.info(f"Shields {'applied' if self.is_blocking else 'cleared'}")

    async def set_selection(self, selection: AppSelection) -> None:
        async with self._lock:
            await self._store.set(self.selection_key, selection.model_dump_json())
        logger.info(
            f"Stored selection: {len(selection.applications)} apps, "
            f"{len(selection.categories)} categories"
        )

    async def get_selection(self) -> AppSelection:
        async with self._lock:
            try:
                return await self._load_selection()
            except PersistenceError:
                logger.warning("Selection read failed, reporting empty selection")
                return AppSelection()

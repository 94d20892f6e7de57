"""Single-slot store for a queued change and the date it becomes effective.

One slot only: `set_pending` replaces whatever was queued (last write wins).
All operations go through one `asyncio.Lock`, so a background wake-up can never
apply a change that a foreground `cancel` or `set_pending` just replaced.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any, Callable, Mapping

from loguru import logger
from pydantic import ValidationError

from app.gate.models import PendingChange
from app.gate.storage import KeyValueStore


CommitExtras = Callable[[dict[str, Any], datetime], Mapping[str, str]]


class PendingChangeStore:
    """`commit_extras` returns additional keys written in the same batch as a commit."""

    def __init__(
        self,
        store: KeyValueStore,
        pending_key: str,
        active_key: str,
        commit_extras: CommitExtras | None = None,
    ):
        self._store = store
        self.lock = asyncio.Lock()
        self.pending_key = pending_key
        self.active_key = active_key
        self._commit_extras = commit_extras

    async def _read(self) -> PendingChange | None:
        raw = await self._store.get(self.pending_key)
        if raw is None:
            return None
        try:
            return PendingChange.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Discarding unreadable pending change under {self.pending_key!r}")
            return None

    async def set_pending(self, payload: dict[str, Any], effective_date: datetime) -> PendingChange:
        change = PendingChange(payload=payload, effective_date=effective_date)
        async with self.lock:
            await self._store.set(self.pending_key, change.model_dump_json())
        logger.info(f"Queued change for {self.active_key!r}, effective {effective_date.isoformat()}")
        return change

    async def get_pending(self) -> PendingChange | None:
        async with self.lock:
            return await self._read()

    async def apply_if_ready(self, now: datetime) -> bool:
        """Commit the queued payload if due. True exactly once per queued change."""
        async with self.lock:
            change = await self._read()
            if change is None:
                return False
            if change.effective_date > now:
                logger.debug(
                    f"Pending change for {self.active_key!r} not due until "
                    f"{change.effective_date.isoformat()}"
                )
                return False
            updates = {self.active_key: json.dumps(change.payload)}
            if self._commit_extras is not None:
                updates.update(self._commit_extras(change.payload, now))
            await self._store.write_batch(
                updates,
                [self.pending_key],
            )
        logger.info(f"Applied pending change to {self.active_key!r}")
        return True

    async def cancel(self) -> None:
        async with self.lock:
            await self._store.delete(self.pending_key)
        logger.info(f"Cancelled pending change for {self.active_key!r}")

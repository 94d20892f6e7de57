"""Key-value persistence capability.

Two implementations: an in-memory dict (tests, previews) and a SQLAlchemy
async store on the `gate_kv` table. Both honour `write_batch` as a single
atomic unit so a commit and a slot clear are never observed half-done.
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.gate.errors import PersistenceError


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def write_batch(
        self,
        updates: Mapping[str, str],
        deletes: Sequence[str] = (),
    ) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store. `fail_reads` / `fail_writes` simulate a broken backend."""

    def __init__(self, data: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(data or {})
        self.fail_reads = False
        self.fail_writes = False

    async def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise PersistenceError(f"read failed for {key!r}")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        await self.write_batch({key: value})

    async def delete(self, key: str) -> None:
        await self.write_batch({}, [key])

    async def write_batch(
        self,
        updates: Mapping[str, str],
        deletes: Sequence[str] = (),
    ) -> None:
        if self.fail_writes:
            raise PersistenceError(f"write failed for {sorted([*updates, *deletes])}")
        self.data.update(updates)
        for key in deletes:
            self.data.pop(key, None)


_SELECT = "SELECT value FROM gate_kv WHERE key = :key"
_UPSERT = (
    "INSERT INTO gate_kv (key, value, updated_at) "
    "VALUES (:key, :value, CURRENT_TIMESTAMP) "
    "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at"
)
_DELETE = "DELETE FROM gate_kv WHERE key = :key"


class SqlKeyValueStore:
    """`gate_kv` table (key TEXT PRIMARY KEY, value TEXT, updated_at TIMESTAMP).

    Every batch runs in one transaction; any SQLAlchemy failure is rolled back
    and surfaced as PersistenceError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(text(_SELECT), {"key": key})
                row = result.fetchone()
        except SQLAlchemyError as exc:
            logger.warning(f"gate_kv read failed for {key!r}: {exc}")
            raise PersistenceError(f"read failed for {key!r}") from exc
        if row is None:
            return None
        return row[0]

    async def set(self, key: str, value: str) -> None:
        await self.write_batch({key: value})

    async def delete(self, key: str) -> None:
        await self.write_batch({}, [key])

    async def write_batch(
        self,
        updates: Mapping[str, str],
        deletes: Sequence[str] = (),
    ) -> None:
        keys = sorted([*updates, *deletes])
        try:
            async with self._session_factory() as session:
                try:
                    for key, value in updates.items():
                        await session.execute(text(_UPSERT), {"key": key, "value": value})
                    for key in deletes:
                        await session.execute(text(_DELETE), {"key": key})
                    await session.commit()
                except SQLAlchemyError:
                    await session.rollback()
                    raise
        except SQLAlchemyError as exc:
            logger.warning(f"gate_kv write failed for {keys}: {exc}")
            raise PersistenceError(f"write failed for {keys}") from exc

"""
asyncio facade for Store.

Operations are queued on the store's worker exactly as the blocking API
queues them, so ordering and atomicity are shared between sync and
async callers. Awaiting never blocks the event loop.

Cancelling an awaiting task does not cancel an operation the worker
has already started.
"""

import asyncio
from typing import Any, Generic, Iterable, Optional, TypeVar

from .store import Store
from .types import Record

T = TypeVar("T")


class AsyncStore(Generic[T]):
    """Awaitable wrapper around a Store."""

    def __init__(self, store: Store[T]):
        self._store = store

    @property
    def store(self) -> Store[T]:
        return self._store

    async def _call(self, fn, *args: Any) -> Any:
        return await asyncio.wrap_future(self._store._submit(fn, *args))

    async def insert(
        self,
        records: Iterable[Record[T]],
        deleting_old_items_from_group: Optional[str] = None,
    ) -> None:
        await self._call(self._store._insert, list(records), deleting_old_items_from_group)

    async def delete_records(
        self,
        ids: Iterable[str] = (),
        *,
        groups: Iterable[str] = (),
    ) -> int:
        return await self._call(self._store._delete, list(ids), list(groups))

    async def delete_oldest_records(self, keep: int) -> int:
        return await self._call(self._store._delete_oldest, keep)

    async def record(self, id: str) -> Optional[Record[T]]:
        return await self._call(self._store._get, id)

    async def full_text_search(self, query: str, limit: Optional[int] = None) -> list[Record[T]]:
        return await self._call(self._store._full_text_search, query, limit)

    async def embedding_search(self, query: str, limit: Optional[int] = None) -> list[Record[T]]:
        return await self._call(self._store._embedding_search, query, limit)

    async def count(self) -> int:
        return await self._call(self._store._count)

    async def ids(self) -> list[str]:
        return await self._call(self._store._ids)

    async def save(self) -> None:
        """Flush to the backing location; returns once the snapshot is durable."""
        await self._call(self._store._save)

    async def close(self, save: bool = True) -> None:
        # close() waits on the worker, so run it off the event loop
        await asyncio.to_thread(self._store.close, save)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close(save=exc_type is None)
        return False

"""
Async Storage Backend Module

Provides the async storage interface used by the ledger engine and an adapter
that runs a synchronous backend (in-memory or SQLite) in worker threads.
All monetary values stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from pathlib import Path
from contextlib import asynccontextmanager
import asyncio

from .storage import StorageInterface, InMemoryStorage, create_storage


class AsyncStorageInterface(ABC):
    """Abstract interface for async storage backends"""

    @abstractmethod
    async def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a record and return its id"""
        pass

    @abstractmethod
    async def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    async def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    async def update(self, table: str, record_id: int, data: Dict[str, Any]) -> int:
        """Replace a record, returning the number of affected rows"""
        pass

    @abstractmethod
    async def delete(self, table: str, record_id: int) -> int:
        """Delete a record, returning the number of affected rows"""
        pass

    @abstractmethod
    async def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    async def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    async def close(self) -> None:
        """Close storage connection (default no-op)"""
        pass

    async def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    async def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    async def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @asynccontextmanager
    async def atomic(self):
        """Context manager for atomic operations"""
        await self.begin_transaction()
        try:
            yield
            await self.commit()
        except Exception:
            await self.rollback()
            raise


class AsyncStorageAdapter(AsyncStorageInterface):
    """
    Async wrapper around a synchronous StorageInterface.

    Calls are serialized through one lock and executed with asyncio.to_thread.
    Inside ``atomic()`` the owning task holds the lock for the whole scope, so
    no other task can interleave writes with an open transaction; calls made by
    the owner itself pass straight through.
    """

    def __init__(self, sync_storage: Optional[StorageInterface] = None):
        self._sync_storage = sync_storage if sync_storage is not None else InMemoryStorage()
        self._lock = asyncio.Lock()
        self._tx_owner = None

    @property
    def sync_storage(self) -> StorageInterface:
        return self._sync_storage

    def _owns_transaction(self) -> bool:
        return self._tx_owner is not None and self._tx_owner is asyncio.current_task()

    async def _run(self, func, *args):
        if self._owns_transaction():
            return await asyncio.to_thread(func, *args)
        async with self._lock:
            # Run sync operation in thread pool to avoid blocking
            return await asyncio.to_thread(func, *args)

    async def insert(self, table: str, data: Dict[str, Any]) -> int:
        return await self._run(self._sync_storage.insert, table, data)

    async def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        return await self._run(self._sync_storage.load, table, record_id)

    async def load_all(self, table: str) -> List[Dict[str, Any]]:
        return await self._run(self._sync_storage.load_all, table)

    async def update(self, table: str, record_id: int, data: Dict[str, Any]) -> int:
        return await self._run(self._sync_storage.update, table, record_id, data)

    async def delete(self, table: str, record_id: int) -> int:
        return await self._run(self._sync_storage.delete, table, record_id)

    async def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self._run(self._sync_storage.find, table, filters)

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return await self._run(self._sync_storage.count, table, filters)

    async def clear_table(self, table: str) -> None:
        await self._run(self._sync_storage.clear_table, table)

    async def close(self) -> None:
        """Close storage connection"""
        await self._run(self._sync_storage.close)

    @asynccontextmanager
    async def atomic(self):
        """
        Run the enclosed operations as one transaction.

        Nested scopes opened by the owning task join the outer transaction.
        """
        if self._owns_transaction():
            yield
            return

        async with self._lock:
            self._tx_owner = asyncio.current_task()
            try:
                await asyncio.to_thread(self._sync_storage.begin_transaction)
                try:
                    yield
                except BaseException:
                    await asyncio.to_thread(self._sync_storage.rollback)
                    raise
                await asyncio.to_thread(self._sync_storage.commit)
            finally:
                self._tx_owner = None


def create_async_storage(
    backend: str = "memory",
    database_path: Union[str, Path] = ":memory:"
) -> AsyncStorageInterface:
    """Factory function to create async storage instances"""
    return AsyncStorageAdapter(create_storage(backend, database_path))

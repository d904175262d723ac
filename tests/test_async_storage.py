"""
Tests for Async Storage Interface

Tests the async adapter over both synchronous backends: CRUD operations,
transactions, and exclusive access for the task that owns a transaction.
"""

import pytest
import pytest_asyncio
import asyncio

from loan_ledger.async_storage import AsyncStorageAdapter, create_async_storage
from loan_ledger.storage import InMemoryStorage, SQLiteStorage


class TestAsyncStorageAdapter:
    """Test AsyncStorageAdapter functionality"""

    @pytest_asyncio.fixture(params=["memory", "sqlite"])
    async def storage(self, request, tmp_path):
        """Create the adapter over each sync backend"""
        if request.param == "memory":
            adapter = AsyncStorageAdapter(InMemoryStorage())
        else:
            adapter = AsyncStorageAdapter(SQLiteStorage(tmp_path / "async.db"))
        yield adapter
        await adapter.close()

    @pytest.mark.asyncio
    async def test_basic_crud_operations(self, storage):
        """Test basic CRUD operations"""
        record_id = await storage.insert("loans", {"principal": "1000", "is_active": True})

        loaded = await storage.load("loans", record_id)
        assert loaded["principal"] == "1000"

        assert await storage.update("loans", record_id, {"principal": "1000", "is_active": False}) == 1
        assert (await storage.load("loans", record_id))["is_active"] is False

        assert await storage.count("loans") == 1
        assert await storage.count("loans", {"is_active": True}) == 0
        assert len(await storage.find("loans", {"is_active": False})) == 1
        assert len(await storage.load_all("loans")) == 1

        assert await storage.delete("loans", record_id) == 1
        assert await storage.load("loans", record_id) is None

    @pytest.mark.asyncio
    async def test_atomic_context_manager(self, storage):
        """Test atomic commit and rollback"""
        async with storage.atomic():
            committed = await storage.insert("loans", {"status": "active"})
        assert await storage.load("loans", committed) is not None

        with pytest.raises(RuntimeError):
            async with storage.atomic():
                await storage.insert("payments", {"loan_id": committed})
                await storage.update("loans", committed, {"status": "completed"})
                raise RuntimeError("Simulated failure")

        assert await storage.count("payments") == 0
        assert (await storage.load("loans", committed))["status"] == "active"

    @pytest.mark.asyncio
    async def test_nested_atomic_joins_outer_transaction(self, storage):
        with pytest.raises(RuntimeError):
            async with storage.atomic():
                await storage.insert("loans", {"n": 1})
                async with storage.atomic():
                    await storage.insert("loans", {"n": 2})
                raise RuntimeError("outer fails")

        assert await storage.count("loans") == 0

    @pytest.mark.asyncio
    async def test_other_tasks_wait_for_open_transaction(self, storage):
        """Writes from other tasks cannot interleave with an open transaction"""
        order = []
        inside = asyncio.Event()
        release = asyncio.Event()

        async def owner():
            async with storage.atomic():
                await storage.insert("loans", {"who": "owner"})
                order.append("owner-write")
                inside.set()
                await release.wait()
                order.append("owner-commit")

        async def intruder():
            await inside.wait()
            await storage.insert("loans", {"who": "intruder"})
            order.append("intruder-write")

        owner_task = asyncio.create_task(owner())
        intruder_task = asyncio.create_task(intruder())
        await inside.wait()
        await asyncio.sleep(0.05)
        assert "intruder-write" not in order
        release.set()
        await asyncio.gather(owner_task, intruder_task)

        assert order == ["owner-write", "owner-commit", "intruder-write"]
        assert await storage.count("loans") == 2


class TestStorageFactory:
    """Test create_async_storage factory function"""

    @pytest.mark.asyncio
    async def test_create_memory_storage(self):
        storage = create_async_storage("memory")
        assert isinstance(storage, AsyncStorageAdapter)
        assert isinstance(storage.sync_storage, InMemoryStorage)

    @pytest.mark.asyncio
    async def test_create_sqlite_storage(self, tmp_path):
        storage = create_async_storage("sqlite", tmp_path / "factory.db")
        assert isinstance(storage.sync_storage, SQLiteStorage)
        await storage.close()

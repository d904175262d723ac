"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). Rows are JSON documents keyed by an integer id that
the backend assigns. All monetary values are stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from datetime import datetime, timezone
import sqlite3
import json
import threading
from pathlib import Path
from contextlib import contextmanager


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a record and return the id assigned to it"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def update(self, table: str, record_id: int, data: Dict[str, Any]) -> int:
        """Replace a record's data, returning the number of affected rows"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: int) -> int:
        """Delete a record, returning the number of affected rows"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose fields equal every filter value"""
        pass

    @abstractmethod
    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records in table, optionally matching filters"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = threading.RLock()
        self._snapshot = None

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}
            self._sequences[table] = 0

    @staticmethod
    def _copy(data):
        # Deep copy to prevent external mutation
        return json.loads(json.dumps(data, default=str))

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a record into memory"""
        with self._lock:
            self._ensure_table(table)
            self._sequences[table] += 1
            record_id = self._sequences[table]
            record = self._copy(data)
            record['id'] = record_id
            self._data[table][record_id] = record
            return record_id

    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record:
                return self._copy(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [self._copy(record) for record in self._data[table].values()]

    def update(self, table: str, record_id: int, data: Dict[str, Any]) -> int:
        """Replace a record in memory"""
        with self._lock:
            self._ensure_table(table)
            if record_id not in self._data[table]:
                return 0
            record = self._copy(data)
            record['id'] = record_id
            self._data[table][record_id] = record
            return 1

    def delete(self, table: str, record_id: int) -> int:
        """Delete a record from memory"""
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                del self._data[table][record_id]
                return 1
            return 0

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            return [
                self._copy(record) for record in self._data[table].values()
                if _matches(record, filters)
            ]

    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            if not filters:
                return len(self._data[table])
            return sum(1 for record in self._data[table].values() if _matches(record, filters))

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._data[table] = {}
            self._sequences[table] = 0

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def begin_transaction(self) -> None:
        """Snapshot current state so a rollback can restore it"""
        with self._lock:
            if self._snapshot is None:
                self._snapshot = (self._copy(self._data), dict(self._sequences))

    def commit(self) -> None:
        """Discard the snapshot"""
        with self._lock:
            self._snapshot = None

    def rollback(self) -> None:
        """Restore the snapshot taken at begin_transaction"""
        with self._lock:
            if self._snapshot is not None:
                data, sequences = self._snapshot
                # JSON round-trip turned integer keys into strings
                self._data = {
                    table: {int(key): record for key, record in rows.items()}
                    for table, rows in data.items()
                }
                self._sequences = sequences
                self._snapshot = None


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # Set isolation_level to 'DEFERRED' to enable manual transaction control
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False
        self._tables = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            # Create index on timestamps for better query performance
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            # Only commit if not in transaction
            if not self._in_transaction:
                self._connection.commit()
            self._tables.add(table)

    def _commit_unless_in_transaction(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    @staticmethod
    def _row_to_record(row) -> Dict[str, Any]:
        record = json.loads(row['data'])
        record['id'] = row['id']
        return record

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a record into SQLite"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            payload = {key: value for key, value in data.items() if key != 'id'}
            cursor = self._connection.execute(f"""
                INSERT INTO {table} (data, created_at, updated_at) VALUES (?, ?, ?)
            """, (json.dumps(payload, default=str), now, now))
            self._commit_unless_in_transaction()
            return cursor.lastrowid

    def load(self, table: str, record_id: int) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT id, data FROM {table} WHERE id = ?
            """, (record_id,))
            row = cursor.fetchone()
            if row:
                return self._row_to_record(row)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT id, data FROM {table} ORDER BY id
            """)
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def update(self, table: str, record_id: int, data: Dict[str, Any]) -> int:
        """Replace a record's data in SQLite"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            payload = {key: value for key, value in data.items() if key != 'id'}
            cursor = self._connection.execute(f"""
                UPDATE {table} SET data = ?, updated_at = ? WHERE id = ?
            """, (json.dumps(payload, default=str), now, record_id))
            self._commit_unless_in_transaction()
            return cursor.rowcount

    def delete(self, table: str, record_id: int) -> int:
        """Delete a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                DELETE FROM {table} WHERE id = ?
            """, (record_id,))
            self._commit_unless_in_transaction()
            return cursor.rowcount

    def _where(self, filters: Dict[str, Any]):
        conditions = []
        params = []
        for key, value in filters.items():
            if key == 'id':
                conditions.append("id = ?")
            else:
                conditions.append("json_extract(data, ?) = ?")
                params.append(f"$.{key}")
            params.append(value)
        return " AND ".join(conditions), params

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using json_extract"""
        with self._lock:
            self._ensure_table(table)
            if not filters:
                return self.load_all(table)
            where_clause, params = self._where(filters)
            cursor = self._connection.execute(f"""
                SELECT id, data FROM {table}
                WHERE {where_clause}
                ORDER BY id
            """, params)
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            if not filters:
                cursor = self._connection.execute(f"""
                    SELECT COUNT(*) as count FROM {table}
                """)
            else:
                where_clause, params = self._where(filters)
                cursor = self._connection.execute(f"""
                    SELECT COUNT(*) as count FROM {table} WHERE {where_clause}
                """, params)
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")
            self._commit_unless_in_transaction()

    def begin_transaction(self) -> None:
        """Start a database transaction"""
        with self._lock:
            if not self._in_transaction:
                # SQLite with isolation_level='DEFERRED' automatically starts transactions
                # We just need to track the state
                self._in_transaction = True

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False
                # Tables created inside the transaction are gone as well
                self._tables.clear()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(backend: str = "sqlite", database_path: Union[str, Path] = ":memory:") -> StorageInterface:
    """Build a storage backend by name ("sqlite" or "memory")"""
    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(database_path)
    raise ValueError(f"Unknown storage backend: {backend}")

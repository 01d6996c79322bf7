"""
SQLite Document Store for SuperSteaks.

Stores every collection in a single `documents` table with:
- JSON document bodies queried through json_extract()
- A version token per row for optimistic transactions
- Commits validated and applied inside BEGIN IMMEDIATE
- Concurrent read access via WAL mode

This is the SQLite implementation of the DocumentStoreInterface.
"""

import sqlite3
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Iterator, List, Dict, Any, Tuple
import threading

from .base import (
    DocumentStoreInterface,
    StoredDocument,
    Transaction,
    check_filters,
    new_version,
)
from .exceptions import QueryError, SchemaError, TransactionConflict


class SQLiteDatabase(DocumentStoreInterface):
    """
    SQLite document store.
    Thread-safe with connection per thread.

    Implements the DocumentStoreInterface abstract base class.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str = "cache/supersteaks.db"):
        """
        Create SQLite store instance.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        """Initialize the database connection and schema."""
        if self._initialized:
            return

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()
        self._initialized = True

    def close(self) -> None:
        """Close this thread's connection."""
        if hasattr(self._local, 'conn') and self._local.conn is not None:
            self._local.conn.close()
            self._local.conn = None

    def health_check(self) -> bool:
        """Check if the database connection is healthy."""
        try:
            conn = self._get_connection()
            conn.execute("SELECT 1")
            return True
        except Exception:
            return False

    # =========================================================================
    # CONNECTION MANAGEMENT
    # =========================================================================

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            # Autocommit mode: transactions are opened explicitly below
            self._local.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=30.0,
                isolation_level=None
            )
            self._local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrent access
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA synchronous=NORMAL")
        return self._local.conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for write transactions.

        BEGIN IMMEDIATE takes the write lock up front, so every commit sees
        a stable view of the rows it validates.
        """
        conn = self._get_connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def _init_schema(self) -> None:
        """Initialize database schema."""
        try:
            with self.transaction() as conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS metadata (
                        key TEXT PRIMARY KEY,
                        value TEXT,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                ''')
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS documents (
                        collection TEXT NOT NULL,
                        id TEXT NOT NULL,
                        version TEXT NOT NULL,
                        data JSON NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (collection, id)
                    )
                ''')
                # Indexes for the allocator's hot queries
                conn.execute('''
                    CREATE INDEX IF NOT EXISTS idx_documents_tournament
                    ON documents(collection, json_extract(data, '$.tournamentId'))
                ''')
                conn.execute('''
                    CREATE INDEX IF NOT EXISTS idx_documents_user
                    ON documents(collection, json_extract(data, '$.userId'))
                ''')
                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                    ('schema_version', str(self.SCHEMA_VERSION))
                )
        except sqlite3.Error as e:
            raise SchemaError(f"Failed to initialize SQLite schema at {self.db_path}: {e}")

    # =========================================================================
    # QUERY HELPERS
    # =========================================================================

    @staticmethod
    def _where(collection: str, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        """Build a WHERE clause for equality filters (fields pre-validated)."""
        clauses = ['collection = ?']
        params: List[Any] = [collection]
        for field, value in filters.items():
            if value is None:
                clauses.append(f"json_extract(data, '$.{field}') IS NULL")
            else:
                clauses.append(f"json_extract(data, '$.{field}') = ?")
                params.append(value)
        return ' AND '.join(clauses), params

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> StoredDocument:
        return StoredDocument(row['id'], row['version'], json.loads(row['data']))

    # =========================================================================
    # DIRECT ACCESS
    # =========================================================================

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._read_document(collection, doc_id)
        return doc.data if doc else None

    def query_documents(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        filters = filters or {}
        check_filters(filters)
        return [d.data for d in self._read_query(collection, filters, limit)]

    def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            with self.transaction() as conn:
                conn.execute('''
                    INSERT OR REPLACE INTO documents (collection, id, version, data)
                    VALUES (?, ?, ?, ?)
                ''', (collection, doc_id, new_version(), json.dumps(data, ensure_ascii=False)))
        except sqlite3.Error as e:
            raise QueryError(f"Failed to write {collection}/{doc_id}: {e}")

    def delete_document(self, collection: str, doc_id: str) -> bool:
        try:
            with self.transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id)
                )
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise QueryError(f"Failed to delete {collection}/{doc_id}: {e}")

    def clear_all(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM documents")

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def commit(self, txn: Transaction) -> None:
        try:
            with self.transaction() as conn:
                conflict = self._find_conflict(txn)
                if conflict:
                    raise TransactionConflict(conflict)

                for w in txn.writes:
                    if w.op == 'update':
                        row = conn.execute(
                            "SELECT data FROM documents WHERE collection = ? AND id = ?",
                            (w.collection, w.doc_id)
                        ).fetchone()
                        data = {**json.loads(row['data']), **w.data}
                    else:
                        data = w.data
                    conn.execute('''
                        INSERT OR REPLACE INTO documents (collection, id, version, data, updated_at)
                        VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
                    ''', (w.collection, w.doc_id, new_version(), json.dumps(data, ensure_ascii=False)))
        except sqlite3.Error as e:
            raise QueryError(f"Commit failed: {e}")

    # =========================================================================
    # BACKEND PRIMITIVES
    # =========================================================================

    def _read_document(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        try:
            row = self._get_connection().execute(
                "SELECT id, version, data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id)
            ).fetchone()
        except sqlite3.Error as e:
            raise QueryError(f"Failed to read {collection}/{doc_id}: {e}")
        return self._row_to_document(row) if row else None

    def _read_query(
        self,
        collection: str,
        filters: Dict[str, Any],
        limit: Optional[int]
    ) -> List[StoredDocument]:
        where, params = self._where(collection, filters)
        sql = f"SELECT id, version, data FROM documents WHERE {where} ORDER BY id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        try:
            rows = self._get_connection().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise QueryError(f"Query on {collection} failed: {e}")
        return [self._row_to_document(row) for row in rows]

    def _read_count(self, collection: str, filters: Dict[str, Any]) -> int:
        where, params = self._where(collection, filters)
        try:
            row = self._get_connection().execute(
                f"SELECT COUNT(*) FROM documents WHERE {where}", params
            ).fetchone()
        except sqlite3.Error as e:
            raise QueryError(f"Count on {collection} failed: {e}")
        return row[0]

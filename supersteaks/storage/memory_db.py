"""
In-memory document store.

Keeps every collection in process memory. Used by the test-suite and for
local development without a database file. Commits are serialized by a
single lock, so validation and writes are atomic with respect to each other.
"""

import copy
import threading
from typing import Optional, List, Dict, Any

from .base import (
    DocumentStoreInterface,
    StoredDocument,
    Transaction,
    check_filters,
    matches_filters,
    new_version,
)
from .exceptions import TransactionConflict


class MemoryDatabase(DocumentStoreInterface):
    """
    Process-local document store.

    Thread-safe: all reads and commits take the same re-entrant lock.
    """

    def __init__(self):
        # collection -> doc_id -> (version, data)
        self._collections: Dict[str, Dict[str, tuple]] = {}
        self._lock = threading.RLock()
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        """Nothing to set up for an in-memory store."""
        self._initialized = True

    def close(self) -> None:
        """Nothing to release; data stays until clear_all()."""
        pass

    def health_check(self) -> bool:
        """Memory store is always available."""
        return True

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
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = (
                new_version(), copy.deepcopy(data)
            )

    def delete_document(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            docs = self._collections.get(collection, {})
            return docs.pop(doc_id, None) is not None

    def clear_all(self) -> None:
        with self._lock:
            self._collections.clear()

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def commit(self, txn: Transaction) -> None:
        with self._lock:
            conflict = self._find_conflict(txn)
            if conflict:
                raise TransactionConflict(conflict)

            for w in txn.writes:
                docs = self._collections.setdefault(w.collection, {})
                if w.op == 'update':
                    _, current = docs[w.doc_id]
                    data = {**current, **copy.deepcopy(w.data)}
                else:
                    data = copy.deepcopy(w.data)
                docs[w.doc_id] = (new_version(), data)

    # =========================================================================
    # BACKEND PRIMITIVES
    # =========================================================================

    def _read_document(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        with self._lock:
            entry = self._collections.get(collection, {}).get(doc_id)
            if entry is None:
                return None
            version, data = entry
            return StoredDocument(doc_id, version, copy.deepcopy(data))

    def _read_query(
        self,
        collection: str,
        filters: Dict[str, Any],
        limit: Optional[int]
    ) -> List[StoredDocument]:
        with self._lock:
            docs = self._collections.get(collection, {})
            result = []
            for doc_id in sorted(docs):
                version, data = docs[doc_id]
                if matches_filters(data, filters):
                    result.append(StoredDocument(doc_id, version, copy.deepcopy(data)))
                    if limit is not None and len(result) >= limit:
                        break
            return result

    def _read_count(self, collection: str, filters: Dict[str, Any]) -> int:
        with self._lock:
            docs = self._collections.get(collection, {})
            return sum(1 for _, data in docs.values() if matches_filters(data, filters))

"""
Abstract base class defining the document store interface.

All store implementations must inherit from this class and implement
all abstract methods. This ensures consistent behavior across backends.

Documents are plain JSON-compatible dicts grouped in named collections.
Every stored document carries an opaque version token that changes on each
write; transactions use these tokens for optimistic concurrency control.
"""

import logging
import random
import re
import time
import uuid
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Callable, Tuple, NamedTuple, TypeVar

from .exceptions import QueryError, TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar('T')

_FIELD_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def new_version() -> str:
    """Generate a fresh version token for a written document."""
    return uuid.uuid4().hex


def check_filters(filters: Dict[str, Any]) -> None:
    """
    Validate equality filters before they reach a backend query.

    Raises:
        QueryError: If a field name or value type is not supported
    """
    for field, value in filters.items():
        if not isinstance(field, str) or not _FIELD_RE.match(field):
            raise QueryError(f"Invalid filter field: {field!r}")
        if value is not None and not isinstance(value, (str, int, float, bool)):
            raise QueryError(f"Unsupported filter value for {field}: {type(value).__name__}")


def matches_filters(data: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    """Check a document against field-equality filters."""
    return all(data.get(field) == value for field, value in filters.items())


class StoredDocument(NamedTuple):
    """A document as read from a backend."""
    id: str
    version: str
    data: Dict[str, Any]


class QueryRead(NamedTuple):
    """A query executed inside a transaction and the results it saw."""
    collection: str
    filters: Dict[str, Any]
    limit: Optional[int]
    result: List[Tuple[str, str]]  # (id, version), ordered by id


class CountRead(NamedTuple):
    """A count executed inside a transaction and the value it saw."""
    collection: str
    filters: Dict[str, Any]
    count: int


class Write(NamedTuple):
    """A buffered transactional write."""
    op: str  # create, set, update
    collection: str
    doc_id: str
    data: Dict[str, Any]


class Transaction:
    """
    A unit of optimistic reads and buffered writes.

    Reads go straight to the committed state of the store and are recorded
    with the versions they observed. Writes are buffered until the store
    commits the transaction. All reads must happen before any write.
    """

    def __init__(self, store: 'DocumentStoreInterface'):
        self._store = store
        self.document_reads: Dict[Tuple[str, str], Optional[str]] = {}
        self.query_reads: List[QueryRead] = []
        self.count_reads: List[CountRead] = []
        self.writes: List[Write] = []
        self.attempt = 1

    def _check_readable(self) -> None:
        if self.writes:
            raise QueryError(
                "Transactions require all reads to be executed before all writes"
            )

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read a document by id. Returns None if it does not exist."""
        self._check_readable()
        doc = self._store._read_document(collection, doc_id)
        self.document_reads[(collection, doc_id)] = doc.version if doc else None
        return doc.data if doc else None

    def query(
        self,
        collection: str,
        filters: Dict[str, Any],
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Read documents matching all field-equality filters, ordered by id."""
        self._check_readable()
        check_filters(filters)
        docs = self._store._read_query(collection, filters, limit)
        self.query_reads.append(QueryRead(
            collection, dict(filters), limit, [(d.id, d.version) for d in docs]
        ))
        return [d.data for d in docs]

    def count(self, collection: str, filters: Dict[str, Any]) -> int:
        """Count documents matching all field-equality filters."""
        self._check_readable()
        check_filters(filters)
        value = self._store._read_count(collection, filters)
        self.count_reads.append(CountRead(collection, dict(filters), value))
        return value

    # =========================================================================
    # WRITES
    # =========================================================================

    def new_id(self) -> str:
        """Generate an id for a document created in this transaction."""
        return uuid.uuid4().hex[:20]

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create a document. The commit conflicts if the id already exists."""
        self.writes.append(Write('create', collection, doc_id, dict(data)))

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or replace a document."""
        self.writes.append(Write('set', collection, doc_id, dict(data)))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge top-level fields into an existing document."""
        self.writes.append(Write('update', collection, doc_id, dict(fields)))


class DocumentStoreInterface(ABC):
    """
    Abstract interface for the transactional document store.

    All methods must be implemented by concrete store classes.
    Implementations must be safe to use from multiple threads.
    """

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the store connection and schema.

        Called once when the store is first created.
        Should be idempotent (safe to call multiple times).
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close connections and clean up resources."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check if the store is reachable.

        Returns:
            True if the store is accessible, False otherwise
        """
        pass

    # =========================================================================
    # DIRECT ACCESS
    # =========================================================================

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read a committed document outside any transaction."""
        pass

    @abstractmethod
    def query_documents(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Read committed documents matching all field-equality filters.

        Args:
            collection: Collection name
            filters: Field -> value equality conditions (AND-combined)
            limit: Maximum number of documents to return

        Returns:
            List of documents, ordered by id
        """
        pass

    @abstractmethod
    def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or replace a document outside any transaction."""
        pass

    @abstractmethod
    def delete_document(self, collection: str, doc_id: str) -> bool:
        """
        Delete a document.

        Returns:
            True if the document existed
        """
        pass

    @abstractmethod
    def clear_all(self) -> None:
        """Delete every document in every collection."""
        pass

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def begin(self) -> Transaction:
        """Start a new transaction."""
        return Transaction(self)

    @abstractmethod
    def commit(self, txn: Transaction) -> None:
        """
        Atomically validate the transaction's reads and apply its writes.

        Raises:
            TransactionConflict: If any document or query result the
                transaction read has changed, or a created id already
                exists. No write is applied in that case.
        """
        pass

    def run_transaction(
        self,
        fn: Callable[[Transaction], T],
        max_attempts: int = 5,
        backoff_seconds: float = 0.0
    ) -> T:
        """
        Run fn inside a transaction, retrying on commit conflicts.

        fn is called with a fresh Transaction on every attempt and must
        derive all of its writes from what it reads through that
        transaction. Exceptions raised by fn abort the attempt and
        propagate without retry.

        Args:
            fn: Transaction body
            max_attempts: Total attempts before giving up
            backoff_seconds: Base delay between attempts (exponential, jittered)

        Returns:
            Whatever fn returned on the attempt that committed

        Raises:
            TransactionConflict: If every attempt conflicted
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_conflict: Optional[TransactionConflict] = None
        for attempt in range(1, max_attempts + 1):
            txn = self.begin()
            txn.attempt = attempt
            result = fn(txn)
            try:
                self.commit(txn)
                return result
            except TransactionConflict as e:
                last_conflict = e
                logger.debug(f"Transaction attempt {attempt}/{max_attempts} conflicted: {e}")
                if attempt < max_attempts and backoff_seconds > 0:
                    time.sleep(random.uniform(0, backoff_seconds * (2 ** (attempt - 1))))

        raise TransactionConflict(
            f"Transaction aborted after {max_attempts} attempts: {last_conflict}"
        )

    # =========================================================================
    # BACKEND PRIMITIVES (used by Transaction)
    # =========================================================================

    @abstractmethod
    def _read_document(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        """Read one committed document with its version."""
        pass

    @abstractmethod
    def _read_query(
        self,
        collection: str,
        filters: Dict[str, Any],
        limit: Optional[int]
    ) -> List[StoredDocument]:
        """Run an equality query against committed state, ordered by id."""
        pass

    @abstractmethod
    def _read_count(self, collection: str, filters: Dict[str, Any]) -> int:
        """Count committed documents matching an equality query."""
        pass

    # =========================================================================
    # COMMIT VALIDATION HELPERS
    # =========================================================================

    def _find_conflict(self, txn: Transaction) -> Optional[str]:
        """
        Re-check every read of txn against the current committed state.

        Must be called while the backend holds whatever lock makes the
        check-then-apply sequence atomic.

        Returns:
            Description of the first conflict found, or None
        """
        for (collection, doc_id), version in txn.document_reads.items():
            doc = self._read_document(collection, doc_id)
            current = doc.version if doc else None
            if current != version:
                return f"{collection}/{doc_id} changed"

        for q in txn.query_reads:
            current = [(d.id, d.version) for d in self._read_query(q.collection, q.filters, q.limit)]
            if current != q.result:
                return f"query on {q.collection} {q.filters} changed"

        for c in txn.count_reads:
            if self._read_count(c.collection, c.filters) != c.count:
                return f"count on {c.collection} {c.filters} changed"

        written = set()
        for w in txn.writes:
            key = (w.collection, w.doc_id)
            if w.op == 'create' and self._read_document(w.collection, w.doc_id) is not None:
                return f"{w.collection}/{w.doc_id} already exists"
            if (w.op == 'update' and key not in written
                    and self._read_document(w.collection, w.doc_id) is None):
                return f"{w.collection}/{w.doc_id} does not exist"
            written.add(key)

        return None

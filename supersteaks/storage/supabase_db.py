"""
Supabase Document Store for SuperSteaks.

Provides PostgreSQL-based cloud storage using Supabase's REST API.
Key differences from SQLite:
- Uses supabase-py client library (REST API)
- Documents live in a jsonb column; equality filters use containment (data @> filters)
- Commits go through the commit_documents() Postgres function, which
  validates the read set and applies the writes in one database transaction
- initialize() verifies tables exist (doesn't create them)

Requires: pip install supabase
Schema must be created first via scripts/supabase_schema.sql
"""

import os
import logging
from typing import Optional, List, Dict, Any

from .base import (
    DocumentStoreInterface,
    StoredDocument,
    Transaction,
    check_filters,
    new_version,
)
from .exceptions import ConfigurationError, ConnectionError, QueryError, TransactionConflict

logger = logging.getLogger(__name__)

TABLE = 'documents'

# SQLSTATE raised by commit_documents() when a read is stale
SERIALIZATION_FAILURE = '40001'


class SupabaseDatabase(DocumentStoreInterface):
    """
    Supabase cloud document store.

    Uses PostgreSQL via Supabase's REST API.
    Implements the DocumentStoreInterface abstract base class.
    """

    def __init__(self):
        """
        Create Supabase store instance.

        Reads configuration from environment variables:
        - SUPABASE_URL: Project URL (e.g., https://your-project.supabase.co)
        - SUPABASE_KEY: Service key (the commit function needs write access)
        """
        self._url = os.environ.get('SUPABASE_URL')
        self._key = os.environ.get('SUPABASE_KEY')
        self._client = None
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        """Initialize the database connection and verify schema."""
        if self._initialized:
            return

        if not self._url:
            raise ConfigurationError(
                "SUPABASE_URL environment variable is required for Supabase backend"
            )
        if not self._key:
            raise ConfigurationError(
                "SUPABASE_KEY environment variable is required for Supabase backend"
            )

        client = self._get_client()
        try:
            client.table(TABLE).select('id').limit(1).execute()
        except Exception as e:
            raise ConnectionError(
                f"Failed to connect to Supabase or schema not initialized. "
                f"Run scripts/supabase_schema.sql in Supabase SQL Editor first. "
                f"Error: {e}"
            )

        self._initialized = True

    def _get_client(self):
        """Get or create Supabase client."""
        if self._client is None:
            try:
                from supabase import create_client
            except ImportError:
                raise ConfigurationError(
                    "supabase package not installed. "
                    "Install with: pip install supabase"
                )

            try:
                self._client = create_client(self._url, self._key)
            except Exception as e:
                raise ConnectionError(f"Failed to create Supabase client: {e}")

        return self._client

    def close(self) -> None:
        """Close database connection (no-op for Supabase REST API)."""
        self._client = None

    def health_check(self) -> bool:
        """Check if the database connection is healthy."""
        try:
            client = self._get_client()
            client.table(TABLE).select('id').limit(1).execute()
            return True
        except Exception:
            return False

    # =========================================================================
    # QUERY HELPERS
    # =========================================================================

    def _select(self, collection: str, filters: Dict[str, Any], columns: str = 'id,version,data', **kwargs):
        """Start a filtered select on the documents table."""
        query = self._get_client().table(TABLE).select(columns, **kwargs).eq('collection', collection)
        if filters:
            query = query.contains('data', filters)
        return query

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
            self._get_client().table(TABLE).upsert(
                {'collection': collection, 'id': doc_id, 'version': new_version(), 'data': data},
                on_conflict='collection,id'
            ).execute()
        except Exception as e:
            raise QueryError(f"Failed to write {collection}/{doc_id}: {e}")

    def delete_document(self, collection: str, doc_id: str) -> bool:
        try:
            response = (
                self._get_client().table(TABLE).delete()
                .eq('collection', collection).eq('id', doc_id).execute()
            )
        except Exception as e:
            raise QueryError(f"Failed to delete {collection}/{doc_id}: {e}")
        return bool(response.data)

    def clear_all(self) -> None:
        # Delete requires a filter via REST
        self._get_client().table(TABLE).delete().neq('collection', '').execute()

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def commit(self, txn: Transaction) -> None:
        params = {
            'p_document_reads': [
                {'collection': collection, 'id': doc_id, 'version': version}
                for (collection, doc_id), version in txn.document_reads.items()
            ],
            'p_query_reads': [
                {
                    'collection': q.collection,
                    'filters': q.filters,
                    'limit': q.limit,
                    'result': [list(pair) for pair in q.result],
                }
                for q in txn.query_reads
            ],
            'p_count_reads': [
                {'collection': c.collection, 'filters': c.filters, 'count': c.count}
                for c in txn.count_reads
            ],
            'p_writes': [
                {'op': w.op, 'collection': w.collection, 'id': w.doc_id, 'data': w.data}
                for w in txn.writes
            ],
        }
        try:
            self._get_client().rpc('commit_documents', params).execute()
        except Exception as e:
            if getattr(e, 'code', None) == SERIALIZATION_FAILURE:
                raise TransactionConflict(getattr(e, 'message', None) or str(e))
            raise QueryError(f"Commit failed: {e}")

    # =========================================================================
    # BACKEND PRIMITIVES
    # =========================================================================

    def _read_document(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        try:
            response = self._select(collection, {}).eq('id', doc_id).limit(1).execute()
        except Exception as e:
            raise QueryError(f"Failed to read {collection}/{doc_id}: {e}")
        if not response.data:
            return None
        row = response.data[0]
        return StoredDocument(row['id'], row['version'], row['data'])

    def _read_query(
        self,
        collection: str,
        filters: Dict[str, Any],
        limit: Optional[int]
    ) -> List[StoredDocument]:
        query = self._select(collection, filters).order('id')
        if limit is not None:
            query = query.limit(limit)
        try:
            response = query.execute()
        except Exception as e:
            raise QueryError(f"Query on {collection} failed: {e}")
        return [StoredDocument(row['id'], row['version'], row['data']) for row in response.data]

    def _read_count(self, collection: str, filters: Dict[str, Any]) -> int:
        try:
            response = self._select(collection, filters, columns='id', count='exact').execute()
        except Exception as e:
            raise QueryError(f"Count on {collection} failed: {e}")
        return response.count or 0

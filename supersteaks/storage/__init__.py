"""
Transactional document storage for SuperSteaks.

Provides a unified interface for multiple backends:
- SQLite (local development, self-hosted)
- Memory (tests)
- Supabase (PostgreSQL, hosted)

Usage:
    from supersteaks.storage import get_database

    db = get_database()  # Uses DB_TYPE env var
    result = db.run_transaction(lambda txn: txn.get('tournaments', 'T1'))
"""

from .base import DocumentStoreInterface, Transaction
from .factory import get_database, reset_database
from .exceptions import (
    DatabaseError,
    ConnectionError,
    ConfigurationError,
    SchemaError,
    QueryError,
    TransactionConflict
)

__all__ = [
    'DocumentStoreInterface',
    'Transaction',
    'get_database',
    'reset_database',
    'DatabaseError',
    'ConnectionError',
    'ConfigurationError',
    'SchemaError',
    'QueryError',
    'TransactionConflict'
]

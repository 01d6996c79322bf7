"""
Factory function to create the appropriate document store implementation.

Reads configuration from environment variables to determine which
backend to use.
"""

import logging
import os
from typing import Optional

from .. import config
from .base import DocumentStoreInterface
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Singleton instance
_db_instance: Optional[DocumentStoreInterface] = None


def get_database() -> DocumentStoreInterface:
    """
    Get or create the document store instance.

    Uses the DB_TYPE environment variable to determine which implementation:
    - "sqlite" (default): Local SQLite database
    - "memory": Process-local store (tests, local development)
    - "supabase": Supabase PostgreSQL database

    Additional environment variables per type:
    - SQLite: DATA_DIR or RAILWAY_VOLUME_MOUNT_PATH, or uses "cache" directory
    - Supabase: SUPABASE_URL, SUPABASE_KEY

    Returns:
        DocumentStoreInterface implementation

    Raises:
        ConfigurationError: If required env vars are missing
    """
    global _db_instance

    if _db_instance is not None:
        return _db_instance

    db_type = config.db_type()
    logger.info(f"[*] Database type: {db_type}")

    if db_type == 'sqlite':
        from .sqlite_db import SQLiteDatabase

        db_path = os.path.join(config.data_dir(), 'supersteaks.db')

        db = SQLiteDatabase(db_path=db_path)

    elif db_type == 'memory':
        from .memory_db import MemoryDatabase
        db = MemoryDatabase()

    elif db_type == 'supabase':
        from .supabase_db import SupabaseDatabase
        db = SupabaseDatabase()

    else:
        raise ConfigurationError(
            f"Unknown DB_TYPE: {db_type}. "
            f"Valid options: sqlite, memory, supabase"
        )

    db.initialize()
    _db_instance = db

    return _db_instance


def reset_database() -> None:
    """
    Reset the store singleton.

    Used for testing or when switching configurations.
    """
    global _db_instance
    if _db_instance is not None:
        _db_instance.close()
        _db_instance = None

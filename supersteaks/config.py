"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

import os


def _get_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


# =============================================================================
# SERVER SETTINGS
# =============================================================================
PORT = _get_int('PORT', 8000)
HOST = _get_str('HOST', '0.0.0.0')

# =============================================================================
# STORAGE SETTINGS
# =============================================================================
# Read at call time so the store factory follows environment changes

def db_type() -> str:
    """Storage backend: sqlite (default), memory, supabase."""
    return _get_str('DB_TYPE', 'sqlite').lower()


def data_dir() -> str:
    """
    Directory holding the SQLite file.

    Priority: DATA_DIR > RAILWAY_VOLUME_MOUNT_PATH > /app/cache (container) > cache (local)
    """
    return (
        os.environ.get('DATA_DIR') or
        os.environ.get('RAILWAY_VOLUME_MOUNT_PATH') or
        ('/app/cache' if os.path.exists('/app') else 'cache')
    )

# =============================================================================
# LOBBY ALLOCATION
# =============================================================================
# Attempts per join before a conflicting transaction is reported as failed
JOIN_MAX_ATTEMPTS = _get_int('JOIN_MAX_ATTEMPTS', 5)

# Base delay between attempts; doubled per attempt with jitter
JOIN_RETRY_BACKOFF_SECONDS = _get_float('JOIN_RETRY_BACKOFF_SECONDS', 0.05)

# Upper bound on a tournament's teamCount (lobby size)
MAX_LOBBY_CAPACITY = _get_int('MAX_LOBBY_CAPACITY', 64)

# Roster used when a tournament record has no teams of its own
DEFAULT_ROSTER = [
    "Arsenal", "Aston Villa", "Bournemouth", "Brentford", "Brighton", "Chelsea",
    "Crystal Palace", "Everton", "Fulham", "Ipswich Town", "Leicester City",
    "Liverpool", "Manchester City", "Manchester United", "Newcastle United",
    "Nottingham Forest", "Southampton", "Tottenham", "West Ham", "Wolverhampton",
    "AC Milan", "Atalanta", "Bologna", "Como", "Fiorentina", "Genoa",
    "Inter Milan", "Juventus", "Napoli", "Olympiacos", "Paris Saint-Germain",
    "Real Madrid", "Sporting CP", "Galatasaray",
]

# =============================================================================
# RATE LIMITING
# =============================================================================
# Join requests allowed per user within the sliding window
JOIN_RATE_LIMIT = _get_int('JOIN_RATE_LIMIT', 10)
JOIN_RATE_WINDOW_SECONDS = _get_int('JOIN_RATE_WINDOW_SECONDS', 60)

# =============================================================================
# CACHE SETTINGS
# =============================================================================
TOURNAMENT_CACHE_TTL_SECONDS = _get_int('TOURNAMENT_CACHE_TTL_SECONDS', 60)

# =============================================================================
# ADMIN
# =============================================================================
# Shared secret for admin endpoints. Empty disables them.
ADMIN_TOKEN = _get_str('ADMIN_TOKEN', '')

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = _get_str('LOG_LEVEL', 'INFO')

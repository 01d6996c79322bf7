"""FastAPI dependencies for dependency injection."""

import hmac
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException

from supersteaks import config
from supersteaks.services.cache import CacheService
from supersteaks.services.lobby_allocator import LobbyAllocator
from supersteaks.services.tournament_service import TournamentService
from supersteaks.services.validation import validate_identifier
from supersteaks.services.visibility_service import VisibilityService
from supersteaks.storage import DocumentStoreInterface, get_database


def get_db() -> DocumentStoreInterface:
    """Get document store dependency."""
    return get_database()


@lru_cache
def get_cache_service() -> CacheService:
    """Get the global cache service instance."""
    return CacheService()


def get_allocator(db: DocumentStoreInterface = Depends(get_db)) -> LobbyAllocator:
    """Get lobby allocator dependency."""
    return LobbyAllocator(db)


def get_tournament_service(db: DocumentStoreInterface = Depends(get_db)) -> TournamentService:
    """Get tournament service dependency."""
    return TournamentService(db, cache=get_cache_service())


def get_visibility_service(db: DocumentStoreInterface = Depends(get_db)) -> VisibilityService:
    """Get visibility service dependency."""
    return VisibilityService(db)


def get_current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Authenticated user id.

    Set by the authenticating gateway in front of this service; requests
    without it are rejected.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="User must be authenticated")
    return validate_identifier(x_user_id, "userId")


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> str:
    """Check the admin shared secret. Returns the acting admin's name."""
    if not config.ADMIN_TOKEN:
        raise HTTPException(status_code=403, detail="Admin API is disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, config.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Invalid admin token")
    return "admin"

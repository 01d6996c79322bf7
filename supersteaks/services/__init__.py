"""Services for the SuperSteaks draw backend."""

from supersteaks.services.cache import CacheService
from supersteaks.services.errors import (
    AllocationError,
    AlreadyAssigned,
    Internal,
    InvalidArgument,
    InvalidConfiguration,
    NotFound,
    Unavailable,
)
from supersteaks.services.lobby_allocator import JoinResult, LobbyAllocator
from supersteaks.services.tournament_service import TournamentService
from supersteaks.services.visibility_service import VisibilityService

__all__ = [
    "CacheService",
    "LobbyAllocator",
    "JoinResult",
    "TournamentService",
    "VisibilityService",
    "AllocationError",
    "AlreadyAssigned",
    "Internal",
    "InvalidArgument",
    "InvalidConfiguration",
    "NotFound",
    "Unavailable",
]

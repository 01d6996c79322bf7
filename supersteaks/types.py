"""
Type definitions for SuperSteaks.

Provides TypedDict classes for API payloads and IDE support.
"""

from typing import TypedDict, Optional, List


class JoinResultDict(TypedDict):
    """Response from a successful join."""
    assignmentId: str
    tournamentId: str
    team: str
    lobbyId: str
    lobbyStatus: str  # open, full
    currentCount: int
    capacity: int


class VisibilityDict(TypedDict, total=False):
    """Teams a user may see within their own lobby."""
    canView: bool
    reason: str  # Only present when canView is False
    tournamentId: str
    lobbyId: str
    userTeam: str
    visibleTeams: List[str]
    totalTeamsInLobby: int


class TournamentSummaryDict(TypedDict, total=False):
    """Public tournament listing entry."""
    id: str
    name: str
    description: str
    rules: str
    teamCount: Optional[int]
    status: str  # active, closed


class AdminResultDict(TypedDict, total=False):
    """Response from admin tournament actions."""
    success: bool
    message: str
    ids: List[str]
    deleted: int


class RateLimitedDict(TypedDict):
    """Response body when a caller is throttled."""
    error: str
    detail: str
    retry_after: int

"""Data models for the SuperSteaks draw backend."""

from supersteaks.models.assignment import Assignment, AssignmentStatus
from supersteaks.models.lobby import Lobby, LobbyStatus, lobby_document_id
from supersteaks.models.tournament import Tournament, TournamentStatus

# Collection names in the document store
TOURNAMENTS = "tournaments"
LOBBIES = "lobbies"
ASSIGNMENTS = "teamAssignments"

__all__ = [
    "Tournament", "TournamentStatus",
    "Lobby", "LobbyStatus", "lobby_document_id",
    "Assignment", "AssignmentStatus",
    "TOURNAMENTS", "LOBBIES", "ASSIGNMENTS",
]

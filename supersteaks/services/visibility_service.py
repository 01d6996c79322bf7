"""
Visibility Service - what a user may see of a tournament's draw.

A user only ever sees the teams of their own lobby; assignments in other
lobbies of the same tournament stay hidden.
"""

import logging
from typing import List

from ..models import ASSIGNMENTS, LOBBIES, Assignment, AssignmentStatus
from ..storage import DocumentStoreInterface
from ..types import VisibilityDict
from .validation import validate_identifier

logger = logging.getLogger(__name__)


class VisibilityService:
    """Read-only queries over assignments and lobbies, scoped to one user."""

    def __init__(self, db: DocumentStoreInterface):
        self.db = db

    def get_user_assignments(self, user_id: str) -> List[Assignment]:
        """Active assignments of a user across all tournaments."""
        validate_identifier(user_id, "userId")
        docs = self.db.query_documents(
            ASSIGNMENTS,
            {"userId": user_id, "status": AssignmentStatus.ACTIVE.value}
        )
        return [Assignment.model_validate(d) for d in docs]

    def get_visible_teams(self, tournament_id: str, user_id: str) -> VisibilityDict:
        """
        Teams visible to user_id in tournament_id.

        Returns:
            canView False with a reason when the user has no assignment or
            the lobby is missing; otherwise the lobby id, the user's own team
            and the sorted teams of that lobby only.
        """
        validate_identifier(tournament_id, "tournamentId")
        validate_identifier(user_id, "userId")

        docs = self.db.query_documents(
            ASSIGNMENTS,
            {
                "userId": user_id,
                "tournamentId": tournament_id,
                "status": AssignmentStatus.ACTIVE.value,
            },
            limit=1
        )
        if not docs:
            return {
                "canView": False,
                "reason": "User not assigned to this tournament",
                "visibleTeams": [],
            }

        assignment = Assignment.model_validate(docs[0])
        lobby = self.db.get_document(LOBBIES, assignment.lobby_id)
        if lobby is None or lobby.get("tournamentId") != tournament_id:
            logger.warning(
                f"Assignment {assignment.id} points at missing lobby {assignment.lobby_id}"
            )
            return {
                "canView": False,
                "reason": "Lobby not found",
                "visibleTeams": [],
            }

        visible = sorted((lobby.get("teams") or {}).values())
        return {
            "canView": True,
            "tournamentId": tournament_id,
            "lobbyId": assignment.lobby_id,
            "userTeam": assignment.team,
            "visibleTeams": visible,
            "totalTeamsInLobby": len(visible),
        }

"""Team assignment data model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AssignmentStatus(str, Enum):
    """Assignment state. Only ACTIVE is written by the allocator."""

    ACTIVE = "active"
    FORFEITED = "forfeited"


class Assignment(BaseModel):
    """
    The durable record binding one user to one team within one lobby.

    Extra fields added by downstream features (e.g. displayName) are kept.
    """

    id: str
    user_id: str = Field(..., alias="userId")
    tournament_id: str = Field(..., alias="tournamentId")
    lobby_id: str = Field(..., alias="lobbyId")
    team: str
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    assigned_at: Optional[datetime] = Field(default=None, alias="assignedAt")

    class Config:
        """Pydantic configuration."""

        populate_by_name = True
        extra = "allow"

    @classmethod
    def new(cls, assignment_id: str, user_id: str, tournament_id: str,
            lobby_id: str, team: str, now: Optional[datetime] = None) -> "Assignment":
        """Create an active assignment."""
        return cls(
            id=assignment_id,
            user_id=user_id,
            tournament_id=tournament_id,
            lobby_id=lobby_id,
            team=team,
            assigned_at=now or datetime.now(timezone.utc),
        )

    def to_document(self) -> dict:
        """Serialize for storage."""
        return self.model_dump(mode="json", by_alias=True)

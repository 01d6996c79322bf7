"""Lobby data model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class LobbyStatus(str, Enum):
    """Lobby fill state. Moves open -> full once and never back."""

    OPEN = "open"
    FULL = "full"


def lobby_document_id(tournament_id: str, sequence: int) -> str:
    """Document id of the sequence-th lobby of a tournament."""
    return f"{tournament_id}_lobby_{sequence}"


class Lobby(BaseModel):
    """A capacity-bounded group of users, each holding a distinct team."""

    id: str
    lobby_id: str = Field(..., alias="lobbyId")
    tournament_id: str = Field(..., alias="tournamentId")
    capacity: int
    current_count: int = Field(default=0, alias="currentCount")
    user_ids: list[str] = Field(default_factory=list, alias="userIds")
    teams: dict[str, str] = {}
    status: LobbyStatus = LobbyStatus.OPEN
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    class Config:
        """Pydantic configuration."""

        populate_by_name = True

    @classmethod
    def new(cls, tournament_id: str, sequence: int, capacity: int,
            now: Optional[datetime] = None) -> "Lobby":
        """Create an empty open lobby."""
        now = now or datetime.now(timezone.utc)
        return cls(
            id=lobby_document_id(tournament_id, sequence),
            lobby_id=f"lobby_{sequence}",
            tournament_id=tournament_id,
            capacity=capacity,
            created_at=now,
            updated_at=now,
        )

    def is_open(self) -> bool:
        return self.status == LobbyStatus.OPEN

    def available_teams(self, roster: list[str]) -> list[str]:
        """Roster teams nobody in this lobby holds yet, in roster order."""
        taken = set(self.teams.values())
        return [team for team in roster if team not in taken]

    def with_member(self, user_id: str, team: str,
                    now: Optional[datetime] = None) -> "Lobby":
        """
        Return a copy of this lobby with one more member.

        Raises:
            ValueError: If the lobby is full, the user is already a member,
                or the team is already taken
        """
        if not self.is_open() or self.current_count >= self.capacity:
            raise ValueError(f"Lobby {self.id} is full")
        if user_id in self.teams:
            raise ValueError(f"User {user_id} is already in lobby {self.id}")
        if team in self.teams.values():
            raise ValueError(f"Team {team} is already taken in lobby {self.id}")

        count = self.current_count + 1
        return self.model_copy(update={
            "current_count": count,
            "user_ids": [*self.user_ids, user_id],
            "teams": {**self.teams, user_id: team},
            "status": LobbyStatus.FULL if count >= self.capacity else LobbyStatus.OPEN,
            "updated_at": now or datetime.now(timezone.utc),
        })

    def to_document(self) -> dict:
        """Serialize for storage."""
        return self.model_dump(mode="json", by_alias=True)

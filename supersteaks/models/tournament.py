"""Tournament data model."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, StrictInt

from supersteaks import config


class TournamentStatus(str, Enum):
    """Tournament lifecycle state."""

    ACTIVE = "active"
    CLOSED = "closed"


class Tournament(BaseModel):
    """A competition with a fixed team roster and per-lobby capacity."""

    id: str
    name: str
    description: str = ""
    rules: str = ""
    teams: list[str] = []
    team_count: Optional[StrictInt] = Field(default=None, alias="teamCount")
    status: TournamentStatus = TournamentStatus.ACTIVE
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    created_by: Optional[str] = Field(default=None, alias="createdBy")

    class Config:
        """Pydantic configuration."""

        populate_by_name = True
        extra = "allow"

    @property
    def roster(self) -> list[str]:
        """Team names eligible for this tournament, falling back to the default list."""
        return list(self.teams) if self.teams else list(config.DEFAULT_ROSTER)

    @property
    def capacity(self) -> Optional[int]:
        """Lobby size: teamCount, or the size of an explicit roster when unset."""
        if self.team_count is not None:
            return self.team_count
        return len(self.teams) if self.teams else None

    def is_active(self) -> bool:
        """Check whether users may still join."""
        return self.status == TournamentStatus.ACTIVE

    def to_document(self) -> dict:
        """Serialize for storage."""
        return self.model_dump(mode="json", by_alias=True)

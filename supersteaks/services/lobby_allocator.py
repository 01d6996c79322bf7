"""
Lobby Allocator - places users into tournament lobbies with a random team.

A join runs as one optimistic transaction against the document store:

1. Load the tournament and check its roster and capacity
2. Reject users who already hold an active assignment in the tournament
3. Take an open lobby, or create the next one if none is open
4. Pick a free team in that lobby at random
5. Write the assignment and the updated lobby together

If another join commits a change to anything read in steps 1-3 first, the
store rejects the commit and the whole body runs again from step 1. That is
what keeps teams unique per lobby and lobbies within capacity.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from .. import config
from ..models import (
    ASSIGNMENTS,
    LOBBIES,
    TOURNAMENTS,
    Assignment,
    AssignmentStatus,
    Lobby,
    LobbyStatus,
    Tournament,
)
from ..storage import DatabaseError, DocumentStoreInterface, Transaction, TransactionConflict
from ..types import JoinResultDict
from .errors import (
    AllocationError,
    AlreadyAssigned,
    Internal,
    InvalidConfiguration,
    NotFound,
    Unavailable,
)
from .validation import validate_capacity, validate_identifier, validate_roster

logger = logging.getLogger(__name__)


@dataclass
class JoinResult:
    """Outcome of a successful join."""

    assignment: Assignment
    lobby: Lobby
    created_lobby: bool
    attempts: int = 1

    def to_dict(self) -> JoinResultDict:
        return {
            "assignmentId": self.assignment.id,
            "tournamentId": self.assignment.tournament_id,
            "team": self.assignment.team,
            "lobbyId": self.lobby.id,
            "lobbyStatus": self.lobby.status.value,
            "currentCount": self.lobby.current_count,
            "capacity": self.lobby.capacity,
        }


def load_tournament(txn: Transaction, tournament_id: str) -> Tournament:
    """
    Read and parse a tournament inside a transaction.

    Raises:
        NotFound: If no such tournament exists
        InvalidConfiguration: If the stored record does not parse
    """
    data = txn.get(TOURNAMENTS, tournament_id)
    if data is None:
        raise NotFound(f"Tournament {tournament_id} not found")
    try:
        return Tournament.model_validate({**data, "id": tournament_id})
    except ValidationError as e:
        raise InvalidConfiguration(f"Tournament {tournament_id} is misconfigured: {e}")


class LobbyAllocator:
    """
    Assigns users to lobbies and teams for a tournament.

    Holds no state of its own between calls; concurrent joins are
    coordinated only through the store's transaction conflicts.
    """

    def __init__(
        self,
        db: DocumentStoreInterface,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Create an allocator.

        Args:
            db: Transactional document store
            max_attempts: Transaction attempts per join (default JOIN_MAX_ATTEMPTS)
            backoff_seconds: Base retry delay (default JOIN_RETRY_BACKOFF_SECONDS)
            rng: Source for team picks. Defaults to the OS entropy source;
                tests may pass a seeded random.Random.
        """
        self.db = db
        self.max_attempts = max_attempts if max_attempts is not None else config.JOIN_MAX_ATTEMPTS
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else config.JOIN_RETRY_BACKOFF_SECONDS
        )
        self.rng = rng or random.SystemRandom()

    def join(self, tournament_id: str, user_id: str) -> JoinResult:
        """
        Give user_id a lobby and a team in tournament_id.

        Args:
            tournament_id: Tournament to join
            user_id: Authenticated user identifier

        Returns:
            JoinResult with the new assignment and the lobby after the join

        Raises:
            InvalidArgument: Malformed identifiers
            NotFound: Unknown tournament
            AlreadyAssigned: User already has a team in this tournament
            Unavailable: Tournament closed or no free team in the lobby
            InvalidConfiguration: Unusable tournament record
            Internal: Store failure or too many conflicting attempts
        """
        validate_identifier(tournament_id, "tournamentId")
        validate_identifier(user_id, "userId")

        try:
            result = self.db.run_transaction(
                lambda txn: self._allocate(txn, tournament_id, user_id),
                max_attempts=self.max_attempts,
                backoff_seconds=self.backoff_seconds
            )
        except AllocationError:
            raise
        except TransactionConflict as e:
            logger.warning(
                f"Join of {user_id} to {tournament_id} gave up after "
                f"{self.max_attempts} conflicting attempts: {e}"
            )
            raise Internal("Too many simultaneous joins, please try again") from e
        except DatabaseError as e:
            logger.exception(f"Store failure while joining {user_id} to {tournament_id}")
            raise Internal("Failed to join tournament") from e

        logger.info(
            f"User {user_id} joined {tournament_id}: team={result.assignment.team} "
            f"lobby={result.lobby.id} ({result.lobby.current_count}/{result.lobby.capacity}) "
            f"attempts={result.attempts}"
        )
        return result

    def _allocate(self, txn: Transaction, tournament_id: str, user_id: str) -> JoinResult:
        """Transaction body: pure function of what txn reads."""
        tournament = load_tournament(txn, tournament_id)
        if not tournament.is_active():
            raise Unavailable(f"Tournament {tournament_id} is closed")

        roster = validate_roster(tournament.roster)
        capacity = validate_capacity(tournament.capacity, roster)

        existing = txn.query(
            ASSIGNMENTS,
            {
                "userId": user_id,
                "tournamentId": tournament_id,
                "status": AssignmentStatus.ACTIVE.value,
            },
            limit=1
        )
        if existing:
            raise AlreadyAssigned("User already assigned in this tournament")

        open_lobbies = txn.query(
            LOBBIES,
            {"tournamentId": tournament_id, "status": LobbyStatus.OPEN.value},
            limit=1
        )
        now = datetime.now(timezone.utc)
        if open_lobbies:
            try:
                lobby = Lobby.model_validate(open_lobbies[0])
            except ValidationError as e:
                raise Internal(f"Corrupt lobby document in {tournament_id}: {e}")
            created = False
        else:
            sequence = txn.count(LOBBIES, {"tournamentId": tournament_id}) + 1
            lobby = Lobby.new(tournament_id, sequence, capacity, now=now)
            created = True

        available = lobby.available_teams(roster)
        if not available:
            raise Unavailable("No teams available in this lobby")

        team = self.rng.choice(available)
        try:
            updated = lobby.with_member(user_id, team, now=now)
        except ValueError as e:
            raise Unavailable(str(e))

        assignment = Assignment.new(
            txn.new_id(), user_id, tournament_id, updated.id, team, now=now
        )

        txn.create(ASSIGNMENTS, assignment.id, assignment.to_document())
        if created:
            txn.create(LOBBIES, updated.id, updated.to_document())
        else:
            txn.set(LOBBIES, updated.id, updated.to_document())

        return JoinResult(assignment, updated, created, attempts=txn.attempt)

"""
Tournament Service - administrative tournament management.

Create, list, update, close and delete tournaments, plus a maintenance
action that retires duplicate assignments left over from before joins were
transactional. Rosters and capacities are frozen once a tournament has
lobbies.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .. import config
from ..models import (
    ASSIGNMENTS,
    LOBBIES,
    TOURNAMENTS,
    AssignmentStatus,
    Tournament,
    TournamentStatus,
)
from ..storage import DocumentStoreInterface, Transaction
from .cache import CacheService
from .errors import InvalidArgument, InvalidConfiguration, NotFound
from .lobby_allocator import load_tournament
from .validation import validate_capacity, validate_identifier, validate_roster

logger = logging.getLogger(__name__)

# Fields an update may touch
UPDATABLE_FIELDS = {"name", "description", "rules", "status", "teams", "teamCount"}

# Fields frozen once the tournament has lobbies
ROSTER_FIELDS = {"teams", "teamCount"}


class TournamentService:
    """Administrative operations on tournaments."""

    def __init__(self, db: DocumentStoreInterface, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache

    def _invalidate(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    @staticmethod
    def _check_definition(data: Dict[str, Any]) -> None:
        """Validate roster and capacity of a tournament definition."""
        teams = data.get("teams") or []
        roster = validate_roster(teams) if teams else list(config.DEFAULT_ROSTER)
        capacity = data.get("teamCount")
        if capacity is None and teams:
            capacity = len(teams)
        validate_capacity(capacity, roster)

    # =========================================================================
    # READS
    # =========================================================================

    def list_tournaments(self, status: Optional[str] = None) -> List[Tournament]:
        """
        List tournaments ordered by name.

        Args:
            status: Optional status filter (active, closed)
        """
        cache_key = f"tournaments:{status or 'all'}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        filters = {"status": status} if status else {}
        tournaments = []
        for doc in self.db.query_documents(TOURNAMENTS, filters):
            try:
                tournaments.append(Tournament.model_validate(doc))
            except ValidationError as e:
                logger.warning(f"Skipping malformed tournament {doc.get('id')}: {e}")
        tournaments.sort(key=lambda t: t.name)

        if self.cache is not None:
            self.cache.set(cache_key, tournaments)
        return tournaments

    def get_tournament(self, tournament_id: str) -> Tournament:
        """
        Get one tournament.

        Raises:
            NotFound: If no such tournament exists
        """
        validate_identifier(tournament_id, "tournamentId")
        doc = self.db.get_document(TOURNAMENTS, tournament_id)
        if doc is None:
            raise NotFound(f"Tournament {tournament_id} not found")
        try:
            return Tournament.model_validate({**doc, "id": tournament_id})
        except ValidationError as e:
            raise InvalidConfiguration(f"Tournament {tournament_id} is misconfigured: {e}")

    # =========================================================================
    # WRITES
    # =========================================================================

    def create_tournaments(self, tournaments: List[Dict[str, Any]], created_by: str) -> List[str]:
        """
        Create tournaments from definitions.

        Each definition needs a name and either teams, teamCount or both;
        an id is generated unless a valid one is supplied.

        Returns:
            Ids of the created tournaments

        Raises:
            InvalidArgument: Malformed definition
            InvalidConfiguration: Roster or teamCount unusable
        """
        if not isinstance(tournaments, list) or not tournaments:
            raise InvalidArgument("tournaments must be a non-empty list")

        now = datetime.now(timezone.utc)
        docs = []
        for data in tournaments:
            if not isinstance(data, dict):
                raise InvalidArgument("Each tournament must be an object")
            name = data.get("name")
            if not isinstance(name, str) or not name.strip():
                raise InvalidArgument("Each tournament needs a name")
            self._check_definition(data)

            tournament_id = data.get("id") or uuid.uuid4().hex[:20]
            validate_identifier(tournament_id, "id")
            try:
                tournament = Tournament.model_validate({
                    **data,
                    "id": tournament_id,
                    "status": TournamentStatus.ACTIVE.value,
                    "createdAt": now,
                    "createdBy": created_by,
                })
            except ValidationError as e:
                raise InvalidArgument(f"Invalid tournament {name}: {e}")
            docs.append(tournament)

        for tournament in docs:
            self.db.put_document(TOURNAMENTS, tournament.id, tournament.to_document())
            logger.info(f"Created tournament {tournament.id} ({tournament.name})")

        self._invalidate()
        return [t.id for t in docs]

    def delete_tournaments_by_name(self, names: List[str]) -> int:
        """
        Delete every tournament whose name is in names.

        Returns:
            Number of tournaments deleted
        """
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise InvalidArgument("names must be a list of tournament names")

        wanted = set(names)
        deleted = 0
        for doc in self.db.query_documents(TOURNAMENTS):
            if doc.get("name") in wanted and self.db.delete_document(TOURNAMENTS, doc["id"]):
                deleted += 1
                logger.info(f"Deleted tournament {doc['id']} ({doc.get('name')})")

        self._invalidate()
        return deleted

    def refresh_tournaments(
        self,
        remove_names: List[str],
        tournaments: List[Dict[str, Any]],
        created_by: str
    ) -> Tuple[int, List[str]]:
        """Replace the named tournaments with new definitions."""
        deleted = self.delete_tournaments_by_name(remove_names)
        ids = self.create_tournaments(tournaments, created_by)
        return deleted, ids

    def update_tournament(self, tournament_id: str, fields: Dict[str, Any]) -> Tournament:
        """
        Update a tournament's editable fields.

        Raises:
            InvalidArgument: Unknown fields
            NotFound: No such tournament
            InvalidConfiguration: Roster/teamCount change on a tournament
                that already has lobbies, or an unusable new roster
        """
        validate_identifier(tournament_id, "tournamentId")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgument(f"Cannot update fields: {', '.join(sorted(unknown))}")

        def body(txn: Transaction) -> Tournament:
            current = load_tournament(txn, tournament_id)
            if ROSTER_FIELDS & set(fields):
                if txn.count(LOBBIES, {"tournamentId": tournament_id}) > 0:
                    raise InvalidConfiguration(
                        "Roster and teamCount cannot change once lobbies exist"
                    )
                self._check_definition({**current.to_document(), **fields})
            try:
                updated = Tournament.model_validate({**current.to_document(), **fields})
            except ValidationError as e:
                raise InvalidArgument(f"Invalid update: {e}")
            txn.set(TOURNAMENTS, tournament_id, updated.to_document())
            return updated

        tournament = self.db.run_transaction(body, max_attempts=config.JOIN_MAX_ATTEMPTS)
        logger.info(f"Updated tournament {tournament_id}: {sorted(fields)}")
        self._invalidate()
        return tournament

    def close_tournament(self, tournament_id: str) -> Tournament:
        """Stop accepting joins for a tournament."""
        return self.update_tournament(tournament_id, {"status": TournamentStatus.CLOSED.value})

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def cleanup_duplicate_assignments(self) -> int:
        """
        Keep one active assignment per (user, tournament).

        The earliest assignment wins; later ones are marked forfeited so the
        history stays readable. Lobby membership is left as it is.

        Returns:
            Number of assignments retired
        """
        groups: Dict[Tuple[str, str], List[Dict[str, Any]]] = defaultdict(list)
        for doc in self.db.query_documents(ASSIGNMENTS, {"status": AssignmentStatus.ACTIVE.value}):
            groups[(doc.get("userId"), doc.get("tournamentId"))].append(doc)

        retired = 0
        for (user_id, tournament_id), docs in groups.items():
            if len(docs) < 2:
                continue
            docs.sort(key=lambda d: (d.get("assignedAt") or "", d["id"]))
            for duplicate in docs[1:]:
                self.db.put_document(
                    ASSIGNMENTS,
                    duplicate["id"],
                    {**duplicate, "status": AssignmentStatus.FORFEITED.value}
                )
                retired += 1
            logger.info(
                f"Retired {len(docs) - 1} duplicate assignment(s) for {user_id} in {tournament_id}"
            )

        return retired

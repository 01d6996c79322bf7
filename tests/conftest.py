"""
Shared test fixtures and configuration.

Provides reusable fixtures for all test files including store instances,
sample tournaments, deterministic team pickers and FastAPI test clients.
"""

import pytest
import os
import random
import shutil
import tempfile
import time
from typing import Dict, Any, List
from unittest.mock import patch

from supersteaks.models import ASSIGNMENTS, LOBBIES, TOURNAMENTS
from supersteaks.services.lobby_allocator import LobbyAllocator
from supersteaks.storage import get_database, reset_database
from supersteaks.storage.memory_db import MemoryDatabase


# =============================================================================
# STORE FIXTURES
# =============================================================================

@pytest.fixture
def test_data_dir():
    """Provide a temporary directory for test data."""
    temp_dir = tempfile.mkdtemp(prefix="supersteaks_test_")
    yield temp_dir

    # Cleanup
    if os.path.exists(temp_dir):
        try:
            shutil.rmtree(temp_dir)
        except PermissionError:
            pass  # Windows file locking, ignore


@pytest.fixture
def memory_db():
    """Provide a clean in-memory store."""
    db = MemoryDatabase()
    db.initialize()
    yield db
    db.clear_all()


@pytest.fixture
def sqlite_db(test_data_dir):
    """Provide a clean SQLite store in a temporary directory."""
    with patch.dict(os.environ, {'DB_TYPE': 'sqlite', 'DATA_DIR': test_data_dir}, clear=False):
        reset_database()
        db = get_database()
        yield db
        reset_database()  # Close connection before cleanup


@pytest.fixture(params=['memory', 'sqlite'])
def store(request):
    """Run a test against every local backend."""
    return request.getfixturevalue(f"{request.param}_db")


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def sample_tournament_data() -> Dict[str, Any]:
    """Two-team tournament: every lobby holds two users."""
    return {
        'id': 'T1',
        'name': 'Test Cup',
        'description': 'Two clubs per lobby',
        'teams': ['Ajax', 'Arsenal'],
        'teamCount': 2,
        'status': 'active',
    }


@pytest.fixture
def four_team_tournament_data() -> Dict[str, Any]:
    """Four-team tournament."""
    return {
        'id': 'T4',
        'name': 'Quick Fire Cup',
        'teams': ['Benfica', 'Porto', 'Sporting CP', 'Braga'],
        'teamCount': 4,
        'status': 'active',
    }


@pytest.fixture
def seed(store):
    """Store tournament definitions. Returns a function taking dicts."""
    def _seed(*tournaments: Dict[str, Any]) -> None:
        for data in tournaments:
            store.put_document(TOURNAMENTS, data['id'], data)
    return _seed


# =============================================================================
# ALLOCATOR FIXTURES
# =============================================================================

class PickLast:
    """Deterministic team picker: always the last available team."""

    def choice(self, seq):
        return seq[-1]


class SlowRandom(random.Random):
    """Seeded picker that widens the read-to-commit window of a join."""

    def __init__(self, seed: int = 7, delay: float = 0.005):
        super().__init__(seed)
        self.delay = delay

    def choice(self, seq):
        time.sleep(self.delay)
        return super().choice(seq)


@pytest.fixture
def allocator(store):
    """Allocator with a seeded picker and no retry delay."""
    return LobbyAllocator(store, max_attempts=5, backoff_seconds=0, rng=random.Random(42))


# =============================================================================
# INVARIANT HELPERS
# =============================================================================

def lobbies_of(db, tournament_id: str) -> List[Dict[str, Any]]:
    return db.query_documents(LOBBIES, {'tournamentId': tournament_id})


def assignments_of(db, tournament_id: str) -> List[Dict[str, Any]]:
    return db.query_documents(ASSIGNMENTS, {'tournamentId': tournament_id})


def assert_draw_invariants(db, tournament_id: str, roster: List[str]) -> None:
    """Capacity, team uniqueness and one-assignment-per-user for a tournament."""
    lobbies = lobbies_of(db, tournament_id)
    assignments = assignments_of(db, tournament_id)

    for lobby in lobbies:
        teams = list(lobby['teams'].values())
        assert lobby['currentCount'] == len(lobby['teams']) == len(lobby['userIds'])
        assert lobby['currentCount'] <= lobby['capacity']
        assert len(teams) == len(set(teams)), f"duplicate team in {lobby['id']}"
        assert set(teams) <= set(roster)
        expected_status = 'full' if lobby['currentCount'] == lobby['capacity'] else 'open'
        assert lobby['status'] == expected_status

    users = [a['userId'] for a in assignments if a['status'] == 'active']
    assert len(users) == len(set(users)), "user assigned twice"

    by_lobby = {lobby['id']: lobby for lobby in lobbies}
    for a in assignments:
        assert by_lobby[a['lobbyId']]['teams'][a['userId']] == a['team']

    assert sum(lobby['currentCount'] for lobby in lobbies) == len(assignments)
    open_lobbies = [lobby for lobby in lobbies if lobby['status'] == 'open']
    assert len(open_lobbies) <= 1

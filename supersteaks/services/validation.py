"""Input and tournament-configuration validation."""

import re
from typing import Any, List

from .. import config
from .errors import InvalidArgument, InvalidConfiguration

MAX_ID_LENGTH = 128

# Letters, digits, underscore and hyphen only: ids end up in document paths and query filters
_ID_RE = re.compile(r"[A-Za-z0-9_-]+")


def validate_identifier(value: Any, name: str) -> str:
    """
    Check that value is a well-formed identifier.

    Args:
        value: Candidate identifier
        name: Parameter name used in the error message

    Returns:
        The identifier

    Raises:
        InvalidArgument: If empty, too long, not a string, or outside [A-Za-z0-9_-]
    """
    if not isinstance(value, str) or not value:
        raise InvalidArgument(f"{name} is required")
    if len(value) > MAX_ID_LENGTH:
        raise InvalidArgument(f"{name} must be at most {MAX_ID_LENGTH} characters")
    if not _ID_RE.fullmatch(value):
        raise InvalidArgument(f"{name} contains invalid characters")
    return value


def validate_capacity(capacity: Any, roster: List[str]) -> int:
    """
    Check a tournament's lobby capacity against its roster.

    Raises:
        InvalidConfiguration: If capacity is not an int in
            1..MAX_LOBBY_CAPACITY or exceeds the roster size
    """
    if capacity is None:
        raise InvalidConfiguration("Tournament has no teamCount")
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise InvalidConfiguration(f"Tournament teamCount must be an integer, got {capacity!r}")
    if capacity < 1 or capacity > config.MAX_LOBBY_CAPACITY:
        raise InvalidConfiguration(
            f"Tournament teamCount must be between 1 and {config.MAX_LOBBY_CAPACITY}, got {capacity}"
        )
    if capacity > len(roster):
        raise InvalidConfiguration(
            f"Tournament teamCount {capacity} exceeds roster size {len(roster)}"
        )
    return capacity


def validate_roster(roster: Any) -> List[str]:
    """
    Check a roster is a list of distinct, non-empty team names.

    Raises:
        InvalidConfiguration: On blank or duplicate names
    """
    if not isinstance(roster, list):
        raise InvalidConfiguration("Tournament teams must be a list")
    seen = set()
    for team in roster:
        if not isinstance(team, str) or not team.strip():
            raise InvalidConfiguration("Tournament teams must be non-empty names")
        if team in seen:
            raise InvalidConfiguration(f"Duplicate team in roster: {team}")
        seen.add(team)
    return roster

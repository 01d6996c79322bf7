"""
Error taxonomy for tournament joins.

Every failure of the lobby allocator surfaces as one of these, so callers
can tell "you already have a team" from "tournament full" from "try again":
- InvalidArgument: malformed caller input
- NotFound: tournament does not exist
- AlreadyAssigned: user already holds a team in the tournament
- Unavailable: no team or lobby slot can be given out
- InvalidConfiguration: tournament data cannot be allocated from
- Internal: store failure or retries exhausted
"""


class AllocationError(Exception):
    """Base exception for all allocation errors."""

    code = "internal"
    http_status = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class InvalidArgument(AllocationError):
    """Malformed identifier or request payload."""

    code = "invalid-argument"
    http_status = 400


class NotFound(AllocationError):
    """Requested tournament does not exist."""

    code = "not-found"
    http_status = 404


class AlreadyAssigned(AllocationError):
    """User already has an active assignment in this tournament."""

    code = "already-exists"
    http_status = 409


class Unavailable(AllocationError):
    """No team slot can be handed out."""

    code = "unavailable"
    http_status = 503


class InvalidConfiguration(AllocationError):
    """Tournament record is unusable (bad capacity, roster, status value)."""

    code = "failed-precondition"
    http_status = 422


class Internal(AllocationError):
    """Unexpected store failure, including exhausted transaction retries."""

    code = "internal"
    http_status = 500

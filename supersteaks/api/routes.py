"""API route definitions."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from supersteaks.api.dependencies import (
    get_allocator,
    get_current_user,
    get_db,
    get_tournament_service,
    get_visibility_service,
    require_admin,
)
from supersteaks.services.errors import AllocationError
from supersteaks.services.lobby_allocator import LobbyAllocator
from supersteaks.services.tournament_service import TournamentService
from supersteaks.services.visibility_service import VisibilityService
from supersteaks.storage import DocumentStoreInterface
from supersteaks.types import AdminResultDict, RateLimitedDict, TournamentSummaryDict

logger = logging.getLogger(__name__)
router = APIRouter()


class TournamentAdminRequest(BaseModel):
    """Body of POST /api/admin/tournaments."""

    action: str  # create, refresh, delete
    tournaments: list[Any] = []
    remove: list[str] = []


def _summary(tournament) -> TournamentSummaryDict:
    return {
        "id": tournament.id,
        "name": tournament.name,
        "description": tournament.description,
        "rules": tournament.rules,
        "teamCount": tournament.capacity,
        "status": tournament.status.value,
    }


@router.get("/health")
def health_check(db: DocumentStoreInterface = Depends(get_db)) -> JSONResponse:
    """Health check endpoint.

    Returns:
        Health status and store reachability
    """
    healthy = db.health_check()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "ok" if healthy else "degraded", "database": healthy},
    )


@router.get("/api/tournaments")
def list_tournaments(
    status: Optional[str] = Query(default=None, description="Filter: active, closed"),
    service: TournamentService = Depends(get_tournament_service),
) -> JSONResponse:
    """List tournaments.

    Returns:
        List of tournaments with id, name, description, rules, teamCount and status
    """
    try:
        tournaments = service.list_tournaments(status=status)
        return JSONResponse(content=[_summary(t) for t in tournaments])
    except AllocationError:
        raise
    except Exception as e:
        logger.error(f"Error listing tournaments: {e}")
        raise HTTPException(status_code=500, detail="Failed to list tournaments")


@router.get("/api/tournaments/{tournament_id}")
def get_tournament(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
) -> JSONResponse:
    """Get one tournament."""
    try:
        return JSONResponse(content=_summary(service.get_tournament(tournament_id)))
    except AllocationError:
        raise
    except Exception as e:
        logger.error(f"Error fetching tournament {tournament_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch tournament")


@router.post("/api/tournaments/{tournament_id}/join")
def join_tournament(
    tournament_id: str,
    request: Request,
    user_id: str = Depends(get_current_user),
    allocator: LobbyAllocator = Depends(get_allocator),
) -> JSONResponse:
    """Join a tournament and get a random team in a lobby.

    Rate limited per user.

    Returns:
        assignmentId, team, lobbyId, lobbyStatus, currentCount, capacity
    """
    limiter = request.app.state.join_rate_limiter
    allowed, wait_seconds = limiter.try_acquire(f"{user_id}:join")
    if not allowed:
        body: RateLimitedDict = {
            "error": "rate-limited",
            "detail": f"Please wait {wait_seconds} seconds before joining again",
            "retry_after": wait_seconds,
        }
        return JSONResponse(
            status_code=429,
            content=body,
            headers={"Retry-After": str(wait_seconds)},
        )

    result = allocator.join(tournament_id, user_id)
    return JSONResponse(content=result.to_dict())


@router.get("/api/tournaments/{tournament_id}/visibility")
def tournament_visibility(
    tournament_id: str,
    user_id: str = Depends(get_current_user),
    service: VisibilityService = Depends(get_visibility_service),
) -> JSONResponse:
    """Teams visible to the caller: their own lobby only."""
    try:
        return JSONResponse(content=service.get_visible_teams(tournament_id, user_id))
    except AllocationError:
        raise
    except Exception as e:
        logger.error(f"Error fetching visibility for {tournament_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch tournament teams")


@router.get("/api/me/assignments")
def my_assignments(
    user_id: str = Depends(get_current_user),
    service: VisibilityService = Depends(get_visibility_service),
) -> JSONResponse:
    """Active assignments of the caller across tournaments."""
    try:
        assignments = service.get_user_assignments(user_id)
        return JSONResponse(content=[a.to_document() for a in assignments])
    except AllocationError:
        raise
    except Exception as e:
        logger.error(f"Error fetching assignments for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch assignments")


# =============================================================================
# ADMIN
# =============================================================================

@router.post("/api/admin/tournaments")
def manage_tournaments(
    body: TournamentAdminRequest,
    admin: str = Depends(require_admin),
    service: TournamentService = Depends(get_tournament_service),
) -> JSONResponse:
    """Create, refresh or delete tournaments.

    - create: tournaments is a list of tournament definitions
    - delete: tournaments is a list of tournament names
    - refresh: delete the names in remove, then create tournaments
    """
    if body.action == "create":
        ids = service.create_tournaments(body.tournaments, created_by=admin)
        result: AdminResultDict = {
            "success": True,
            "message": f"Created {len(ids)} tournaments",
            "ids": ids,
        }
        return JSONResponse(content=result)

    if body.action == "delete":
        deleted = service.delete_tournaments_by_name(body.tournaments)
        return JSONResponse(content={
            "success": True,
            "message": f"Deleted {deleted} tournaments",
            "deleted": deleted,
        })

    if body.action == "refresh":
        deleted, ids = service.refresh_tournaments(body.remove, body.tournaments, created_by=admin)
        return JSONResponse(content={
            "success": True,
            "message": f"Refreshed {len(ids)} tournaments",
            "ids": ids,
            "deleted": deleted,
        })

    raise HTTPException(status_code=400, detail=f"Invalid action: {body.action}")


@router.patch("/api/admin/tournaments/{tournament_id}")
def update_tournament(
    tournament_id: str,
    fields: dict[str, Any],
    admin: str = Depends(require_admin),
    service: TournamentService = Depends(get_tournament_service),
) -> JSONResponse:
    """Update editable tournament fields."""
    return JSONResponse(content=_summary(service.update_tournament(tournament_id, fields)))


@router.post("/api/admin/tournaments/{tournament_id}/close")
def close_tournament(
    tournament_id: str,
    admin: str = Depends(require_admin),
    service: TournamentService = Depends(get_tournament_service),
) -> JSONResponse:
    """Stop accepting joins for a tournament."""
    return JSONResponse(content=_summary(service.close_tournament(tournament_id)))


@router.post("/api/admin/cleanup-duplicates")
def cleanup_duplicates(
    admin: str = Depends(require_admin),
    service: TournamentService = Depends(get_tournament_service),
) -> JSONResponse:
    """Retire duplicate active assignments."""
    retired = service.cleanup_duplicate_assignments()
    return JSONResponse(content={
        "success": True,
        "message": f"Retired {retired} duplicate assignments",
        "deleted": retired,
    })

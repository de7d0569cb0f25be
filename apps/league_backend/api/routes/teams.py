"""Team and roster route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.services import team_service
from league_backend.services.exceptions import ConflictError, NotFoundError
from league_backend.api.auth_dependencies import require_identity
from league_backend.api.routes import limiter
from league_backend.models.schemas import (
    AddMemberRequest,
    CreateTeamRequest,
    OkResponse,
    UpdateMemberRequest,
    UpdateTeamRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/teams")
@limiter.limit("10/minute")
async def create_team(
    request: Request,
    payload: CreateTeamRequest,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create a team with the caller as captain.

    Request body:
        {
            "name": "Set to Win",
            "players": [{"name": "...", "email": "..."}, ...],
            "session_id": 12  // optional, registers the team immediately
        }
    """
    try:
        return await team_service.create_team(
            session,
            identity,
            name=payload.name,
            players=[p.model_dump() for p in payload.players],
            session_id=payload.session_id,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating team: {str(e)}")


@router.get("/api/teams/mine")
async def list_my_teams(
    include_roster: bool = False,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """List teams captained by the caller, optionally with their rosters."""
    try:
        if include_roster:
            return await team_service.list_my_teams_with_roster(session, identity)
        return await team_service.list_my_teams(session, identity)
    except Exception as e:
        logger.error(f"Error listing teams: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing teams: {str(e)}")


@router.get("/api/teams/memberships")
async def list_my_memberships(
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """List the caller's roster entries on any team."""
    try:
        return await team_service.list_my_memberships(session, identity)
    except Exception as e:
        logger.error(f"Error listing memberships: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing memberships: {str(e)}")


@router.get("/api/teams/{team_id}")
async def get_team(
    team_id: int,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Team detail for its captain and members.

    Anyone else gets a 404 so team existence is not leaked.
    """
    try:
        result = await team_service.get_team(session, team_id, identity)
    except Exception as e:
        logger.error(f"Error getting team {team_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error getting team: {str(e)}")
    if result is None:
        raise HTTPException(status_code=404, detail="Team not found.")
    return result


@router.patch("/api/teams/{team_id}")
async def update_team(
    team_id: int,
    payload: UpdateTeamRequest,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Rename a team (captain only)."""
    try:
        return await team_service.update_team(session, team_id, identity, payload.name)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating team: {str(e)}")


@router.post("/api/teams/{team_id}/members")
async def add_member(
    team_id: int,
    payload: AddMemberRequest,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Add a player to the roster (captain only)."""
    try:
        return await team_service.add_member(
            session,
            team_id,
            identity,
            name=payload.name,
            email=payload.email,
            default_weekly_status=payload.default_weekly_status,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Error adding member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error adding member: {str(e)}")


@router.delete("/api/teams/{team_id}/members/{member_id}", response_model=OkResponse)
async def remove_member(
    team_id: int,
    member_id: int,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Archive a roster member (captain only). The captain cannot be removed."""
    try:
        return await team_service.remove_member(session, team_id, member_id, identity)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Error removing member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error removing member: {str(e)}")


@router.patch("/api/teams/{team_id}/members/{member_id}")
async def update_member_default_status(
    team_id: int,
    member_id: int,
    payload: UpdateMemberRequest,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Change a member's default weekly status (captain only)."""
    try:
        return await team_service.update_default_weekly_status(
            session, team_id, member_id, identity, payload.default_weekly_status
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating member: {str(e)}")

"""Session registration route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.services import registration_service
from league_backend.services.exceptions import ConflictError, NotFoundError
from league_backend.api.auth_dependencies import (
    get_current_identity_optional,
    require_identity,
)
from league_backend.models.schemas import (
    OkResponse,
    RegisterTeamRequest,
    UpdateRegistrationMembersRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/registrations")
async def register_team(
    payload: RegisterTeamRequest,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Register a team for a session (captain only).

    Request body:
        {
            "team_id": 1,
            "session_id": 12,
            "member_selections": [{"person_id": 3, "weekly_status": "inactive"}]  // optional
        }

    Fails with 409 if any active player is already active elsewhere that week.
    """
    selections = (
        [s.model_dump() for s in payload.member_selections]
        if payload.member_selections is not None
        else None
    )
    try:
        return await registration_service.register_team_for_session(
            session,
            team_id=payload.team_id,
            session_id=payload.session_id,
            identity=identity,
            member_selections=selections,
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
        logger.error(f"Error registering team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error registering team: {str(e)}")


@router.get("/api/registrations/mine")
async def list_my_registrations(
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Live registrations of teams the caller captains."""
    try:
        return await registration_service.list_my_registrations(session, identity)
    except Exception as e:
        logger.error(f"Error listing registrations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing registrations: {str(e)}")


@router.get("/api/teams/{team_id}/sessions/{session_id}/registration")
async def get_team_session_registration(
    team_id: int,
    session_id: int,
    identity: Optional[dict] = Depends(get_current_identity_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """A team's live registration for a session. Invite links only for the captain."""
    try:
        result = await registration_service.get_registration_for_team_and_session(
            session, team_id, session_id, identity
        )
    except Exception as e:
        logger.error(f"Error getting registration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error getting registration: {str(e)}")
    if result is None:
        raise HTTPException(status_code=404, detail="Registration not found.")
    return result


@router.put("/api/registrations/{registration_id}/members")
async def update_registration_members(
    registration_id: int,
    payload: UpdateRegistrationMembersRequest,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Change weekly statuses for a registration (captain only)."""
    try:
        return await registration_service.update_registration_members(
            session,
            registration_id,
            identity,
            [s.model_dump() for s in payload.selections],
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
        logger.error(f"Error updating registration {registration_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating registration: {str(e)}")


@router.post("/api/registrations/{registration_id}/leave", response_model=OkResponse)
async def leave_session(
    registration_id: int,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Withdraw a team from a session (captain only)."""
    try:
        return await registration_service.leave_session(session, registration_id, identity)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Error leaving session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error leaving session: {str(e)}")

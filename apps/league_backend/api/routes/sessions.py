"""Session catalog route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.services import session_service
from league_backend.models.schemas import (
    EnsureSessionsRequest,
    EnsureSessionsResponse,
    SessionSummary,
)
from league_backend.utils.constants import DEFAULT_WEEKS_AHEAD

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/sessions/ensure-upcoming", response_model=EnsureSessionsResponse)
async def ensure_upcoming_sessions(
    payload: Optional[EnsureSessionsRequest] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Materialize the upcoming session calendar. Safe to call repeatedly.
    """
    weeks_ahead = DEFAULT_WEEKS_AHEAD
    if payload is not None and payload.weeks_ahead is not None:
        weeks_ahead = payload.weeks_ahead
    try:
        return await session_service.ensure_upcoming_sessions(session, weeks_ahead=weeks_ahead)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error ensuring upcoming sessions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error ensuring sessions: {str(e)}")


@router.get("/api/sessions/upcoming", response_model=List[SessionSummary])
async def list_upcoming_sessions(session: AsyncSession = Depends(get_db_session)):
    """List upcoming sessions with team counts and remaining spots."""
    try:
        return await session_service.list_upcoming(session)
    except Exception as e:
        logger.error(f"Error listing upcoming sessions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing sessions: {str(e)}")


@router.get("/api/sessions/{session_id}")
async def get_session(session_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Get a session with its registered teams and their members.

    Invite tokens are never exposed here.
    """
    try:
        result = await session_service.get_session(session, session_id)
    except Exception as e:
        logger.error(f"Error getting session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error getting session: {str(e)}")
    if result is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return result

"""Invite link route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.services import invite_service
from league_backend.services.exceptions import ConflictError, NotFoundError
from league_backend.api.auth_dependencies import (
    get_current_identity_optional,
    require_identity,
)
from league_backend.api.routes import limiter
from league_backend.models.schemas import InviteResponseRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/invites/pending")
async def list_pending_invites(
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Unanswered invites addressed to the caller."""
    try:
        return await invite_service.list_my_pending_invites(session, identity)
    except Exception as e:
        logger.error(f"Error listing pending invites: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing invites: {str(e)}")


@router.get("/api/invites/{token}")
@limiter.limit("30/minute")
async def get_invite_details(
    request: Request,
    token: str,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Public invite details for the landing page. No authentication required.
    """
    try:
        result = await invite_service.get_invite_by_token(session, token)
    except Exception as e:
        logger.error(f"Error retrieving invite: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error retrieving invite: {str(e)}")
    if result is None:
        raise HTTPException(status_code=404, detail="Invite not found.")
    return result


@router.post("/api/invites/{token}/respond")
@limiter.limit("10/minute")
async def respond_to_invite(
    request: Request,
    token: str,
    payload: InviteResponseRequest,
    identity: Optional[dict] = Depends(get_current_identity_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Confirm or decline an invite. The token is single-use.

    Request body:
        {"response": "confirmed" | "declined", "name": "optional display name"}
    """
    try:
        return await invite_service.respond_to_invite(
            session,
            token,
            payload.response,
            name=payload.name,
            identity=identity,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error responding to invite: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error responding to invite: {str(e)}")

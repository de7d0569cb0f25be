"""Free agent board route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.services import free_agent_service
from league_backend.services.exceptions import ConflictError, NotFoundError
from league_backend.api.auth_dependencies import (
    get_current_identity_optional,
    require_identity,
)
from league_backend.api.routes import limiter
from league_backend.models.schemas import FreeAgentSignupRequest, OkResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sessions/{session_id}/free-agents")
async def list_free_agents(session_id: int, session: AsyncSession = Depends(get_db_session)):
    """Available free agents for a session."""
    try:
        return await free_agent_service.list_free_agents(session, session_id)
    except Exception as e:
        logger.error(f"Error listing free agents: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing free agents: {str(e)}")


@router.post("/api/sessions/{session_id}/free-agents")
@limiter.limit("10/minute")
async def sign_up_free_agent(
    request: Request,
    session_id: int,
    payload: FreeAgentSignupRequest,
    identity: Optional[dict] = Depends(get_current_identity_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """Sign up as a free agent. Works signed in or anonymously."""
    try:
        return await free_agent_service.sign_up_free_agent(
            session,
            session_id,
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            identity=identity,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error signing up free agent: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error signing up: {str(e)}")


@router.post("/api/free-agents/{free_agent_id}/withdraw", response_model=OkResponse)
async def withdraw_free_agent(
    free_agent_id: int,
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Withdraw the caller's own free agent signup."""
    try:
        return await free_agent_service.withdraw_free_agent(session, free_agent_id, identity)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Error withdrawing: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error withdrawing: {str(e)}")

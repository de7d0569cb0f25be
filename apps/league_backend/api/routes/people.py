"""Person route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.db import get_db_session
from league_backend.services import person_service
from league_backend.api.auth_dependencies import require_identity
from league_backend.models.schemas import PersonResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/people/me", response_model=PersonResponse)
async def ensure_me(
    identity: dict = Depends(require_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Resolve the signed-in caller to a Person, creating or linking it as needed.
    """
    try:
        person = await person_service.get_or_create_person_from_identity(session, identity)
        await session.commit()
        return person_service.person_to_dict(person)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error resolving person: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error resolving person: {str(e)}")

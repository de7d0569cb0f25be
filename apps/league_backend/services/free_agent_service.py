"""
Free agent board: per-session signups of players without a team.

Free agents are independent of rosters and of the weekly active rule.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.models import FreeAgent, FreeAgentStatus
from league_backend.services import person_service, session_service
from league_backend.services.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from league_backend.utils.datetime_utils import to_iso_datetime

logger = logging.getLogger(__name__)

DUPLICATE_SIGNUP_MESSAGE = "You are already signed up as a free agent for this session."


def free_agent_to_dict(agent: FreeAgent) -> Dict:
    return {
        "id": agent.id,
        "session_id": agent.session_id,
        "person_id": agent.person_id,
        "name": agent.name,
        "email": agent.email,
        "phone": agent.phone,
        "status": agent.status,
        "created_at": to_iso_datetime(agent.created_at),
    }


async def find_available_signup(
    session: AsyncSession, session_id: int, email: str
) -> Optional[int]:
    """Id of the available signup for a normalized email, if any."""
    result = await session.execute(
        select(FreeAgent.id).where(
            FreeAgent.session_id == session_id,
            FreeAgent.email == email,
            FreeAgent.status == FreeAgentStatus.AVAILABLE.value,
        )
    )
    return result.scalar_one_or_none()


async def sign_up_free_agent(
    session: AsyncSession,
    session_id: int,
    name: str,
    email: str,
    phone: Optional[str] = None,
    identity: Optional[dict] = None,
) -> Dict:
    """
    Sign a player up as a free agent for one session.

    Args:
        session: Database session
        session_id: Target session
        name: Player name (required)
        email: Contact email, compared case-insensitively
        phone: Optional phone number
        identity: Optional authenticated caller, linked to the Person

    Returns:
        Dict with the new free agent id

    Raises:
        NotFoundError: If the session does not exist
        ValidationError: On blank name or invalid email
        ConflictError: If an available signup already exists for this email
    """
    await session_service.get_session_or_raise(session, session_id)

    name = (name or "").strip()
    email = person_service.normalize_email(email)
    if not name:
        raise ValidationError("Name is required.")
    if not person_service.is_valid_email(email):
        raise ValidationError("Invalid email.")

    if await find_available_signup(session, session_id, email) is not None:
        raise ConflictError(DUPLICATE_SIGNUP_MESSAGE)

    subject_id = (identity or {}).get("subject_id")
    person = await person_service.upsert_person(session, name=name, email=email, subject_id=subject_id)

    phone = (phone or "").strip() or None
    agent = FreeAgent(
        session_id=session_id,
        person_id=person.id,
        name=name,
        email=email,
        phone=phone,
        subject_id=subject_id,
        status=FreeAgentStatus.AVAILABLE.value,
    )
    session.add(agent)
    try:
        await session.flush()
    except IntegrityError:
        # A concurrent signup with the same email won the insert
        await session.rollback()
        raise ConflictError(DUPLICATE_SIGNUP_MESSAGE)
    agent_id = agent.id
    await session.commit()
    logger.info("Free agent %d signed up for session %d", agent_id, session_id)
    return {"id": agent_id}


async def list_free_agents(session: AsyncSession, session_id: int) -> List[Dict]:
    """Available free agents for a session, oldest signup first."""
    result = await session.execute(
        select(FreeAgent)
        .where(
            FreeAgent.session_id == session_id,
            FreeAgent.status == FreeAgentStatus.AVAILABLE.value,
        )
        .order_by(FreeAgent.id.asc())
    )
    return [free_agent_to_dict(agent) for agent in result.scalars().all()]


async def withdraw_free_agent(
    session: AsyncSession, free_agent_id: int, identity: Optional[dict]
) -> Dict:
    """Withdraw a signup. Only the person who signed up may do this."""
    if not identity:
        raise AuthorizationError("Authentication required.")

    result = await session.execute(select(FreeAgent).where(FreeAgent.id == free_agent_id))
    agent = result.scalar_one_or_none()
    if agent is None:
        raise NotFoundError("Free agent signup not found.")

    subject_id = identity.get("subject_id")
    email = person_service.normalize_email(identity.get("email"))
    owns = (subject_id and agent.subject_id == subject_id) or (email and agent.email == email)
    if not owns:
        raise AuthorizationError("You can only withdraw your own signup.")

    if agent.status != FreeAgentStatus.ASSIGNED.value:
        agent.status = FreeAgentStatus.ASSIGNED.value
        await session.commit()
        logger.info("Free agent %d withdrew from session %d", agent.id, agent.session_id)
    return {"ok": True}

"""
Invite service.

Invite tokens are single-use bearer capabilities: whoever holds the link may
confirm or decline once. The token is consumed in the same write that records
the response.
"""

import os
import secrets
import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.models import (
    InviteStatus,
    Person,
    Registration,
    RegistrationMember,
    RegistrationStatus,
    Session,
    Team,
    WeeklyStatus,
)
from league_backend.services import person_service
from league_backend.services.exceptions import ConflictError, NotFoundError, ValidationError
from league_backend.utils.datetime_utils import to_iso_date, utcnow

logger = logging.getLogger(__name__)

FRONTEND_BASE_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

ALREADY_RESPONDED_MESSAGE = "This invite has already been responded to."

RESPONSES = (InviteStatus.CONFIRMED.value, InviteStatus.DECLINED.value)


def new_invite_token() -> str:
    """Opaque URL-safe token for an invite link."""
    return secrets.token_urlsafe(32)


def build_invite_url(token: str) -> str:
    return f"{FRONTEND_BASE_URL}/invite/{token}"


async def _find_by_token(session: AsyncSession, token: str, for_update: bool = False):
    stmt = (
        select(RegistrationMember, Registration, Person, Team, Session)
        .join(Registration, RegistrationMember.registration_id == Registration.id)
        .join(Person, RegistrationMember.person_id == Person.id)
        .join(Team, Registration.team_id == Team.id)
        .join(Session, Registration.session_id == Session.id)
        .where(RegistrationMember.invite_token == token)
    )
    if for_update:
        stmt = stmt.with_for_update(of=RegistrationMember)
    result = await session.execute(stmt)
    return result.first()


async def _token_was_consumed(session: AsyncSession, token: str) -> bool:
    result = await session.execute(
        select(RegistrationMember.id).where(RegistrationMember.responded_token == token).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_invite_by_token(session: AsyncSession, token: str) -> Optional[Dict]:
    """
    Details for a pending invite link, or None if the token is unknown or spent.
    """
    if not token:
        return None
    row = await _find_by_token(session, token)
    if row is None:
        return None
    member, registration, person, team, league_session = row
    return {
        "member_id": member.id,
        "person_name": person.name,
        "weekly_status": member.weekly_status,
        "invite_status": member.invite_status,
        "team": {"id": team.id, "name": team.name, "captain_name": team.captain_name},
        "session": {
            "id": league_session.id,
            "date": to_iso_date(league_session.date),
            "weekday": league_session.weekday,
        },
        "registration": {"id": registration.id, "status": registration.status},
    }


async def respond_to_invite(
    session: AsyncSession,
    token: str,
    response: str,
    name: Optional[str] = None,
    identity: Optional[dict] = None,
) -> Dict:
    """
    Record a confirm/decline response for an invite token.

    The member's weekly status is unchanged, so no conflict re-check is
    needed. The responder may rename their Person and, when signed in, link
    it to their external identity.

    Args:
        session: Database session
        token: Invite token from the link
        response: "confirmed" or "declined"
        name: Optional display name supplied by the responder
        identity: Optional authenticated responder

    Raises:
        ValidationError: If the response value is not recognised
        NotFoundError: If the token does not exist
        ConflictError: If the invite was already answered or the registration is cancelled
    """
    if response not in RESPONSES:
        raise ValidationError("Response must be 'confirmed' or 'declined'.")

    row = await _find_by_token(session, token, for_update=True) if token else None
    if row is None:
        if token and await _token_was_consumed(session, token):
            raise ConflictError(ALREADY_RESPONDED_MESSAGE)
        raise NotFoundError("Invite not found.")

    member, registration, person, _, _ = row
    if member.invite_status != InviteStatus.INVITED.value:
        raise ConflictError(ALREADY_RESPONDED_MESSAGE)
    if registration.status == RegistrationStatus.CANCELLED.value:
        raise ConflictError("This session registration has been cancelled.")

    member.invite_status = response
    member.responded_at = utcnow()
    member.responded_token = member.invite_token
    member.invite_token = None

    if name and name.strip():
        person.name = name.strip()
    subject_id = (identity or {}).get("subject_id")
    if subject_id and person.subject_id != subject_id:
        # Only link when the subject is not already attached to another person
        linked = await person_service.get_person_by_subject(session, subject_id)
        if linked is None:
            person.subject_id = subject_id
    await session.flush()

    # Lazy import: registration_service depends on this module
    from league_backend.services import registration_service

    await registration_service.refresh_registration_status(session, registration)
    await session.commit()
    logger.info(
        "Registration member %d %s invite for registration %d",
        member.id, response, registration.id,
    )
    return {"ok": True, "invite_status": response}


async def list_my_pending_invites(
    session: AsyncSession, identity: Optional[dict]
) -> List[Dict]:
    """Unanswered invites for the caller across live registrations, soonest first."""
    person = await person_service.find_person_for_identity(session, identity)
    if person is None:
        return []

    result = await session.execute(
        select(RegistrationMember, Registration, Team, Session)
        .join(Registration, RegistrationMember.registration_id == Registration.id)
        .join(Team, Registration.team_id == Team.id)
        .join(Session, Registration.session_id == Session.id)
        .where(
            RegistrationMember.person_id == person.id,
            RegistrationMember.invite_status == InviteStatus.INVITED.value,
            RegistrationMember.weekly_status == WeeklyStatus.ACTIVE.value,
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
        .order_by(Session.date.asc())
    )
    return [
        {
            "member_id": member.id,
            "registration_id": registration.id,
            "team_name": team.name,
            "captain_name": team.captain_name,
            "session_id": league_session.id,
            "session_date": to_iso_date(league_session.date),
            "weekday": league_session.weekday,
            "invite_token": member.invite_token,
            "invite_url": build_invite_url(member.invite_token),
        }
        for member, registration, team, league_session in result.all()
    ]

"""
Session registration service.

Binds teams to sessions for one week and enforces the weekly rule: a person
may be ``active`` on at most one live registration per week, across all teams
and sessions. Registration status is a pure function of member states and is
recomputed after every mutation.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
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
from league_backend.services import invite_service, session_service, team_service
from league_backend.services.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from league_backend.utils.constants import CONFIRMED_ACTIVE_THRESHOLD
from league_backend.utils.datetime_utils import to_iso_date, to_iso_datetime, utc_today

logger = logging.getLogger(__name__)

CAPTAIN_ONLY_MESSAGE = "Only captains can manage session registrations."


def registration_status_from_active_count(active_count: int) -> str:
    if active_count >= CONFIRMED_ACTIVE_THRESHOLD:
        return RegistrationStatus.CONFIRMED.value
    return RegistrationStatus.FORMING.value


def invite_status_for(weekly_status: str) -> str:
    """Initial invite status for a member entering a registration."""
    if weekly_status == WeeklyStatus.ACTIVE.value:
        return InviteStatus.INVITED.value
    if weekly_status == WeeklyStatus.INACTIVE.value:
        return InviteStatus.INACTIVE.value
    return InviteStatus.NOT_INVITED.value


def _normalize_selections(member_selections: Optional[Iterable[Dict]]) -> Dict[int, str]:
    """Map person id -> weekly status, validating the status values."""
    selections: Dict[int, str] = {}
    for item in member_selections or []:
        status = item.get("weekly_status")
        if status not in [s.value for s in WeeklyStatus]:
            raise ValidationError(f"Invalid weekly status: {status}")
        selections[int(item["person_id"])] = status
    return selections


async def _lock_people(session: AsyncSession, person_ids: Iterable[int]) -> None:
    """Row-lock people in id order so concurrent activations serialize without deadlock."""
    ids = sorted(set(person_ids))
    if not ids:
        return
    await session.execute(
        select(Person.id).where(Person.id.in_(ids)).order_by(Person.id.asc()).with_for_update()
    )


async def find_weekly_conflict(
    session: AsyncSession,
    week_of: date,
    person_ids: Iterable[int],
    exclude_registration_id: Optional[int] = None,
) -> Optional[Tuple[Person, Team, Session]]:
    """
    Find an existing active entry for any of ``person_ids`` in the given week.

    Only non-cancelled registrations count. Returns the first offending
    (person, team, session) or None.
    """
    ids = list(set(person_ids))
    if not ids:
        return None

    stmt = (
        select(Person, Team, Session)
        .select_from(RegistrationMember)
        .join(Registration, RegistrationMember.registration_id == Registration.id)
        .join(Person, RegistrationMember.person_id == Person.id)
        .join(Team, Registration.team_id == Team.id)
        .join(Session, Registration.session_id == Session.id)
        .where(
            RegistrationMember.person_id.in_(ids),
            RegistrationMember.weekly_status == WeeklyStatus.ACTIVE.value,
            Registration.week_of == week_of,
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
        .order_by(Person.id.asc(), Registration.id.asc())
        .limit(1)
    )
    if exclude_registration_id is not None:
        stmt = stmt.where(Registration.id != exclude_registration_id)

    result = await session.execute(stmt)
    return result.first()


async def _enforce_weekly_rule(
    session: AsyncSession,
    week_of: date,
    active_person_ids: List[int],
    exclude_registration_id: Optional[int] = None,
) -> None:
    await _lock_people(session, active_person_ids)
    conflict = await find_weekly_conflict(
        session, week_of, active_person_ids, exclude_registration_id
    )
    if conflict is not None:
        person, team, league_session = conflict
        logger.info(
            "Rejected activation of person %d for week %s: already active for team %d",
            person.id, week_of, team.id,
        )
        raise ConflictError(
            f"{person.name} is already active for {team.name} on {to_iso_date(league_session.date)}."
        )


async def _count_active(session: AsyncSession, registration_id: int) -> int:
    result = await session.execute(
        select(func.count(RegistrationMember.id)).where(
            RegistrationMember.registration_id == registration_id,
            RegistrationMember.weekly_status == WeeklyStatus.ACTIVE.value,
        )
    )
    return result.scalar() or 0


async def refresh_registration_status(
    session: AsyncSession, registration: Registration
) -> str:
    """Recompute forming/confirmed from members. Cancelled stays cancelled."""
    if registration.status == RegistrationStatus.CANCELLED.value:
        return registration.status
    active_count = await _count_active(session, registration.id)
    new_status = registration_status_from_active_count(active_count)
    if new_status != registration.status:
        logger.info(
            "Registration %d status %s -> %s (%d active)",
            registration.id, registration.status, new_status, active_count,
        )
        registration.status = new_status
        await session.flush()
    return new_status


async def find_live_registration_id(
    session: AsyncSession, team_id: int, session_id: int
) -> Optional[int]:
    result = await session.execute(
        select(Registration.id).where(
            Registration.team_id == team_id,
            Registration.session_id == session_id,
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
    )
    return result.scalar_one_or_none()


async def create_registration(
    session: AsyncSession,
    team: Team,
    session_id: int,
    member_selections: Optional[Iterable[Dict]] = None,
) -> Registration:
    """
    Conflict-checked registration insert. Flushes but does not commit.

    Authorization is the caller's job; this is shared by the captain-facing
    registration path and team creation.

    Raises:
        NotFoundError: If the session does not exist
        ConflictError: Already joined, or a weekly conflict
        ValidationError: Empty roster or bad selection status
    """
    league_session = await session_service.get_session_or_raise(session, session_id)
    selections = _normalize_selections(member_selections)

    if await find_live_registration_id(session, team.id, session_id) is not None:
        raise ConflictError("This team is already joined to this session.")

    roster = await team_service.list_roster(session, team.id)
    if not roster:
        raise ValidationError("Team has no active roster members.")

    # Roster defaults, overridden by selections for people on this roster
    weekly: Dict[int, str] = {}
    for member, _ in roster:
        weekly[member.person_id] = selections.get(member.person_id, member.default_weekly_status)

    active_ids = [pid for pid, status in weekly.items() if status == WeeklyStatus.ACTIVE.value]
    await _enforce_weekly_rule(session, league_session.week_of, active_ids)

    registration = Registration(
        session_id=league_session.id,
        team_id=team.id,
        week_of=league_session.week_of,
        status=registration_status_from_active_count(len(active_ids)),
    )
    session.add(registration)
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race with a concurrent join of the same team and session
        await session.rollback()
        raise ConflictError("This team is already joined to this session.")

    for person_id, status in weekly.items():
        is_active = status == WeeklyStatus.ACTIVE.value
        session.add(
            RegistrationMember(
                registration_id=registration.id,
                person_id=person_id,
                weekly_status=status,
                invite_status=invite_status_for(status),
                invite_token=invite_service.new_invite_token() if is_active else None,
            )
        )
    await session.flush()

    logger.info(
        "Registered team %d for session %d (week %s, %d active, status %s)",
        team.id, league_session.id, league_session.week_of, len(active_ids), registration.status,
    )
    return registration


async def register_team_for_session(
    session: AsyncSession,
    team_id: int,
    session_id: int,
    identity: Optional[dict],
    member_selections: Optional[Iterable[Dict]] = None,
) -> Dict:
    """
    Register a team for a session (captain only).

    Args:
        session: Database session
        team_id: Team being registered
        session_id: Target session
        identity: Authenticated caller
        member_selections: Optional [{"person_id", "weekly_status"}] overrides

    Returns:
        Registration dict including members and their invite links
    """
    team = await team_service.ensure_captain(
        session, team_id, identity, message=CAPTAIN_ONLY_MESSAGE, for_update=True
    )
    registration = await create_registration(session, team, session_id, member_selections)
    registration_id = registration.id
    await session.commit()
    return await get_registration(session, registration_id, include_tokens=True)


async def get_registration_row(
    session: AsyncSession, registration_id: int, for_update: bool = False
) -> Optional[Registration]:
    stmt = select(Registration).where(Registration.id == registration_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _get_registration_for_captain(
    session: AsyncSession, registration_id: int, identity: Optional[dict]
) -> Registration:
    registration = await get_registration_row(session, registration_id, for_update=True)
    if registration is None:
        raise NotFoundError("Registration not found.")
    await team_service.ensure_captain(
        session, registration.team_id, identity, message=CAPTAIN_ONLY_MESSAGE, for_update=True
    )
    return registration


async def update_registration_members(
    session: AsyncSession,
    registration_id: int,
    identity: Optional[dict],
    selections: Iterable[Dict],
) -> Dict:
    """
    Change weekly statuses for one registration (captain only).

    The new active set is checked against every other live registration in
    the same week before anything is written.

    Raises:
        NotFoundError: If the registration does not exist
        AuthorizationError: If the caller is not the team's captain
        ConflictError: Cancelled registration, or a weekly conflict
    """
    registration = await _get_registration_for_captain(session, registration_id, identity)
    if registration.status == RegistrationStatus.CANCELLED.value:
        raise ConflictError("This registration has been cancelled.")

    requested = _normalize_selections(selections)

    result = await session.execute(
        select(RegistrationMember).where(RegistrationMember.registration_id == registration.id)
    )
    by_person = {m.person_id: m for m in result.scalars().all()}
    roster_ids = {m.person_id for m, _ in await team_service.list_roster(session, registration.team_id)}

    changes = {
        pid: status
        for pid, status in requested.items()
        if pid in by_person or pid in roster_ids
    }
    active_ids = [pid for pid, status in changes.items() if status == WeeklyStatus.ACTIVE.value]
    await _enforce_weekly_rule(
        session, registration.week_of, active_ids, exclude_registration_id=registration.id
    )

    for person_id, status in changes.items():
        member = by_person.get(person_id)
        if member is None:
            session.add(
                RegistrationMember(
                    registration_id=registration.id,
                    person_id=person_id,
                    weekly_status=status,
                    invite_status=invite_status_for(status),
                    invite_token=(
                        invite_service.new_invite_token()
                        if status == WeeklyStatus.ACTIVE.value
                        else None
                    ),
                )
            )
            continue

        if status == WeeklyStatus.ACTIVE.value:
            if member.weekly_status != WeeklyStatus.ACTIVE.value:
                member.invite_status = InviteStatus.INVITED.value
                member.invite_token = member.invite_token or invite_service.new_invite_token()
                member.responded_at = None
                member.responded_token = None
        else:
            member.invite_status = invite_status_for(status)
            member.invite_token = None
            member.responded_at = None
            member.responded_token = None
        member.weekly_status = status

    await session.flush()
    await refresh_registration_status(session, registration)
    await session.commit()
    logger.info(
        "Updated %d member(s) on registration %d", len(changes), registration.id
    )
    return await get_registration(session, registration.id, include_tokens=True)


async def leave_session(
    session: AsyncSession, registration_id: int, identity: Optional[dict]
) -> Dict:
    """Cancel a registration (captain only). Members are retained."""
    registration = await _get_registration_for_captain(session, registration_id, identity)
    if registration.status == RegistrationStatus.CANCELLED.value:
        return {"ok": True}

    registration.status = RegistrationStatus.CANCELLED.value
    await session.commit()
    logger.info(
        "Cancelled registration %d (team %d, session %d)",
        registration.id, registration.team_id, registration.session_id,
    )
    return {"ok": True}


def registration_member_to_dict(
    member: RegistrationMember, person: Person, include_token: bool = False
) -> Dict:
    data = {
        "id": member.id,
        "person_id": member.person_id,
        "person_name": person.name,
        "person_email": person.email,
        "weekly_status": member.weekly_status,
        "invite_status": member.invite_status,
        "responded_at": to_iso_datetime(member.responded_at),
    }
    if include_token:
        data["invite_token"] = member.invite_token
        data["invite_url"] = (
            invite_service.build_invite_url(member.invite_token) if member.invite_token else None
        )
    return data


async def _members_by_registration(
    session: AsyncSession, registration_ids: List[int], include_tokens: bool
) -> Dict[int, List[Dict]]:
    members: Dict[int, List[Dict]] = {rid: [] for rid in registration_ids}
    if not registration_ids:
        return members
    result = await session.execute(
        select(RegistrationMember, Person)
        .join(Person, RegistrationMember.person_id == Person.id)
        .where(RegistrationMember.registration_id.in_(registration_ids))
        .order_by(RegistrationMember.id.asc())
    )
    for member, person in result.all():
        members[member.registration_id].append(
            registration_member_to_dict(member, person, include_token=include_tokens)
        )
    return members


def _registration_to_dict(
    registration: Registration, team: Team, league_session: Session, members: List[Dict]
) -> Dict:
    return {
        "id": registration.id,
        "status": registration.status,
        "week_of": to_iso_date(registration.week_of),
        "created_at": to_iso_datetime(registration.created_at),
        "team": {"id": team.id, "name": team.name, "captain_name": team.captain_name},
        "session": session_service.session_to_dict(league_session),
        "members": members,
    }


async def get_registration(
    session: AsyncSession, registration_id: int, include_tokens: bool = False
) -> Optional[Dict]:
    result = await session.execute(
        select(Registration, Team, Session)
        .join(Team, Registration.team_id == Team.id)
        .join(Session, Registration.session_id == Session.id)
        .where(Registration.id == registration_id)
    )
    row = result.first()
    if row is None:
        return None
    registration, team, league_session = row
    members = await _members_by_registration(session, [registration.id], include_tokens)
    return _registration_to_dict(registration, team, league_session, members[registration.id])


async def get_registration_for_team_and_session(
    session: AsyncSession, team_id: int, session_id: int, identity: Optional[dict]
) -> Optional[Dict]:
    """The team's live registration for a session; tokens only for its captain."""
    result = await session.execute(
        select(Registration.id, Team.captain_subject_id)
        .join(Team, Registration.team_id == Team.id)
        .where(
            Registration.team_id == team_id,
            Registration.session_id == session_id,
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
    )
    row = result.first()
    if row is None:
        return None
    registration_id, captain_subject_id = row
    is_captain = bool(identity) and identity.get("subject_id") == captain_subject_id
    return await get_registration(session, registration_id, include_tokens=is_captain)


async def _list_live_registrations(
    session: AsyncSession, conditions: list, include_tokens: bool
) -> List[Dict]:
    result = await session.execute(
        select(Registration, Team, Session)
        .join(Team, Registration.team_id == Team.id)
        .join(Session, Registration.session_id == Session.id)
        .where(Registration.status != RegistrationStatus.CANCELLED.value, *conditions)
        .order_by(Session.date.asc(), Registration.id.asc())
    )
    rows = result.all()
    members = await _members_by_registration(
        session, [registration.id for registration, _, _ in rows], include_tokens
    )
    return [
        _registration_to_dict(registration, team, league_session, members[registration.id])
        for registration, team, league_session in rows
    ]


async def list_my_registrations(
    session: AsyncSession, identity: Optional[dict]
) -> List[Dict]:
    """Live registrations of teams the caller captains, by session date."""
    if not identity or not identity.get("subject_id"):
        return []
    return await _list_live_registrations(
        session, [Team.captain_subject_id == identity["subject_id"]], include_tokens=True
    )


async def list_team_registrations(
    session: AsyncSession,
    team_id: int,
    include_tokens: bool = False,
    today: Optional[date] = None,
) -> List[Dict]:
    """Live registrations of one team for sessions dated today or later."""
    return await _list_live_registrations(
        session,
        [Registration.team_id == team_id, Session.date >= (today or utc_today())],
        include_tokens,
    )

"""
Team roster service.

Owns teams and their roster members: creation (optionally bootstrapping a
session registration), membership changes, default weekly availability and
the captain/member views of a team.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.models import (
    Team,
    RosterMember,
    RosterRole,
    WeeklyStatus,
    Person,
)
from league_backend.services import person_service
from league_backend.services.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from league_backend.utils.constants import (
    DEFAULT_CAPTAIN_NAME,
    MAX_INVITED_PLAYERS,
    MAX_ROSTER_SIZE,
    MIN_INVITED_PLAYERS,
    MIN_TEAM_NAME_LENGTH,
)
from league_backend.utils.datetime_utils import to_iso_datetime

logger = logging.getLogger(__name__)


def require_identity(identity: Optional[dict]) -> dict:
    """Reject anonymous callers."""
    if not identity or not identity.get("subject_id"):
        raise AuthorizationError("Authentication required.")
    return identity


def _validate_weekly_status(status: str) -> str:
    try:
        return WeeklyStatus(status).value
    except ValueError:
        raise ValidationError(f"Invalid weekly status: {status}")


def _validate_team_name(name: str) -> str:
    name = (name or "").strip()
    if len(name) < MIN_TEAM_NAME_LENGTH:
        raise ValidationError("Team name must be at least 2 characters.")
    return name


async def get_team_row(
    session: AsyncSession, team_id: int, for_update: bool = False
) -> Optional[Team]:
    stmt = select(Team).where(Team.id == team_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def ensure_captain(
    session: AsyncSession,
    team_id: int,
    identity: Optional[dict],
    message: str = "Only the captain can manage this team.",
    for_update: bool = False,
) -> Team:
    """
    Load a team and verify the caller captains it.

    Args:
        session: Database session
        team_id: Team to check
        identity: Authenticated caller
        message: Error text when the caller is not the captain
        for_update: Lock the team row for the rest of the transaction

    Raises:
        AuthorizationError: If unauthenticated or not the captain
        NotFoundError: If the team does not exist
    """
    identity = require_identity(identity)
    team = await get_team_row(session, team_id, for_update=for_update)
    if team is None:
        raise NotFoundError("Team not found.")
    if team.captain_subject_id != identity["subject_id"]:
        raise AuthorizationError(message)
    return team


async def list_roster(
    session: AsyncSession, team_id: int, include_archived: bool = False
) -> List[Tuple[RosterMember, Person]]:
    """Roster entries with their people, captain first."""
    stmt = (
        select(RosterMember, Person)
        .join(Person, RosterMember.person_id == Person.id)
        .where(RosterMember.team_id == team_id)
        .order_by(RosterMember.id.asc())
    )
    if not include_archived:
        stmt = stmt.where(RosterMember.is_archived.is_(False))
    result = await session.execute(stmt)
    return list(result.all())


def roster_member_to_dict(member: RosterMember, person: Person) -> Dict:
    return {
        "id": member.id,
        "team_id": member.team_id,
        "person_id": member.person_id,
        "name": person.name,
        "email": person.email,
        "role": member.role,
        "default_weekly_status": member.default_weekly_status,
        "is_archived": bool(member.is_archived),
    }


def team_to_dict(team: Team) -> Dict:
    return {
        "id": team.id,
        "name": team.name,
        "captain_subject_id": team.captain_subject_id,
        "captain_name": team.captain_name,
        "captain_email": team.captain_email,
        "created_at": to_iso_datetime(team.created_at),
    }


async def create_team(
    session: AsyncSession,
    identity: Optional[dict],
    name: str,
    players: List[Dict],
    session_id: Optional[int] = None,
) -> Dict:
    """
    Create a team with the caller as captain plus 2-3 invited players.

    All validation runs before any write. When ``session_id`` is given the
    team is registered for that session in the same transaction, subject to
    the weekly conflict rule; a conflict aborts the team creation as well.

    Args:
        session: Database session
        identity: Authenticated caller (becomes captain; must have an email)
        name: Team name (at least 2 characters)
        players: List of {"name", "email"} dicts
        session_id: Optional session to register for immediately

    Returns:
        Dict with team data and, when registered, the registration id

    Raises:
        AuthorizationError: If unauthenticated
        ValidationError: On bad name, player count, or emails
        ConflictError: If the bootstrap registration conflicts
    """
    identity = require_identity(identity)
    team_name = _validate_team_name(name)

    if len(players) < MIN_INVITED_PLAYERS or len(players) > MAX_INVITED_PLAYERS:
        raise ValidationError("Teams must include captain plus 2 or 3 invited players.")

    captain_email = person_service.normalize_email(identity.get("email"))
    if not captain_email:
        raise ValidationError("Captain account must include an email.")

    normalized = [
        {
            "name": (player.get("name") or "").strip(),
            "email": person_service.normalize_email(player.get("email")),
        }
        for player in players
    ]
    if any(not p["name"] or not p["email"] for p in normalized):
        raise ValidationError("All players need both name and email.")
    unique_emails = {captain_email, *(p["email"] for p in normalized)}
    if len(unique_emails) != len(normalized) + 1:
        raise ValidationError("All players must have unique email addresses.")
    if not person_service.is_valid_email(captain_email) or any(
        not person_service.is_valid_email(p["email"]) for p in normalized
    ):
        raise ValidationError("All players must have valid email addresses.")

    if session_id is not None:
        # Fail fast on a bad target before writing anything
        from league_backend.services import session_service

        await session_service.get_session_or_raise(session, session_id)

    captain_name = identity.get("name") or DEFAULT_CAPTAIN_NAME
    captain = await person_service.upsert_person(
        session, name=captain_name, email=captain_email, subject_id=identity["subject_id"]
    )

    team = Team(
        name=team_name,
        captain_subject_id=identity["subject_id"],
        captain_name=captain_name,
        captain_email=captain_email,
    )
    session.add(team)
    await session.flush()

    session.add(
        RosterMember(
            team_id=team.id,
            person_id=captain.id,
            role=RosterRole.CAPTAIN.value,
            default_weekly_status=WeeklyStatus.ACTIVE.value,
            is_archived=False,
        )
    )
    for player in normalized:
        person = await person_service.upsert_person(
            session, name=player["name"], email=player["email"]
        )
        session.add(
            RosterMember(
                team_id=team.id,
                person_id=person.id,
                role=RosterRole.PLAYER.value,
                default_weekly_status=WeeklyStatus.ACTIVE.value,
                is_archived=False,
            )
        )
    await session.flush()

    registration_id = None
    if session_id is not None:
        # Lazy import: registration_service depends on this module
        from league_backend.services import registration_service

        registration = await registration_service.create_registration(
            session, team, session_id
        )
        registration_id = registration.id

    await session.commit()
    await session.refresh(team)
    logger.info(
        "Created team %d '%s' with %d players (captain %s)",
        team.id, team_name, len(normalized), identity["subject_id"],
    )

    data = team_to_dict(team)
    data["registration_id"] = registration_id
    return data


async def update_team(
    session: AsyncSession, team_id: int, identity: Optional[dict], name: str
) -> Dict:
    """Rename a team (captain only)."""
    team = await ensure_captain(
        session, team_id, identity, message="Only captain can update this team."
    )
    team.name = _validate_team_name(name)
    await session.commit()
    return {"id": team.id, "name": team.name}


async def add_member(
    session: AsyncSession,
    team_id: int,
    identity: Optional[dict],
    name: str,
    email: str,
    default_weekly_status: str = WeeklyStatus.ACTIVE.value,
) -> Dict:
    """
    Add a player to a team roster (captain only).

    A previously archived entry for the same person is restored rather than
    duplicated.

    Raises:
        ValidationError: Bad name/email/status, or roster already full
        ConflictError: Person already on the roster
    """
    await ensure_captain(
        session, team_id, identity, message="Only captain can add members.", for_update=True
    )
    status = _validate_weekly_status(default_weekly_status)

    name = (name or "").strip()
    email = person_service.normalize_email(email)
    if not name:
        raise ValidationError("Player name is required.")
    if not person_service.is_valid_email(email):
        raise ValidationError("Player email is invalid.")

    roster = await list_roster(session, team_id, include_archived=True)
    active = [(m, p) for m, p in roster if not m.is_archived]
    if any(p.email == email for _, p in active):
        raise ConflictError("This player is already on the team.")
    if len(active) >= MAX_ROSTER_SIZE:
        raise ValidationError(f"Team already has {MAX_ROSTER_SIZE} players.")

    person = await person_service.upsert_person(session, name=name, email=email)
    archived = next((m for m, p in roster if m.is_archived and p.id == person.id), None)
    if archived is not None:
        archived.is_archived = False
        archived.default_weekly_status = status
        member = archived
    else:
        member = RosterMember(
            team_id=team_id,
            person_id=person.id,
            role=RosterRole.PLAYER.value,
            default_weekly_status=status,
            is_archived=False,
        )
        session.add(member)
    await session.flush()
    await session.commit()
    logger.info("Added person %d to team %d roster", person.id, team_id)
    return roster_member_to_dict(member, person)


async def _get_roster_member(
    session: AsyncSession, team_id: int, roster_member_id: int
) -> Tuple[RosterMember, Person]:
    result = await session.execute(
        select(RosterMember, Person)
        .join(Person, RosterMember.person_id == Person.id)
        .where(RosterMember.id == roster_member_id)
    )
    row = result.first()
    if row is None or row[0].team_id != team_id:
        raise NotFoundError("Member not found.")
    return row[0], row[1]


async def remove_member(
    session: AsyncSession, team_id: int, roster_member_id: int, identity: Optional[dict]
) -> Dict:
    """
    Archive a roster member (captain only). The captain can never be removed.

    Archived members keep their history and default to not_invited.
    """
    await ensure_captain(session, team_id, identity, message="Only captain can remove members.")
    member, _ = await _get_roster_member(session, team_id, roster_member_id)
    if member.role == RosterRole.CAPTAIN.value:
        raise ValidationError("Cannot remove captain.")

    member.is_archived = True
    member.default_weekly_status = WeeklyStatus.NOT_INVITED.value
    await session.commit()
    logger.info("Archived roster member %d on team %d", roster_member_id, team_id)
    return {"ok": True}


async def update_default_weekly_status(
    session: AsyncSession,
    team_id: int,
    roster_member_id: int,
    identity: Optional[dict],
    status: str,
) -> Dict:
    """Change a member's default weekly status. Only affects future registrations."""
    await ensure_captain(
        session, team_id, identity, message="Only captain can update member defaults."
    )
    status = _validate_weekly_status(status)
    member, person = await _get_roster_member(session, team_id, roster_member_id)
    if member.is_archived:
        raise ValidationError("Member has been removed from the team.")
    member.default_weekly_status = status
    await session.commit()
    return roster_member_to_dict(member, person)


async def get_team(
    session: AsyncSession, team_id: int, identity: Optional[dict]
) -> Optional[Dict]:
    """
    Team detail for its captain or roster members; None for anyone else.

    Upcoming registrations are included; invite tokens only for the captain.
    """
    if not identity:
        return None
    team = await get_team_row(session, team_id)
    if team is None:
        return None

    roster = await list_roster(session, team_id)
    is_captain = team.captain_subject_id == identity.get("subject_id")
    email = person_service.normalize_email(identity.get("email"))
    is_member = any(
        (p.subject_id and p.subject_id == identity.get("subject_id")) or (email and p.email == email)
        for _, p in roster
    )
    if not is_captain and not is_member:
        return None

    from league_backend.services import registration_service

    data = team_to_dict(team)
    data["can_manage"] = is_captain
    data["roster"] = [roster_member_to_dict(m, p) for m, p in roster]
    data["registrations"] = await registration_service.list_team_registrations(
        session, team_id, include_tokens=is_captain
    )
    return data


async def list_my_teams(session: AsyncSession, identity: Optional[dict]) -> List[Dict]:
    """Teams captained by the caller, newest last."""
    if not identity or not identity.get("subject_id"):
        return []
    result = await session.execute(
        select(Team)
        .where(Team.captain_subject_id == identity["subject_id"])
        .order_by(Team.created_at.asc(), Team.id.asc())
    )
    return [team_to_dict(team) for team in result.scalars().all()]


async def list_my_teams_with_roster(
    session: AsyncSession, identity: Optional[dict]
) -> List[Dict]:
    """Captained teams with their active rosters, for registration forms."""
    teams = await list_my_teams(session, identity)
    for team in teams:
        team["roster"] = [
            roster_member_to_dict(m, p) for m, p in await list_roster(session, team["id"])
        ]
    return teams


async def list_my_memberships(session: AsyncSession, identity: Optional[dict]) -> List[Dict]:
    """Active roster entries (on any team) belonging to the caller."""
    if not identity:
        return []
    conditions = []
    if identity.get("subject_id"):
        conditions.append(Person.subject_id == identity["subject_id"])
    email = person_service.normalize_email(identity.get("email"))
    if email:
        conditions.append(Person.email == email)
    if not conditions:
        return []

    result = await session.execute(
        select(RosterMember, Person, Team)
        .join(Person, RosterMember.person_id == Person.id)
        .join(Team, RosterMember.team_id == Team.id)
        .where(or_(*conditions), RosterMember.is_archived.is_(False))
        .order_by(Team.created_at.asc(), RosterMember.id.asc())
    )
    memberships = []
    seen = set()
    for member, person, team in result.all():
        if member.id in seen:
            continue
        seen.add(member.id)
        item = roster_member_to_dict(member, person)
        item["team_name"] = team.name
        item["captain_name"] = team.captain_name
        memberships.append(item)
    return memberships

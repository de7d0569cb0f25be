"""
Session catalog service.

Generates the recurring calendar of sessions (Tuesday, Wednesday and Thursday
of every week) and computes live occupancy counts.
"""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.models import (
    Session,
    SessionWeekday,
    Registration,
    RegistrationStatus,
    RegistrationMember,
    Person,
    Team,
)
from league_backend.services.exceptions import NotFoundError, ValidationError
from league_backend.utils.constants import (
    DEFAULT_WEEKS_AHEAD,
    MAX_TEAMS_PER_SESSION,
    SESSION_DAYS,
)
from league_backend.utils.datetime_utils import (
    day_in_week,
    start_of_week_monday,
    to_iso_date,
    to_iso_datetime,
    utc_today,
)

logger = logging.getLogger(__name__)


def _insert_for(session: AsyncSession):
    """Dialect-specific INSERT so ON CONFLICT DO NOTHING is available."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(Session)
    return sqlite_insert(Session)


async def ensure_upcoming_sessions(
    session: AsyncSession,
    weeks_ahead: int = DEFAULT_WEEKS_AHEAD,
    today: Optional[date] = None,
) -> Dict:
    """
    Idempotently materialize sessions for the next ``weeks_ahead`` weeks.

    Weeks start at the Monday of the current UTC week. The calendar date is
    the dedup key: an existing session for a date is skipped, never modified.
    Concurrent callers are safe because the insert ignores date collisions.

    Args:
        session: Database session
        weeks_ahead: Number of weeks to cover, including the current one
        today: Override for the current UTC date (tests)

    Returns:
        Dict with the number of newly inserted sessions
    """
    if weeks_ahead < 0:
        raise ValidationError("weeks_ahead must be non-negative.")

    week_start = start_of_week_monday(today or utc_today())
    inserted = 0

    for week_offset in range(weeks_ahead):
        week_monday = week_start + timedelta(days=7 * week_offset)
        for label, weekday in SESSION_DAYS:
            session_date = day_in_week(week_monday, weekday)

            existing = await session.execute(
                select(Session.id).where(Session.date == session_date)
            )
            if existing.scalar_one_or_none() is not None:
                continue

            stmt = (
                _insert_for(session)
                .values(
                    date=session_date,
                    weekday=SessionWeekday(label).value,
                    week_of=week_monday,
                    max_teams=MAX_TEAMS_PER_SESSION,
                )
                .on_conflict_do_nothing(index_elements=["date"])
                .returning(Session.id)
            )
            result = await session.execute(stmt)
            if result.scalar_one_or_none() is not None:
                inserted += 1

    await session.commit()
    if inserted:
        logger.info("Inserted %d upcoming session(s) across %d week(s)", inserted, weeks_ahead)
    return {"inserted": inserted}


async def _live_team_counts(session: AsyncSession, session_ids: List[int]) -> Dict[int, int]:
    """Count non-cancelled registrations per session in one query."""
    if not session_ids:
        return {}
    result = await session.execute(
        select(Registration.session_id, func.count(Registration.id))
        .where(
            Registration.session_id.in_(session_ids),
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
        .group_by(Registration.session_id)
    )
    return {session_id: count for session_id, count in result.all()}


def session_to_dict(league_session: Session, team_count: Optional[int] = None) -> Dict:
    data = {
        "id": league_session.id,
        "date": to_iso_date(league_session.date),
        "weekday": league_session.weekday,
        "week_of": to_iso_date(league_session.week_of),
        "max_teams": league_session.max_teams,
    }
    if team_count is not None:
        data["team_count"] = team_count
        data["spots_remaining"] = max(0, league_session.max_teams - team_count)
    return data


async def list_upcoming(session: AsyncSession, today: Optional[date] = None) -> List[Dict]:
    """
    List sessions dated today or later, soonest first, with live occupancy.

    Capacity is informational: ``spots_remaining`` never goes below zero.
    """
    result = await session.execute(
        select(Session)
        .where(Session.date >= (today or utc_today()))
        .order_by(Session.date.asc())
    )
    sessions = result.scalars().all()
    counts = await _live_team_counts(session, [s.id for s in sessions])
    return [session_to_dict(s, counts.get(s.id, 0)) for s in sessions]


async def get_session_row(session: AsyncSession, session_id: int) -> Optional[Session]:
    result = await session.execute(select(Session).where(Session.id == session_id))
    return result.scalar_one_or_none()


async def get_session_or_raise(session: AsyncSession, session_id: int) -> Session:
    """Write-path lookup: a missing session is an error."""
    league_session = await get_session_row(session, session_id)
    if league_session is None:
        raise NotFoundError("Session not found.")
    return league_session


async def get_session(session: AsyncSession, session_id: int) -> Optional[Dict]:
    """
    Get one session with its registered teams and their weekly members.

    Returns None when the session does not exist. Invite tokens are never
    included here since this view is public.
    """
    league_session = await get_session_row(session, session_id)
    if league_session is None:
        return None

    reg_result = await session.execute(
        select(Registration, Team)
        .join(Team, Registration.team_id == Team.id)
        .where(
            Registration.session_id == session_id,
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
        .order_by(Team.created_at.asc(), Team.id.asc())
    )
    rows = reg_result.all()

    # Batch-fetch members for all live registrations
    members_by_registration: Dict[int, List[Dict]] = {reg.id: [] for reg, _ in rows}
    if members_by_registration:
        member_result = await session.execute(
            select(RegistrationMember, Person)
            .join(Person, RegistrationMember.person_id == Person.id)
            .where(RegistrationMember.registration_id.in_(list(members_by_registration)))
            .order_by(RegistrationMember.id.asc())
        )
        for member, person in member_result.all():
            members_by_registration[member.registration_id].append(
                {
                    "id": member.id,
                    "person_id": member.person_id,
                    "person_name": person.name,
                    "weekly_status": member.weekly_status,
                    "invite_status": member.invite_status,
                    "responded_at": to_iso_datetime(member.responded_at),
                }
            )

    teams = [
        {
            "id": team.id,
            "name": team.name,
            "captain_name": team.captain_name,
            "registration": {
                "id": reg.id,
                "status": reg.status,
                "week_of": to_iso_date(reg.week_of),
                "created_at": to_iso_datetime(reg.created_at),
            },
            "members": members_by_registration[reg.id],
        }
        for reg, team in rows
    ]

    data = session_to_dict(league_session, len(rows))
    data["teams"] = teams
    return data

"""
Tests for invite links: lookup, single-use responses and pending invites.
"""

from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy import select

from league_backend.database.models import Session
from league_backend.services import (
    invite_service,
    person_service,
    registration_service,
    session_service,
    team_service,
)
from league_backend.services.exceptions import ConflictError, NotFoundError, ValidationError

CAPTAIN = {"subject_id": "sub-captain", "email": "captain@example.com", "name": "Casey Captain"}
PLAYERS = [
    {"name": "Pat One", "email": "p1@example.com"},
    {"name": "Pat Two", "email": "p2@example.com"},
]


@pytest_asyncio.fixture
async def registration(db_session):
    """Team registered for Tuesday 2024-06-04, returned with invite tokens."""
    await session_service.ensure_upcoming_sessions(db_session, weeks_ahead=1, today=date(2024, 6, 3))
    result = await db_session.execute(select(Session.id).where(Session.date == date(2024, 6, 4)))
    team = await team_service.create_team(
        db_session, CAPTAIN, "Set to Win", PLAYERS, session_id=result.scalar_one()
    )
    return await registration_service.get_registration(
        db_session, team["registration_id"], include_tokens=True
    )


async def _token_for(db_session, registration, email):
    person = await person_service.get_person_by_email(db_session, email)
    return next(m["invite_token"] for m in registration["members"] if m["person_id"] == person.id)


def test_build_invite_url():
    url = invite_service.build_invite_url("abc123")
    assert url == f"{invite_service.FRONTEND_BASE_URL}/invite/abc123"


def test_new_invite_tokens_are_unique():
    tokens = {invite_service.new_invite_token() for _ in range(50)}
    assert len(tokens) == 50


@pytest.mark.asyncio
async def test_get_invite_by_token(db_session, registration):
    token = await _token_for(db_session, registration, "p1@example.com")

    invite = await invite_service.get_invite_by_token(db_session, token)
    assert invite["person_name"] == "Pat One"
    assert invite["team"]["name"] == "Set to Win"
    assert invite["session"]["date"] == "2024-06-04"
    assert invite["invite_status"] == "invited"

    assert await invite_service.get_invite_by_token(db_session, "nope") is None
    assert await invite_service.get_invite_by_token(db_session, "") is None


@pytest.mark.asyncio
async def test_respond_consumes_token(db_session, registration):
    token = await _token_for(db_session, registration, "p1@example.com")

    result = await invite_service.respond_to_invite(db_session, token, "confirmed")
    assert result == {"ok": True, "invite_status": "confirmed"}

    updated = await registration_service.get_registration(
        db_session, registration["id"], include_tokens=True
    )
    person = await person_service.get_person_by_email(db_session, "p1@example.com")
    member = next(m for m in updated["members"] if m["person_id"] == person.id)
    assert member["invite_status"] == "confirmed"
    assert member["invite_token"] is None
    assert member["responded_at"] is not None
    assert member["weekly_status"] == "active"
    # Responses do not change the aggregate
    assert updated["status"] == "confirmed"

    assert await invite_service.get_invite_by_token(db_session, token) is None


@pytest.mark.asyncio
async def test_responding_twice_fails(db_session, registration):
    token = await _token_for(db_session, registration, "p2@example.com")
    await invite_service.respond_to_invite(db_session, token, "declined")

    with pytest.raises(ConflictError, match="This invite has already been responded to."):
        await invite_service.respond_to_invite(db_session, token, "confirmed")


@pytest.mark.asyncio
async def test_unknown_token(db_session, registration):
    with pytest.raises(NotFoundError, match="Invite not found."):
        await invite_service.respond_to_invite(db_session, "missing-token", "confirmed")


@pytest.mark.asyncio
async def test_invalid_response_value(db_session, registration):
    token = await _token_for(db_session, registration, "p1@example.com")
    with pytest.raises(ValidationError):
        await invite_service.respond_to_invite(db_session, token, "maybe")


@pytest.mark.asyncio
async def test_cancelled_registration_tokens_are_inert(db_session, registration):
    token = await _token_for(db_session, registration, "p1@example.com")
    await registration_service.leave_session(db_session, registration["id"], CAPTAIN)

    with pytest.raises(ConflictError, match="This session registration has been cancelled."):
        await invite_service.respond_to_invite(db_session, token, "confirmed")


@pytest.mark.asyncio
async def test_respond_renames_and_links_person(db_session, registration):
    token = await _token_for(db_session, registration, "p1@example.com")
    identity = {"subject_id": "sub-p1", "email": "p1@example.com", "name": "Patricia"}

    await invite_service.respond_to_invite(
        db_session, token, "confirmed", name="  Patricia One ", identity=identity
    )

    person = await person_service.get_person_by_email(db_session, "p1@example.com")
    assert person.name == "Patricia One"
    assert person.subject_id == "sub-p1"


@pytest.mark.asyncio
async def test_list_my_pending_invites(db_session, registration):
    identity = {"subject_id": "sub-p2", "email": "p2@example.com", "name": "Pat Two"}

    pending = await invite_service.list_my_pending_invites(db_session, identity)
    assert len(pending) == 1
    assert pending[0]["team_name"] == "Set to Win"
    assert pending[0]["invite_url"].endswith(pending[0]["invite_token"])

    await invite_service.respond_to_invite(db_session, pending[0]["invite_token"], "confirmed")
    assert await invite_service.list_my_pending_invites(db_session, identity) == []

    stranger = {"subject_id": "sub-x", "email": "x@example.com"}
    assert await invite_service.list_my_pending_invites(db_session, stranger) == []

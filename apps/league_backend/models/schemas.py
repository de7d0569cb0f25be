"""
Pydantic models for API request/response validation.

Business validation (name lengths, email syntax, player counts) lives in the
services so the messages stay identical across callers; these models only
check shape.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, model_validator


class EnsureSessionsRequest(BaseModel):
    """Request to materialize upcoming sessions."""

    weeks_ahead: Optional[int] = Field(default=None, ge=0, le=52)


class EnsureSessionsResponse(BaseModel):
    inserted: int


class SessionSummary(BaseModel):
    """Upcoming session with live occupancy."""

    id: int
    date: str
    weekday: str
    week_of: str
    max_teams: int
    team_count: int
    spots_remaining: int


class PlayerInput(BaseModel):
    """Invited player on team creation."""

    name: str = ""
    email: str = ""


class CreateTeamRequest(BaseModel):
    """Request to create a team, optionally joining a session immediately."""

    name: str
    players: List[PlayerInput]
    session_id: Optional[int] = None


class UpdateTeamRequest(BaseModel):
    name: str


class AddMemberRequest(BaseModel):
    """Request to add a player to a team roster."""

    name: str
    email: str
    default_weekly_status: str = "active"


class UpdateMemberRequest(BaseModel):
    default_weekly_status: str


class MemberSelection(BaseModel):
    """Weekly status for one person within a registration."""

    person_id: int
    weekly_status: str


class RegisterTeamRequest(BaseModel):
    """Request to register a team for a session."""

    team_id: int
    session_id: int
    member_selections: Optional[List[MemberSelection]] = None


class UpdateRegistrationMembersRequest(BaseModel):
    selections: List[MemberSelection]

    @model_validator(mode="after")
    def validate_unique_people(self):
        person_ids = [s.person_id for s in self.selections]
        if len(person_ids) != len(set(person_ids)):
            raise ValueError("Each person may only appear once in selections")
        return self


class InviteResponseRequest(BaseModel):
    """Confirm or decline an invite."""

    response: str  # 'confirmed' | 'declined'
    name: Optional[str] = None


class FreeAgentSignupRequest(BaseModel):
    """Request to sign up as a free agent for a session."""

    name: str
    email: str
    phone: Optional[str] = None


class PersonResponse(BaseModel):
    id: int
    name: str
    email: str
    subject_id: Optional[str] = None


class OkResponse(BaseModel):
    ok: bool = True

"""
SQLAlchemy ORM models for the weekly league session system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from league_backend.database.db import Base


class SessionWeekday(str, enum.Enum):
    """Fixed weekdays sessions are played on."""

    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"


class RosterRole(str, enum.Enum):
    """Role of a person on a team roster."""

    CAPTAIN = "captain"
    PLAYER = "player"


class WeeklyStatus(str, enum.Enum):
    """A person's availability for one week (or their roster default)."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    NOT_INVITED = "not_invited"


class RegistrationStatus(str, enum.Enum):
    """Session registration status enum."""

    FORMING = "forming"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


class InviteStatus(str, enum.Enum):
    """Per-member invite status derived from weekly status and responses."""

    INVITED = "invited"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    INACTIVE = "inactive"
    NOT_INVITED = "not_invited"


class FreeAgentStatus(str, enum.Enum):
    """Free agent signup status enum."""

    AVAILABLE = "available"
    ASSIGNED = "assigned"


class Person(Base):
    """Identity-independent player profile, keyed by normalized email."""

    __tablename__ = "people"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)  # Trimmed + lower-cased
    subject_id = Column(String, nullable=True)  # External identity subject
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    roster_entries = relationship("RosterMember", back_populates="person")
    registration_entries = relationship("RegistrationMember", back_populates="person")

    __table_args__ = (
        Index("idx_people_email", "email", unique=True),
        Index("idx_people_subject_id", "subject_id", unique=True),
    )


class Session(Base):
    """A single day of play. Immutable once generated."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)  # Natural dedup key, see idx_sessions_date
    weekday = Column(String(16), nullable=False)
    week_of = Column(Date, nullable=False)  # Monday of the session's week
    max_teams = Column(Integer, nullable=False, default=24)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    registrations = relationship("Registration", back_populates="session")
    free_agents = relationship("FreeAgent", back_populates="session")

    __table_args__ = (
        CheckConstraint(
            "weekday IN ('tuesday', 'wednesday', 'thursday')", name="ck_sessions_weekday"
        ),
        Index("idx_sessions_date", "date", unique=True),
        Index("idx_sessions_week_of", "week_of"),
    )


class Team(Base):
    """Teams formed by a captain. Related to sessions only through registrations."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    captain_subject_id = Column(String, nullable=False)
    captain_name = Column(String, nullable=False)  # Denormalized at creation
    captain_email = Column(String, nullable=False)  # Denormalized at creation
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    roster = relationship(
        "RosterMember", back_populates="team", cascade="all, delete-orphan"
    )
    registrations = relationship("Registration", back_populates="team")

    __table_args__ = (Index("idx_teams_captain_subject", "captain_subject_id"),)


class RosterMember(Base):
    """A person's standing association with a team.

    Never hard-deleted once referenced: removal sets ``is_archived``.
    """

    __tablename__ = "team_roster_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    person_id = Column(Integer, ForeignKey("people.id"), nullable=False)
    role = Column(String(16), nullable=False, server_default=RosterRole.PLAYER.value)
    default_weekly_status = Column(
        String(16), nullable=False, server_default=WeeklyStatus.ACTIVE.value
    )
    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    team = relationship("Team", back_populates="roster")
    person = relationship("Person", back_populates="roster_entries")

    __table_args__ = (
        UniqueConstraint("team_id", "person_id", name="uq_roster_team_person"),
        CheckConstraint("role IN ('captain', 'player')", name="ck_roster_role"),
        CheckConstraint(
            "default_weekly_status IN ('active', 'inactive', 'not_invited')",
            name="ck_roster_default_weekly_status",
        ),
        Index("idx_roster_team", "team_id"),
        Index("idx_roster_person", "person_id"),
    )


class Registration(Base):
    """Binds one team to one session for one week."""

    __tablename__ = "session_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    week_of = Column(Date, nullable=False)  # Copied from the session
    status = Column(String(16), nullable=False, server_default=RegistrationStatus.FORMING.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    session = relationship("Session", back_populates="registrations")
    team = relationship("Team", back_populates="registrations")
    members = relationship(
        "RegistrationMember",
        back_populates="registration",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('forming', 'confirmed', 'waitlisted', 'cancelled')",
            name="ck_registrations_status",
        ),
        # At most one live registration per (team, session)
        Index(
            "uq_registrations_team_session_live",
            "team_id",
            "session_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("idx_registrations_session", "session_id"),
        Index("idx_registrations_team", "team_id"),
        Index("idx_registrations_week_of", "week_of"),
    )


class RegistrationMember(Base):
    """Per-person line item within a registration.

    ``invite_token`` is set only while weekly status is active and no response
    has been recorded. ``responded_token`` keeps the consumed token so a
    replayed invite link can be told apart from an unknown one.
    """

    __tablename__ = "session_registration_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_id = Column(
        Integer, ForeignKey("session_registrations.id", ondelete="CASCADE"), nullable=False
    )
    person_id = Column(Integer, ForeignKey("people.id"), nullable=False)
    weekly_status = Column(String(16), nullable=False)
    invite_status = Column(String(16), nullable=False)
    invite_token = Column(String(64), nullable=True)
    responded_token = Column(String(64), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    registration = relationship("Registration", back_populates="members")
    person = relationship("Person", back_populates="registration_entries")

    __table_args__ = (
        UniqueConstraint("registration_id", "person_id", name="uq_registration_member_person"),
        CheckConstraint(
            "weekly_status IN ('active', 'inactive', 'not_invited')",
            name="ck_registration_members_weekly_status",
        ),
        CheckConstraint(
            "invite_status IN ('invited', 'confirmed', 'declined', 'inactive', 'not_invited')",
            name="ck_registration_members_invite_status",
        ),
        Index("idx_registration_members_registration", "registration_id"),
        Index("idx_registration_members_person", "person_id"),
        Index("idx_registration_members_token", "invite_token", unique=True),
        Index("idx_registration_members_responded_token", "responded_token"),
    )


class FreeAgent(Base):
    """Unaffiliated player signup for one session."""

    __tablename__ = "free_agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False)
    person_id = Column(Integer, ForeignKey("people.id"), nullable=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)  # Normalized
    phone = Column(String, nullable=True)
    subject_id = Column(String, nullable=True)
    status = Column(String(16), nullable=False, server_default=FreeAgentStatus.AVAILABLE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    session = relationship("Session", back_populates="free_agents")
    person = relationship("Person")

    __table_args__ = (
        CheckConstraint("status IN ('available', 'assigned')", name="ck_free_agents_status"),
        Index("idx_free_agents_session", "session_id"),
        # At most one available signup per email and session
        Index(
            "uq_free_agents_session_email_available",
            "session_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'available'"),
            sqlite_where=text("status = 'available'"),
        ),
    )

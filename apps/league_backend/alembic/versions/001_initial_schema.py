"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

People, sessions, teams with rosters, session registrations with their
members, and free agents.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = False):
    columns = [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.text("now()"),
                nullable=True,
            )
        )
    return columns


def upgrade() -> None:
    """Create all league tables with indexes and constraints."""
    op.create_table(
        "people",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("subject_id", sa.String(), nullable=True),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_people_email", "people", ["email"], unique=True)
    op.create_index("idx_people_subject_id", "people", ["subject_id"], unique=True)

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("weekday", sa.String(16), nullable=False),
        sa.Column("week_of", sa.Date(), nullable=False),
        sa.Column("max_teams", sa.Integer(), nullable=False, server_default="24"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "weekday IN ('tuesday', 'wednesday', 'thursday')", name="ck_sessions_weekday"
        ),
    )
    op.create_index("idx_sessions_date", "sessions", ["date"], unique=True)
    op.create_index("idx_sessions_week_of", "sessions", ["week_of"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("captain_subject_id", sa.String(), nullable=False),
        sa.Column("captain_name", sa.String(), nullable=False),
        sa.Column("captain_email", sa.String(), nullable=False),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_teams_captain_subject", "teams", ["captain_subject_id"])

    op.create_table(
        "team_roster_members",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="player"),
        sa.Column(
            "default_weekly_status", sa.String(16), nullable=False, server_default="active"
        ),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.UniqueConstraint("team_id", "person_id", name="uq_roster_team_person"),
        sa.CheckConstraint("role IN ('captain', 'player')", name="ck_roster_role"),
        sa.CheckConstraint(
            "default_weekly_status IN ('active', 'inactive', 'not_invited')",
            name="ck_roster_default_weekly_status",
        ),
    )
    op.create_index("idx_roster_team", "team_roster_members", ["team_id"])
    op.create_index("idx_roster_person", "team_roster_members", ["person_id"])

    op.create_table(
        "session_registrations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("week_of", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="forming"),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.CheckConstraint(
            "status IN ('forming', 'confirmed', 'waitlisted', 'cancelled')",
            name="ck_registrations_status",
        ),
    )
    op.create_index(
        "uq_registrations_team_session_live",
        "session_registrations",
        ["team_id", "session_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )
    op.create_index("idx_registrations_session", "session_registrations", ["session_id"])
    op.create_index("idx_registrations_team", "session_registrations", ["team_id"])
    op.create_index("idx_registrations_week_of", "session_registrations", ["week_of"])

    op.create_table(
        "session_registration_members",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("registration_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("weekly_status", sa.String(16), nullable=False),
        sa.Column("invite_status", sa.String(16), nullable=False),
        sa.Column("invite_token", sa.String(64), nullable=True),
        sa.Column("responded_token", sa.String(64), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["registration_id"], ["session_registrations.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.UniqueConstraint(
            "registration_id", "person_id", name="uq_registration_member_person"
        ),
        sa.CheckConstraint(
            "weekly_status IN ('active', 'inactive', 'not_invited')",
            name="ck_registration_members_weekly_status",
        ),
        sa.CheckConstraint(
            "invite_status IN ('invited', 'confirmed', 'declined', 'inactive', 'not_invited')",
            name="ck_registration_members_invite_status",
        ),
    )
    op.create_index(
        "idx_registration_members_registration",
        "session_registration_members",
        ["registration_id"],
    )
    op.create_index(
        "idx_registration_members_person", "session_registration_members", ["person_id"]
    )
    op.create_index(
        "idx_registration_members_token",
        "session_registration_members",
        ["invite_token"],
        unique=True,
    )
    op.create_index(
        "idx_registration_members_responded_token",
        "session_registration_members",
        ["responded_token"],
    )

    op.create_table(
        "free_agents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("subject_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="available"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.CheckConstraint("status IN ('available', 'assigned')", name="ck_free_agents_status"),
    )
    op.create_index("idx_free_agents_session", "free_agents", ["session_id"])
    op.create_index(
        "uq_free_agents_session_email_available",
        "free_agents",
        ["session_id", "email"],
        unique=True,
        postgresql_where=sa.text("status = 'available'"),
    )


def downgrade() -> None:
    """Drop all league tables."""
    op.drop_table("free_agents")
    op.drop_table("session_registration_members")
    op.drop_table("session_registrations")
    op.drop_table("team_roster_members")
    op.drop_table("teams")
    op.drop_table("sessions")
    op.drop_table("people")

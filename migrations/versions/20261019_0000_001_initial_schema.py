"""Create congregation registry and weekend meeting scheduling tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

This migration creates:
- Registry (congregations, publishers, public_talks, speakers, speaker_talks)
- Meeting programs (meeting_programs, meeting_program_parts, meeting_scheduled_parts)
- Public talk schedules (scheduled_public_talks)
- Blocked Sundays (meeting_exceptions)
- Audit trail (audit_log)
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    # Create enum types
    op.execute("CREATE TYPE talk_status AS ENUM ('circuit_overseer', 'will_be_replaced')")
    op.execute("CREATE TYPE meeting_type AS ENUM ('weekend', 'midweek')")
    op.execute(
        """
        CREATE TYPE meeting_part_type AS ENUM (
            'chairman', 'public_talk', 'circuit_overseer_talk',
            'watchtower_study', 'reader', 'closing_prayer'
        )
        """
    )
    op.execute("CREATE TYPE speaker_source_type AS ENUM ('visiting_speaker', 'local_publisher')")
    op.execute(
        """
        CREATE TYPE meeting_exception_type AS ENUM (
            'circuit_assembly', 'regional_convention', 'memorial'
        )
        """
    )

    # Create congregations table
    op.create_table(
        "congregations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # Create publishers table
    op.create_table(
        "publishers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False, index=True),
        sa.Column("user_id", sa.String(255), nullable=True, unique=True),
        sa.Column("is_elder", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_ministerial_servant", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_regular_pioneer", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("can_chair_weekend_meeting", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("conducts_watchtower_study", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "backup_watchtower_conductor", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("is_reader", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("offers_public_prayer", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("delivers_public_talks", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_circuit_overseer", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
    )

    # Create public_talks table
    op.create_table(
        "public_talks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("no", sa.Integer(), nullable=False, index=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("multimedia_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("video_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status",
            postgresql.ENUM(
                "circuit_overseer",
                "will_be_replaced",
                name="talk_status",
                create_type=False,
            ),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # Create speakers table
    op.create_table(
        "speakers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False, index=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("congregation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default="false", index=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["congregation_id"], ["congregations.id"], ondelete="SET NULL"),
    )

    # Create speaker_talks table
    op.create_table(
        "speaker_talks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("speaker_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("talk_id", sa.Integer(), nullable=False, index=True),
        sa.ForeignKeyConstraint(["speaker_id"], ["speakers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["talk_id"], ["public_talks.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("speaker_id", "talk_id", name="uq_speaker_talk"),
    )

    # Create meeting_programs table
    op.create_table(
        "meeting_programs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "type",
            postgresql.ENUM("weekend", "midweek", name="meeting_type", create_type=False),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("is_circuit_overseer_visit", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("type", "date", name="uq_meeting_program_type_date"),
    )

    # Create meeting_program_parts table
    op.create_table(
        "meeting_program_parts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("meeting_program_id", sa.Integer(), nullable=False, index=True),
        sa.Column(
            "type",
            postgresql.ENUM(
                "chairman",
                "public_talk",
                "circuit_overseer_talk",
                "watchtower_study",
                "reader",
                "closing_prayer",
                name="meeting_part_type",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["meeting_program_id"], ["meeting_programs.id"], ondelete="RESTRICT"
        ),
        sa.UniqueConstraint("meeting_program_id", "type", name="uq_meeting_program_part_type"),
    )

    # Create meeting_scheduled_parts table
    op.create_table(
        "meeting_scheduled_parts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("meeting_program_part_id", sa.Integer(), nullable=False, unique=True),
        sa.Column("publisher_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["meeting_program_part_id"], ["meeting_program_parts.id"], ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(["publisher_id"], ["publishers.id"], ondelete="RESTRICT"),
    )

    # Create scheduled_public_talks table
    op.create_table(
        "scheduled_public_talks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("meeting_program_id", sa.Integer(), nullable=False, index=True),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column(
            "speaker_source_type",
            postgresql.ENUM(
                "visiting_speaker",
                "local_publisher",
                name="speaker_source_type",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("speaker_id", postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("publisher_id", postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("talk_id", sa.Integer(), nullable=True),
        sa.Column("custom_talk_title", sa.String(200), nullable=True),
        sa.Column("override_validation", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["meeting_program_id"], ["meeting_programs.id"], ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(["part_id"], ["meeting_program_parts.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["speaker_id"], ["speakers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["publisher_id"], ["publishers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["talk_id"], ["public_talks.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint(
            "date", "meeting_program_id", "part_id", name="uq_scheduled_public_talk_slot"
        ),
        sa.CheckConstraint(
            "(speaker_source_type = 'visiting_speaker'"
            " AND speaker_id IS NOT NULL AND publisher_id IS NULL)"
            " OR (speaker_source_type = 'local_publisher'"
            " AND publisher_id IS NOT NULL AND speaker_id IS NULL)",
            name="ck_scheduled_public_talk_speaker_source",
        ),
    )

    # Create meeting_exceptions table
    op.create_table(
        "meeting_exceptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False, unique=True),
        sa.Column(
            "exception_type",
            postgresql.ENUM(
                "circuit_assembly",
                "regional_convention",
                "memorial",
                name="meeting_exception_type",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )

    # Create audit_log table
    op.create_table(
        "audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.String(64), nullable=False, index=True),
        sa.Column("resource_type", sa.String(64), nullable=False),
        sa.Column("resource_id", sa.String(64), nullable=True),
        sa.Column("actor_id", sa.String(255), nullable=True, index=True),
        sa.Column("actor_email", sa.String(255), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # Create indexes
    op.create_index(
        "ix_scheduled_public_talks_speaker_date",
        "scheduled_public_talks",
        ["speaker_id", "date"],
    )


def downgrade() -> None:
    # Drop indexes
    op.drop_index("ix_scheduled_public_talks_speaker_date", "scheduled_public_talks")

    # Drop tables in reverse order (respecting foreign keys)
    op.drop_table("audit_log")
    op.drop_table("meeting_exceptions")
    op.drop_table("scheduled_public_talks")
    op.drop_table("meeting_scheduled_parts")
    op.drop_table("meeting_program_parts")
    op.drop_table("meeting_programs")
    op.drop_table("speaker_talks")
    op.drop_table("speakers")
    op.drop_table("public_talks")
    op.drop_table("publishers")
    op.drop_table("congregations")

    # Drop enum types
    op.execute("DROP TYPE meeting_exception_type")
    op.execute("DROP TYPE speaker_source_type")
    op.execute("DROP TYPE meeting_part_type")
    op.execute("DROP TYPE meeting_type")
    op.execute("DROP TYPE talk_status")

"""
Scheduling Module Database Models

SQLAlchemy models for weekend meeting programs, their parts, the people
assigned to them and the Sundays blocked out by meeting exceptions.

Foreign keys between the four scheduling tables are ``ON DELETE RESTRICT``;
removing a program has to go through ``delete_program_cascade``.
"""

import uuid
import datetime as dt
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from congregation_planner.congregation.models import Publisher, PublicTalk, Speaker
from congregation_planner.core.database import Base, utcnow


# =============================================================================
# Enums
# =============================================================================


class MeetingType(StrEnum):
    WEEKEND = "weekend"
    MIDWEEK = "midweek"


class MeetingPartType(StrEnum):
    """Structural parts of a weekend meeting."""

    CHAIRMAN = "chairman"
    PUBLIC_TALK = "public_talk"
    CIRCUIT_OVERSEER_TALK = "circuit_overseer_talk"
    WATCHTOWER_STUDY = "watchtower_study"
    READER = "reader"
    CLOSING_PRAYER = "closing_prayer"


# Display order of the parts in a weekend program
MEETING_PART_ORDER: tuple[MeetingPartType, ...] = (
    MeetingPartType.CHAIRMAN,
    MeetingPartType.PUBLIC_TALK,
    MeetingPartType.CIRCUIT_OVERSEER_TALK,
    MeetingPartType.WATCHTOWER_STUDY,
    MeetingPartType.READER,
    MeetingPartType.CLOSING_PRAYER,
)


def part_order(part_type: MeetingPartType) -> int:
    return MEETING_PART_ORDER.index(part_type) + 1


class ProgramState(StrEnum):
    """Derived scheduling state of the weekend program on a date."""

    ABSENT = "absent"
    PARTIALLY_SCHEDULED = "partially_scheduled"
    FULLY_SCHEDULED = "fully_scheduled"


class SpeakerSourceType(StrEnum):
    """Who delivers a scheduled public talk."""

    VISITING_SPEAKER = "visiting_speaker"  # speakers table
    LOCAL_PUBLISHER = "local_publisher"  # publishers table


class MeetingExceptionType(StrEnum):
    CIRCUIT_ASSEMBLY = "circuit_assembly"
    REGIONAL_CONVENTION = "regional_convention"
    MEMORIAL = "memorial"


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# Meeting Programs
# =============================================================================


class MeetingProgram(Base):
    """One meeting on one calendar date."""

    __tablename__ = "meeting_programs"
    __table_args__ = (UniqueConstraint("type", "date", name="uq_meeting_program_type_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[MeetingType] = mapped_column(
        Enum(MeetingType, name="meeting_type", values_callable=_enum_values),
        default=MeetingType.WEEKEND,
    )
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    name: Mapped[str | None] = mapped_column(String(255))
    is_circuit_overseer_visit: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    parts: Mapped[list["MeetingProgramPart"]] = relationship(
        back_populates="meeting_program",
        order_by="MeetingProgramPart.order",
    )

    def get_part(self, part_type: MeetingPartType) -> "MeetingProgramPart | None":
        for part in self.parts:
            if part.type == part_type:
                return part
        return None


class MeetingProgramPart(Base):
    """An ordered part of a program; one part of each type per program."""

    __tablename__ = "meeting_program_parts"
    __table_args__ = (
        UniqueConstraint("meeting_program_id", "type", name="uq_meeting_program_part_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meeting_program_id: Mapped[int] = mapped_column(
        ForeignKey("meeting_programs.id", ondelete="RESTRICT"), index=True
    )
    type: Mapped[MeetingPartType] = mapped_column(
        Enum(MeetingPartType, name="meeting_part_type", values_callable=_enum_values)
    )
    order: Mapped[int] = mapped_column(Integer)
    name: Mapped[str | None] = mapped_column(String(255))  # CO talk title
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    meeting_program: Mapped["MeetingProgram"] = relationship(back_populates="parts")
    scheduled_parts: Mapped[list["MeetingScheduledPart"]] = relationship(
        back_populates="part"
    )
    scheduled_public_talks: Mapped[list["ScheduledPublicTalk"]] = relationship(
        back_populates="part"
    )


class MeetingScheduledPart(Base):
    """A publisher assigned to a non-public-talk part."""

    __tablename__ = "meeting_scheduled_parts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_program_part_id: Mapped[int] = mapped_column(
        ForeignKey("meeting_program_parts.id", ondelete="RESTRICT"), unique=True
    )
    publisher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("publishers.id", ondelete="RESTRICT"), index=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    part: Mapped["MeetingProgramPart"] = relationship(back_populates="scheduled_parts")
    publisher: Mapped["Publisher"] = relationship()


class ScheduledPublicTalk(Base):
    """
    The public talk of one program: who gives it and which talk.

    Exactly one of ``speaker_id`` / ``publisher_id`` is set, matching
    ``speaker_source_type``. At most one row per (date, program, part).
    """

    __tablename__ = "scheduled_public_talks"
    __table_args__ = (
        UniqueConstraint(
            "date", "meeting_program_id", "part_id", name="uq_scheduled_public_talk_slot"
        ),
        CheckConstraint(
            "(speaker_source_type = 'visiting_speaker'"
            " AND speaker_id IS NOT NULL AND publisher_id IS NULL)"
            " OR (speaker_source_type = 'local_publisher'"
            " AND publisher_id IS NOT NULL AND speaker_id IS NULL)",
            name="ck_scheduled_public_talk_speaker_source",
        ),
        Index("ix_scheduled_public_talks_speaker_date", "speaker_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    meeting_program_id: Mapped[int] = mapped_column(
        ForeignKey("meeting_programs.id", ondelete="RESTRICT"), index=True
    )
    part_id: Mapped[int] = mapped_column(
        ForeignKey("meeting_program_parts.id", ondelete="RESTRICT")
    )
    speaker_source_type: Mapped[SpeakerSourceType] = mapped_column(
        Enum(SpeakerSourceType, name="speaker_source_type", values_callable=_enum_values)
    )
    speaker_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("speakers.id", ondelete="RESTRICT"), index=True
    )
    publisher_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("publishers.id", ondelete="RESTRICT"), index=True
    )
    talk_id: Mapped[int | None] = mapped_column(ForeignKey("public_talks.id", ondelete="RESTRICT"))
    custom_talk_title: Mapped[str | None] = mapped_column(String(200))
    override_validation: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    meeting_program: Mapped["MeetingProgram"] = relationship()
    part: Mapped["MeetingProgramPart"] = relationship(back_populates="scheduled_public_talks")
    speaker: Mapped["Speaker | None"] = relationship()
    publisher: Mapped["Publisher | None"] = relationship()
    talk: Mapped["PublicTalk | None"] = relationship()

    @property
    def speaker_name(self) -> str | None:
        if self.speaker_source_type == SpeakerSourceType.VISITING_SPEAKER:
            person = self.speaker
        else:
            person = self.publisher
        return person.full_name if person else None

    @property
    def talk_number(self) -> int | None:
        return self.talk.no if self.talk else None

    @property
    def talk_title(self) -> str | None:
        return self.custom_talk_title or (self.talk.title if self.talk else None)


# =============================================================================
# Meeting Exceptions
# =============================================================================


class MeetingException(Base):
    """A Sunday without a regular weekend meeting."""

    __tablename__ = "meeting_exceptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    date: Mapped[dt.date] = mapped_column(Date, unique=True)
    exception_type: Mapped[MeetingExceptionType] = mapped_column(
        Enum(MeetingExceptionType, name="meeting_exception_type", values_callable=_enum_values)
    )
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

"""
Congregation Module Database Models

SQLAlchemy models for the people and talks the weekend meeting draws on:
local publishers, visiting speakers, their congregations and the public talk
catalog.
"""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from congregation_planner.core.database import Base, utcnow


# =============================================================================
# Enums
# =============================================================================


class TalkStatus(StrEnum):
    """Optional flag on a public talk."""

    CIRCUIT_OVERSEER = "circuit_overseer"  # Reserved for the CO
    WILL_BE_REPLACED = "will_be_replaced"  # Outline being retired


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# Models
# =============================================================================


class Congregation(Base):
    """A congregation visiting speakers come from."""

    __tablename__ = "congregations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    speakers: Mapped[list["Speaker"]] = relationship(back_populates="congregation")


class Publisher(Base):
    """
    A member of the local congregation.

    Capability flags decide which weekend meeting parts the publisher may
    take. Publishers are never deleted; flags are toggled instead.
    """

    __tablename__ = "publishers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100), index=True)

    # Linked user account (at most one publisher per account)
    user_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    # Capabilities
    is_elder: Mapped[bool] = mapped_column(Boolean, default=False)
    is_ministerial_servant: Mapped[bool] = mapped_column(Boolean, default=False)
    is_regular_pioneer: Mapped[bool] = mapped_column(Boolean, default=False)
    can_chair_weekend_meeting: Mapped[bool] = mapped_column(Boolean, default=False)
    conducts_watchtower_study: Mapped[bool] = mapped_column(Boolean, default=False)
    backup_watchtower_conductor: Mapped[bool] = mapped_column(Boolean, default=False)
    is_reader: Mapped[bool] = mapped_column(Boolean, default=False)
    offers_public_prayer: Mapped[bool] = mapped_column(Boolean, default=False)
    delivers_public_talks: Mapped[bool] = mapped_column(Boolean, default=False)
    is_circuit_overseer: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class PublicTalk(Base):
    """A numbered public talk outline."""

    __tablename__ = "public_talks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    no: Mapped[int] = mapped_column(Integer, index=True)
    title: Mapped[str] = mapped_column(String(500))
    multimedia_count: Mapped[int] = mapped_column(Integer, default=0)
    video_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[TalkStatus | None] = mapped_column(
        Enum(TalkStatus, name="talk_status", values_callable=_enum_values),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class SpeakerTalk(Base):
    """A visiting speaker is approved to give a talk."""

    __tablename__ = "speaker_talks"
    __table_args__ = (UniqueConstraint("speaker_id", "talk_id", name="uq_speaker_talk"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    speaker_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("speakers.id", ondelete="CASCADE"), index=True
    )
    talk_id: Mapped[int] = mapped_column(
        ForeignKey("public_talks.id", ondelete="CASCADE"), index=True
    )


class Speaker(Base):
    """
    A visiting speaker from another congregation.

    Archived speakers drop out of every candidate pool but stay referenced by
    past schedules.
    """

    __tablename__ = "speakers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100), index=True)
    phone: Mapped[str | None] = mapped_column(String(50))
    congregation_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("congregations.id", ondelete="SET NULL"), nullable=True
    )
    archived: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    congregation: Mapped["Congregation | None"] = relationship(
        back_populates="speakers", lazy="selectin"
    )
    talks: Mapped[list["PublicTalk"]] = relationship(
        secondary="speaker_talks", lazy="selectin", order_by="PublicTalk.no"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

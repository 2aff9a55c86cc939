"""
Congregation Module Pydantic Schemas

API request/response schemas for publishers, speakers, public talks and
congregations.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from congregation_planner.congregation.models import TalkStatus


def _strip(value: str) -> str:
    return value.strip()


# =============================================================================
# Congregation Schemas
# =============================================================================


class CongregationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)

    _strip_name = field_validator("name")(_strip)


class CongregationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


# =============================================================================
# Publisher Schemas
# =============================================================================


class PublisherBase(BaseModel):
    """Capability flags shared by create and response schemas."""

    is_elder: bool = False
    is_ministerial_servant: bool = False
    is_regular_pioneer: bool = False
    can_chair_weekend_meeting: bool = False
    conducts_watchtower_study: bool = False
    backup_watchtower_conductor: bool = False
    is_reader: bool = False
    offers_public_prayer: bool = False
    delivers_public_talks: bool = False
    is_circuit_overseer: bool = False


class PublisherCreate(PublisherBase):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    user_id: str | None = None

    _strip_names = field_validator("first_name", "last_name")(_strip)


class PublisherUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    is_elder: bool | None = None
    is_ministerial_servant: bool | None = None
    is_regular_pioneer: bool | None = None
    can_chair_weekend_meeting: bool | None = None
    conducts_watchtower_study: bool | None = None
    backup_watchtower_conductor: bool | None = None
    is_reader: bool | None = None
    offers_public_prayer: bool | None = None
    delivers_public_talks: bool | None = None
    is_circuit_overseer: bool | None = None


class LinkUserRequest(BaseModel):
    """Link a publisher to a user account, or unlink with ``null``."""

    user_id: str | None


class PublisherResponse(PublisherBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    user_id: str | None
    created_at: datetime
    updated_at: datetime


class PublisherBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str


class AvailableForPartsResponse(BaseModel):
    """Publishers grouped by the weekend meeting parts they may take."""

    chairman: list[PublisherBrief] = []
    watchtower_study: list[PublisherBrief] = []
    reader: list[PublisherBrief] = []
    prayer: list[PublisherBrief] = []
    circuit_overseer_talk: list[PublisherBrief] = []


# =============================================================================
# Public Talk Schemas
# =============================================================================


class PublicTalkCreate(BaseModel):
    no: int = Field(gt=0)
    title: str = Field(min_length=3, max_length=500)
    multimedia_count: int = Field(default=0, ge=0, le=50)
    video_count: int = Field(default=0, ge=0, le=20)

    _strip_title = field_validator("title")(_strip)


class PublicTalkUpdate(BaseModel):
    no: int | None = Field(default=None, gt=0)
    title: str | None = Field(default=None, min_length=3, max_length=500)
    multimedia_count: int | None = Field(default=None, ge=0, le=50)
    video_count: int | None = Field(default=None, ge=0, le=20)


class PublicTalkStatusUpdate(BaseModel):
    status: TalkStatus | None


class PublicTalkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    no: int
    title: str
    multimedia_count: int
    video_count: int
    status: TalkStatus | None


# =============================================================================
# Speaker Schemas
# =============================================================================


class SpeakerCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    congregation_id: UUID | None = None
    talk_ids: list[int] = []

    _strip_names = field_validator("first_name", "last_name")(_strip)


class SpeakerUpdate(BaseModel):
    """
    Only given fields change. ``phone`` and ``congregation_id`` may be set to
    null; ``talk_ids`` replaces the whole approved talk list.
    """

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    congregation_id: UUID | None = None
    talk_ids: list[int] | None = None


class SpeakerArchiveRequest(BaseModel):
    archived: bool = True


class SpeakerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    phone: str | None
    congregation_id: UUID | None
    congregation: CongregationResponse | None = None
    archived: bool
    archived_at: datetime | None
    talks: list[PublicTalkResponse] = []

"""
Scheduling Module Pydantic Schemas

API request/response schemas for schedules, weekend meetings, meeting
exceptions and auto-suggestion.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from congregation_planner.core.dates import CalendarDate
from congregation_planner.scheduling.models import (
    MeetingExceptionType,
    MeetingPartType,
    MeetingProgram,
    ProgramState,
    SpeakerSourceType,
)


# =============================================================================
# Schedule (public talk) Schemas
# =============================================================================


class ScheduleCreate(BaseModel):
    """
    Schema for scheduling a public talk.

    Without ``meeting_program_id`` the weekend program for the date (and its
    public talk part) is looked up, or created if the date has none yet.
    """

    date: CalendarDate
    meeting_program_id: int | None = Field(default=None, gt=0)
    part_id: int | None = Field(default=None, gt=0)
    speaker_source_type: SpeakerSourceType = SpeakerSourceType.VISITING_SPEAKER
    speaker_id: UUID | None = None
    publisher_id: UUID | None = None
    talk_id: int | None = Field(default=None, gt=0)
    custom_talk_title: str | None = Field(default=None, max_length=200)
    override_validation: bool = False

    @model_validator(mode="after")
    def check_speaker_source(self) -> "ScheduleCreate":
        if self.speaker_source_type == SpeakerSourceType.VISITING_SPEAKER:
            if self.speaker_id is None or self.publisher_id is not None:
                raise ValueError("A visiting speaker schedule needs speaker_id and no publisher_id")
        elif self.publisher_id is None or self.speaker_id is not None:
            raise ValueError("A local publisher schedule needs publisher_id and no speaker_id")

        if self.talk_id is None and not (self.custom_talk_title or "").strip():
            raise ValueError("Either talk_id or custom_talk_title is required")
        return self


class ScheduleUpdate(BaseModel):
    """Schema for updating a scheduled public talk. Date and slot are fixed."""

    speaker_source_type: SpeakerSourceType | None = None
    speaker_id: UUID | None = None
    publisher_id: UUID | None = None
    talk_id: int | None = Field(default=None, gt=0)
    custom_talk_title: str | None = Field(default=None, max_length=200)
    override_validation: bool | None = None


class ScheduleResponse(BaseModel):
    """Schema for a scheduled public talk."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    date: CalendarDate
    meeting_program_id: int
    part_id: int
    speaker_source_type: SpeakerSourceType
    speaker_id: UUID | None
    publisher_id: UUID | None
    talk_id: int | None
    custom_talk_title: str | None
    override_validation: bool
    speaker_name: str | None = None
    talk_number: int | None = None
    talk_title: str | None = None
    created_at: datetime
    updated_at: datetime


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    existing_schedule: ScheduleResponse | None = None


# =============================================================================
# Weekend Meeting Schemas
# =============================================================================


class TalkTitleInput(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class CircuitOverseerTalkInput(BaseModel):
    publisher_id: UUID
    title: str = Field(min_length=1, max_length=200)


class WeekendMeetingParts(BaseModel):
    """Publisher assignments for a full weekend program."""

    chairman: UUID
    watchtower_study: UUID
    reader: UUID | None = None
    prayer: UUID
    public_talk: TalkTitleInput | None = None  # CO visit public talk title
    circuit_overseer_talk: CircuitOverseerTalkInput | None = None


class WeekendMeetingPlan(BaseModel):
    """Schema for planning a weekend meeting."""

    date: CalendarDate
    is_circuit_overseer_visit: bool = False
    parts: WeekendMeetingParts
    override_duplicates: bool = False
    # On a CO visit, hand an already scheduled public talk over to the CO
    replace_public_talk: bool = False

    @model_validator(mode="after")
    def check_circuit_overseer_visit(self) -> "WeekendMeetingPlan":
        if self.is_circuit_overseer_visit and self.parts.circuit_overseer_talk is None:
            raise ValueError("A circuit overseer visit needs the circuit_overseer_talk part")
        return self


class WeekendMeetingPartsUpdate(BaseModel):
    chairman: UUID | None = None
    watchtower_study: UUID | None = None
    reader: UUID | None = None
    prayer: UUID | None = None
    circuit_overseer_talk: CircuitOverseerTalkInput | None = None


class WeekendMeetingUpdate(BaseModel):
    """Schema for updating a weekend meeting. Only given parts change."""

    is_circuit_overseer_visit: bool | None = None
    parts: WeekendMeetingPartsUpdate | None = None
    override_duplicates: bool = False


class PartAssignment(BaseModel):
    person_id: UUID
    person_name: str
    person_type: Literal["publisher", "speaker"]


class WeekendMeetingPartResponse(BaseModel):
    id: int
    type: MeetingPartType
    name: str | None = None
    order: int
    talk_number: int | None = None
    assignment: PartAssignment | None = None


class WeekendMeetingResponse(BaseModel):
    """A weekend program with its parts and who is assigned to them."""

    id: int
    date: CalendarDate
    is_circuit_overseer_visit: bool
    state: ProgramState
    parts: list[WeekendMeetingPartResponse] = []

    @classmethod
    def from_program(cls, program: MeetingProgram, state: ProgramState) -> "WeekendMeetingResponse":
        parts = []
        for part in program.parts:
            name = part.name
            talk_number = None
            assignment = None

            if part.type == MeetingPartType.PUBLIC_TALK:
                talk = part.scheduled_public_talks[0] if part.scheduled_public_talks else None
                if talk is not None:
                    name = talk.talk_title
                    talk_number = talk.talk_number
                    if talk.speaker_source_type == SpeakerSourceType.VISITING_SPEAKER and talk.speaker:
                        assignment = PartAssignment(
                            person_id=talk.speaker.id,
                            person_name=talk.speaker.full_name,
                            person_type="speaker",
                        )
                    elif talk.publisher:
                        assignment = PartAssignment(
                            person_id=talk.publisher.id,
                            person_name=talk.publisher.full_name,
                            person_type="publisher",
                        )
            elif part.scheduled_parts:
                publisher = part.scheduled_parts[0].publisher
                assignment = PartAssignment(
                    person_id=publisher.id,
                    person_name=publisher.full_name,
                    person_type="publisher",
                )

            parts.append(
                WeekendMeetingPartResponse(
                    id=part.id,
                    type=part.type,
                    name=name,
                    order=part.order,
                    talk_number=talk_number,
                    assignment=assignment,
                )
            )

        return cls(
            id=program.id,
            date=program.date,
            is_circuit_overseer_visit=program.is_circuit_overseer_visit,
            state=state,
            parts=parts,
        )


# =============================================================================
# Meeting Exception Schemas
# =============================================================================


class MeetingExceptionCreate(BaseModel):
    date: CalendarDate
    exception_type: MeetingExceptionType
    description: str | None = Field(default=None, max_length=500)
    confirm_delete_existing: bool = False


class MeetingExceptionUpdate(BaseModel):
    date: CalendarDate | None = None
    exception_type: MeetingExceptionType | None = None
    description: str | None = Field(default=None, max_length=500)
    confirm_delete_existing: bool = False


class MeetingExceptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    date: CalendarDate
    exception_type: MeetingExceptionType
    description: str | None
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Auto-Suggestion Schemas
# =============================================================================


class AutoSuggestionRequest(BaseModel):
    excluded_speaker_ids: list[UUID] = []


class SuggestedSpeaker(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    phone: str | None = None
    congregation_name: str | None = None
    last_talk_date: CalendarDate | None = None
    is_visiting: bool


class SuggestedTalk(BaseModel):
    id: int
    no: int
    title: str
    last_given_date: CalendarDate | None = None


class AutoSuggestionResponse(BaseModel):
    speaker: SuggestedSpeaker | None = None
    available_talks: list[SuggestedTalk] = []
    has_more_suggestions: bool = False

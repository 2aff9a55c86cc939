"""
Tests for scheduling public talks.
"""

import uuid
from datetime import date

import pytest
from sqlalchemy import select

from congregation_planner.core.audit import AuditAction, AuditLogEntry
from congregation_planner.core.errors import (
    CannotDeletePastSchedule,
    CannotEditPastSchedule,
    DateMustBeFuture,
    DateMustBeSunday,
    MeetingDateHasException,
    MeetingProgramNotFound,
    PublisherCannotDeliverPublicTalks,
    ScheduleAlreadyExists,
    ScheduleNotFound,
    SpeakerDoesntHaveTalk,
    SpeakerNotFoundOrArchived,
)
from congregation_planner.scheduling.models import (
    MeetingException,
    MeetingExceptionType,
    MeetingPartType,
    MeetingProgram,
    MeetingProgramPart,
    SpeakerSourceType,
)
from congregation_planner.scheduling.schemas import ScheduleCreate, ScheduleUpdate
from congregation_planner.scheduling.services import ScheduleService, ensure_weekend_program

SUNDAY = date(2026, 10, 25)
SATURDAY = date(2026, 10, 24)
PAST_SUNDAY = date(2020, 1, 5)


@pytest.fixture
def service(db, clock, audit) -> ScheduleService:
    return ScheduleService(db, clock, audit)


@pytest.fixture
async def talk(make_talk):
    return await make_talk(12, "What Is the Kingdom?")


@pytest.fixture
async def speaker(make_speaker, make_congregation, talk):
    return await make_speaker(talks=[talk], congregation=await make_congregation())


async def audit_entries(db, action: AuditAction) -> list[AuditLogEntry]:
    await db.flush()
    result = await db.execute(select(AuditLogEntry).where(AuditLogEntry.action == action.value))
    return list(result.scalars().all())


class TestCreateSchedule:
    """Tests for scheduling a public talk."""

    async def test_creates_program_lazily(self, db, service, speaker, talk) -> None:
        """A date without a program gets a minimal weekend program first."""
        schedule = await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
        )

        program = await db.get(MeetingProgram, schedule.meeting_program_id)
        assert program.date == SUNDAY
        part = await db.get(MeetingProgramPart, schedule.part_id)
        assert part.type == MeetingPartType.PUBLIC_TALK
        assert schedule.speaker_name == "Piotr Nowak"
        assert schedule.talk_number == 12
        assert schedule.talk_title == "What Is the Kingdom?"
        assert schedule.override_validation is False

    async def test_uses_existing_program(self, db, service, speaker, talk) -> None:
        program, part = await ensure_weekend_program(db, SUNDAY)

        schedule = await service.create_schedule(
            ScheduleCreate(
                date=SUNDAY,
                meeting_program_id=program.id,
                part_id=part.id,
                speaker_id=speaker.id,
                talk_id=talk.id,
            )
        )

        assert schedule.meeting_program_id == program.id
        assert schedule.part_id == part.id

    async def test_program_from_other_date_rejected(self, db, service, speaker, talk) -> None:
        program, _ = await ensure_weekend_program(db, date(2026, 11, 1))

        with pytest.raises(MeetingProgramNotFound):
            await service.create_schedule(
                ScheduleCreate(
                    date=SUNDAY,
                    meeting_program_id=program.id,
                    speaker_id=speaker.id,
                    talk_id=talk.id,
                )
            )

    async def test_records_audit_event(self, db, service, speaker, talk) -> None:
        schedule = await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
        )

        entries = await audit_entries(db, AuditAction.SCHEDULE_CREATED)
        assert len(entries) == 1
        assert entries[0].resource_id == str(schedule.id)
        assert entries[0].actor_id == "user-1"
        assert entries[0].details["validation_bypassed"] is False

    async def test_non_sunday_rejected(self, service, speaker, talk) -> None:
        with pytest.raises(DateMustBeSunday):
            await service.create_schedule(
                ScheduleCreate(date=SATURDAY, speaker_id=speaker.id, talk_id=talk.id)
            )

    async def test_past_sunday_rejected(self, service, speaker, talk) -> None:
        with pytest.raises(DateMustBeFuture):
            await service.create_schedule(
                ScheduleCreate(date=PAST_SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
            )

    async def test_exception_date_rejected(self, db, service, speaker, talk) -> None:
        db.add(MeetingException(date=SUNDAY, exception_type=MeetingExceptionType.CIRCUIT_ASSEMBLY))
        await db.commit()

        with pytest.raises(MeetingDateHasException) as exc_info:
            await service.create_schedule(
                ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
            )
        assert exc_info.value.status_code == 403
        assert exc_info.value.data["exception_type"] == "circuit_assembly"

    async def test_same_slot_twice_rejected(self, service, speaker, talk, make_speaker) -> None:
        """At most one schedule per (date, program, part)."""
        first = await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
        )
        other = await make_speaker("Tomasz", "Zieliński", talks=[talk])

        with pytest.raises(ScheduleAlreadyExists) as exc_info:
            await service.create_schedule(
                ScheduleCreate(date=SUNDAY, speaker_id=other.id, talk_id=talk.id)
            )
        assert exc_info.value.status_code == 409
        assert exc_info.value.data["existing_schedule_id"] == str(first.id)

    async def test_archived_speaker_rejected(self, service, make_speaker, talk) -> None:
        archived = await make_speaker(talks=[talk], archived=True)

        with pytest.raises(SpeakerNotFoundOrArchived):
            await service.create_schedule(
                ScheduleCreate(date=SUNDAY, speaker_id=archived.id, talk_id=talk.id)
            )


class TestTalkApproval:
    """Tests for the speaker/talk approval check."""

    async def test_unapproved_talk_rejected(self, service, speaker, make_talk) -> None:
        other_talk = await make_talk(45)

        with pytest.raises(SpeakerDoesntHaveTalk) as exc_info:
            await service.create_schedule(
                ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=other_talk.id)
            )
        assert exc_info.value.status_code == 422

    async def test_override_bypasses_and_is_audited(self, db, service, speaker, make_talk) -> None:
        other_talk = await make_talk(45)

        schedule = await service.create_schedule(
            ScheduleCreate(
                date=SUNDAY,
                speaker_id=speaker.id,
                talk_id=other_talk.id,
                override_validation=True,
            )
        )

        assert schedule.override_validation is True
        entries = await audit_entries(db, AuditAction.SCHEDULE_CREATED)
        assert entries[0].details["validation_bypassed"] is True

    async def test_custom_title_needs_no_approval(self, service, speaker) -> None:
        schedule = await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, custom_talk_title="Special talk")
        )
        assert schedule.talk_title == "Special talk"
        assert schedule.talk_number is None


class TestLocalPublisher:
    """Tests for talks given by a local publisher."""

    async def test_publisher_needs_flag(self, service, make_publisher, talk) -> None:
        publisher = await make_publisher()

        with pytest.raises(PublisherCannotDeliverPublicTalks):
            await service.create_schedule(
                ScheduleCreate(
                    date=SUNDAY,
                    speaker_source_type=SpeakerSourceType.LOCAL_PUBLISHER,
                    publisher_id=publisher.id,
                    talk_id=talk.id,
                )
            )

    async def test_publisher_not_bound_to_approved_talks(self, service, make_publisher, talk) -> None:
        publisher = await make_publisher(delivers_public_talks=True)

        schedule = await service.create_schedule(
            ScheduleCreate(
                date=SUNDAY,
                speaker_source_type=SpeakerSourceType.LOCAL_PUBLISHER,
                publisher_id=publisher.id,
                talk_id=talk.id,
            )
        )

        assert schedule.speaker_id is None
        assert schedule.publisher_id == publisher.id
        assert schedule.speaker_name == "Jan Kowalski"


class TestUpdateSchedule:
    """Tests for changing a scheduled talk."""

    async def test_switch_to_local_publisher(self, service, speaker, talk, make_publisher) -> None:
        """Changing the source clears the other person's id."""
        publisher = await make_publisher(delivers_public_talks=True)
        schedule = await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
        )

        updated = await service.update_schedule(
            schedule.id,
            ScheduleUpdate(
                speaker_source_type=SpeakerSourceType.LOCAL_PUBLISHER,
                publisher_id=publisher.id,
            ),
        )

        assert updated.speaker_source_type == SpeakerSourceType.LOCAL_PUBLISHER
        assert updated.speaker_id is None
        assert updated.publisher_id == publisher.id

    async def test_approval_rechecked(self, service, speaker, talk, make_talk) -> None:
        other_talk = await make_talk(45)
        schedule = await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
        )

        with pytest.raises(SpeakerDoesntHaveTalk):
            await service.update_schedule(schedule.id, ScheduleUpdate(talk_id=other_talk.id))

        updated = await service.update_schedule(
            schedule.id, ScheduleUpdate(talk_id=other_talk.id, override_validation=True)
        )
        assert updated.talk_id == other_talk.id

    async def test_past_schedule_cannot_be_edited(self, service, speaker, talk, give_talk) -> None:
        past = await give_talk(PAST_SUNDAY, talk, speaker=speaker)

        with pytest.raises(CannotEditPastSchedule) as exc_info:
            await service.update_schedule(past.id, ScheduleUpdate(custom_talk_title="Changed"))
        assert exc_info.value.status_code == 403

    async def test_unknown_schedule(self, service) -> None:
        with pytest.raises(ScheduleNotFound):
            await service.update_schedule(uuid.uuid4(), ScheduleUpdate())


class TestDeleteSchedule:
    """Tests for removing a scheduled talk."""

    async def test_delete_future(self, db, service, speaker, talk) -> None:
        schedule = await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
        )

        await service.delete_schedule(schedule.id)

        with pytest.raises(ScheduleNotFound):
            await service.get_schedule(schedule.id)
        assert len(await audit_entries(db, AuditAction.SCHEDULE_DELETED)) == 1

    async def test_past_schedule_cannot_be_deleted(self, service, speaker, talk, give_talk) -> None:
        past = await give_talk(PAST_SUNDAY, talk, speaker=speaker)

        with pytest.raises(CannotDeletePastSchedule):
            await service.delete_schedule(past.id)


class TestListSchedules:
    """Tests for upcoming and history listings."""

    async def test_upcoming_and_history(self, service, speaker, talk, give_talk) -> None:
        past = await give_talk(PAST_SUNDAY, talk, speaker=speaker)
        upcoming = await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
        )

        assert [s.id for s in await service.list_schedules()] == [upcoming.id]
        assert [s.id for s in await service.list_schedules(history=True)] == [past.id]

    async def test_date_range(self, service, speaker, talk) -> None:
        await service.create_schedule(
            ScheduleCreate(date=SUNDAY, speaker_id=speaker.id, talk_id=talk.id)
        )
        later = await service.create_schedule(
            ScheduleCreate(date=date(2026, 11, 1), speaker_id=speaker.id, talk_id=talk.id)
        )

        result = await service.list_schedules(start_date=date(2026, 10, 26))

        assert [s.id for s in result] == [later.id]

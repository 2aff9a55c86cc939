"""
Scheduling Module Services

Business logic for weekend meeting programs, scheduled public talks and
meeting exceptions. Each public method is one logical transaction: it works
on the request session, flushes, and leaves the commit (or rollback on error)
to the caller.
"""

import logging
import uuid
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from congregation_planner.congregation.models import Publisher, PublicTalk, Speaker, SpeakerTalk
from congregation_planner.core.audit import AuditAction, AuditLogger
from congregation_planner.core.dates import (
    Clock,
    format_calendar_date,
    is_past_date,
    require_future_sunday,
)
from congregation_planner.core.errors import (
    CannotDeletePastSchedule,
    CannotEditPastSchedule,
    ExceptionAlreadyExists,
    ExceptionNotFound,
    MeetingAlreadyScheduled,
    MeetingAlreadyScheduledOnException,
    MeetingDateHasException,
    MeetingProgramNotFound,
    PartNotFound,
    ProgramNotFound,
    PublisherNotFound,
    PublishersAlreadyAssigned,
    ScheduleAlreadyExists,
    ScheduleNotFound,
    SpeakerDoesntHaveTalk,
    SpeakerNotFoundOrArchived,
    TalkNotFound,
)
from congregation_planner.scheduling.conflicts import (
    check_conflict,
    find_assigned_publishers,
    find_duplicate_publishers,
)
from congregation_planner.scheduling.eligibility import require_eligible
from congregation_planner.scheduling.models import (
    MeetingException,
    MeetingPartType,
    MeetingProgram,
    MeetingProgramPart,
    MeetingScheduledPart,
    MeetingType,
    ProgramState,
    ScheduledPublicTalk,
    SpeakerSourceType,
    part_order,
)
from congregation_planner.scheduling.schemas import (
    MeetingExceptionCreate,
    MeetingExceptionUpdate,
    ScheduleCreate,
    ScheduleUpdate,
    WeekendMeetingPlan,
    WeekendMeetingUpdate,
)

logger = logging.getLogger(__name__)

# Parts every weekend program needs before it counts as fully scheduled
REQUIRED_PARTS = frozenset({
    MeetingPartType.CHAIRMAN,
    MeetingPartType.PUBLIC_TALK,
    MeetingPartType.WATCHTOWER_STUDY,
    MeetingPartType.CLOSING_PRAYER,
})


# =============================================================================
# Helper Functions
# =============================================================================


def program_load_options() -> list:
    """Eager loads for a program with its parts and everyone assigned."""
    return [
        selectinload(MeetingProgram.parts)
        .selectinload(MeetingProgramPart.scheduled_parts)
        .selectinload(MeetingScheduledPart.publisher),
        selectinload(MeetingProgram.parts)
        .selectinload(MeetingProgramPart.scheduled_public_talks)
        .options(
            selectinload(ScheduledPublicTalk.speaker),
            selectinload(ScheduledPublicTalk.publisher),
            selectinload(ScheduledPublicTalk.talk),
        ),
    ]


def schedule_load_options() -> list:
    return [
        selectinload(ScheduledPublicTalk.speaker),
        selectinload(ScheduledPublicTalk.publisher),
        selectinload(ScheduledPublicTalk.talk),
    ]


async def get_program(db: AsyncSession, program_id: int) -> MeetingProgram | None:
    """Get a program with parts and assignments, refreshed from the database."""
    result = await db.execute(
        select(MeetingProgram)
        .where(MeetingProgram.id == program_id)
        .options(*program_load_options())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_weekend_program(db: AsyncSession, day: date) -> MeetingProgram | None:
    """Get the weekend program on a date, if any."""
    result = await db.execute(
        select(MeetingProgram)
        .where(MeetingProgram.type == MeetingType.WEEKEND, MeetingProgram.date == day)
        .options(*program_load_options())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_exception_on(db: AsyncSession, day: date) -> MeetingException | None:
    result = await db.execute(select(MeetingException).where(MeetingException.date == day))
    return result.scalar_one_or_none()


async def get_part(
    db: AsyncSession,
    program_id: int,
    part_type: MeetingPartType,
) -> MeetingProgramPart | None:
    result = await db.execute(
        select(MeetingProgramPart).where(
            MeetingProgramPart.meeting_program_id == program_id,
            MeetingProgramPart.type == part_type,
        )
    )
    return result.scalar_one_or_none()


async def ensure_weekend_program(
    db: AsyncSession,
    day: date,
) -> tuple[MeetingProgram, MeetingProgramPart]:
    """
    Get the weekend program and its public talk part for a date, creating
    whichever is missing.

    Scheduling a talk before the rest of the program is planned leaves a
    minimal program holding only the public talk part; planning the date
    later merges the remaining parts into it.
    """
    result = await db.execute(
        select(MeetingProgram).where(
            MeetingProgram.type == MeetingType.WEEKEND,
            MeetingProgram.date == day,
        )
    )
    program = result.scalar_one_or_none()
    if program is None:
        program = MeetingProgram(
            type=MeetingType.WEEKEND,
            date=day,
            is_circuit_overseer_visit=False,
        )
        db.add(program)
        await db.flush()
        logger.info("Created weekend program %s for %s", program.id, day)

    part = await get_part(db, program.id, MeetingPartType.PUBLIC_TALK)
    if part is None:
        part = MeetingProgramPart(
            meeting_program_id=program.id,
            type=MeetingPartType.PUBLIC_TALK,
            order=part_order(MeetingPartType.PUBLIC_TALK),
        )
        db.add(part)
        await db.flush()

    return program, part


async def delete_program_cascade(db: AsyncSession, program_id: int) -> None:
    """
    Delete a program and everything hanging off it.

    The foreign keys are RESTRICT, so rows go in dependency order:
    scheduled public talks, scheduled parts, program parts, the program.
    """
    await db.execute(
        delete(ScheduledPublicTalk).where(ScheduledPublicTalk.meeting_program_id == program_id)
    )

    result = await db.execute(
        select(MeetingProgramPart.id).where(MeetingProgramPart.meeting_program_id == program_id)
    )
    part_ids = list(result.scalars().all())
    if part_ids:
        await db.execute(
            delete(MeetingScheduledPart).where(
                MeetingScheduledPart.meeting_program_part_id.in_(part_ids)
            )
        )

    await db.execute(
        delete(MeetingProgramPart).where(MeetingProgramPart.meeting_program_id == program_id)
    )
    await db.execute(delete(MeetingProgram).where(MeetingProgram.id == program_id))
    logger.info("Deleted program %s with %d parts", program_id, len(part_ids))


def program_state(program: MeetingProgram | None) -> ProgramState:
    """
    Derive the scheduling state of a program (loaded with its assignments).

    Fully scheduled means every required part, every part the program
    actually has, and the CO talk on a CO visit, holds an assignment.
    """
    if program is None:
        return ProgramState.ABSENT

    expected = set(REQUIRED_PARTS)
    expected.update(part.type for part in program.parts)
    if program.is_circuit_overseer_visit:
        expected.add(MeetingPartType.CIRCUIT_OVERSEER_TALK)

    assigned = {
        part.type
        for part in program.parts
        if part.scheduled_parts or part.scheduled_public_talks
    }
    if expected <= assigned:
        return ProgramState.FULLY_SCHEDULED
    return ProgramState.PARTIALLY_SCHEDULED


def describe_assignments(program: MeetingProgram) -> list[dict[str, str | None]]:
    """Every assigned part of a loaded program as ``{type, person_name}``."""
    assignments: list[dict[str, str | None]] = []
    for part in program.parts:
        for scheduled in part.scheduled_parts:
            assignments.append({"type": part.type.value, "person_name": scheduled.publisher.full_name})
        for talk in part.scheduled_public_talks:
            assignments.append({"type": part.type.value, "person_name": talk.speaker_name})
    return assignments


async def speaker_has_talk(db: AsyncSession, speaker_id: uuid.UUID, talk_id: int) -> bool:
    result = await db.execute(
        select(SpeakerTalk.id).where(
            SpeakerTalk.speaker_id == speaker_id,
            SpeakerTalk.talk_id == talk_id,
        )
    )
    return result.first() is not None


# =============================================================================
# Scheduled Public Talks
# =============================================================================


class ScheduleService:
    """Create, change and remove scheduled public talks."""

    def __init__(self, db: AsyncSession, clock: Clock, audit: AuditLogger):
        self.db = db
        self.clock = clock
        self.audit = audit

    async def get_schedule(self, schedule_id: uuid.UUID) -> ScheduledPublicTalk:
        result = await self.db.execute(
            select(ScheduledPublicTalk)
            .where(ScheduledPublicTalk.id == schedule_id)
            .options(*schedule_load_options())
            .execution_options(populate_existing=True)
        )
        schedule = result.scalar_one_or_none()
        if schedule is None:
            raise ScheduleNotFound(schedule_id=str(schedule_id))
        return schedule

    async def list_schedules(
        self,
        history: bool = False,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ScheduledPublicTalk]:
        """Upcoming schedules (today onwards) by date, or past ones newest first."""
        today = self.clock.today()
        query = select(ScheduledPublicTalk).options(*schedule_load_options())

        if history:
            query = query.where(ScheduledPublicTalk.date < today).order_by(
                ScheduledPublicTalk.date.desc()
            )
        else:
            query = query.where(ScheduledPublicTalk.date >= today).order_by(
                ScheduledPublicTalk.date.asc()
            )

        if start_date:
            query = query.where(ScheduledPublicTalk.date >= start_date)
        if end_date:
            query = query.where(ScheduledPublicTalk.date <= end_date)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def check_conflict(self, day: date, meeting_program_id: int, part_id: int):
        return await check_conflict(self.db, day, meeting_program_id, part_id)

    async def _get_active_speaker(self, speaker_id: uuid.UUID) -> Speaker:
        speaker = await self.db.get(Speaker, speaker_id)
        if speaker is None or speaker.archived:
            raise SpeakerNotFoundOrArchived(speaker_id=str(speaker_id))
        return speaker

    async def _get_talk_publisher(self, publisher_id: uuid.UUID) -> Publisher:
        publisher = await self.db.get(Publisher, publisher_id)
        if publisher is None:
            raise PublisherNotFound(publisher_id=str(publisher_id))
        require_eligible(MeetingPartType.PUBLIC_TALK, publisher)
        return publisher

    async def _check_talk(
        self,
        talk_id: int | None,
        speaker_id: uuid.UUID | None,
        override_validation: bool,
    ) -> bool:
        """
        Check the talk exists and, for visiting speakers, is approved.

        Returns True when the approval check was bypassed by the override.
        """
        if talk_id is None:
            return False
        if await self.db.get(PublicTalk, talk_id) is None:
            raise TalkNotFound(talk_id=talk_id)
        # Local publishers are not restricted to approved talks
        if speaker_id is None:
            return False
        if await speaker_has_talk(self.db, speaker_id, talk_id):
            return False
        if not override_validation:
            raise SpeakerDoesntHaveTalk(speaker_id=str(speaker_id), talk_id=talk_id)
        return True

    async def _resolve_slot(self, data: ScheduleCreate) -> tuple[int, int]:
        """Find (or lazily create) the program and part the talk goes into."""
        if data.meeting_program_id is None:
            program, part = await ensure_weekend_program(self.db, data.date)
            if data.part_id is None:
                return program.id, part.id
            program_id = program.id
        else:
            program = await self.db.get(MeetingProgram, data.meeting_program_id)
            if program is None or program.date != data.date:
                raise MeetingProgramNotFound(
                    meeting_program_id=data.meeting_program_id,
                    date=format_calendar_date(data.date),
                )
            program_id = program.id
            if data.part_id is None:
                part = await get_part(self.db, program_id, MeetingPartType.PUBLIC_TALK)
                if part is None:
                    raise PartNotFound(meeting_program_id=program_id, part_type=MeetingPartType.PUBLIC_TALK.value)
                return program_id, part.id

        part = await self.db.get(MeetingProgramPart, data.part_id)
        if part is None or part.meeting_program_id != program_id:
            raise PartNotFound(meeting_program_id=program_id, part_id=data.part_id)
        return program_id, part.id

    async def create_schedule(self, data: ScheduleCreate) -> ScheduledPublicTalk:
        """Schedule a public talk on a future Sunday."""
        require_future_sunday(data.date, self.clock.today())

        exception = await get_exception_on(self.db, data.date)
        if exception is not None:
            raise MeetingDateHasException(
                date=format_calendar_date(data.date),
                exception_type=exception.exception_type.value,
            )

        if data.speaker_source_type == SpeakerSourceType.VISITING_SPEAKER:
            await self._get_active_speaker(data.speaker_id)
        else:
            await self._get_talk_publisher(data.publisher_id)

        bypassed = await self._check_talk(
            data.talk_id,
            data.speaker_id if data.speaker_source_type == SpeakerSourceType.VISITING_SPEAKER else None,
            data.override_validation,
        )

        program_id, part_id = await self._resolve_slot(data)

        conflict = await check_conflict(self.db, data.date, program_id, part_id)
        if conflict.has_conflict:
            raise ScheduleAlreadyExists(
                date=format_calendar_date(data.date),
                meeting_program_id=program_id,
                part_id=part_id,
                existing_schedule_id=str(conflict.existing.id),
            )

        schedule = ScheduledPublicTalk(
            date=data.date,
            meeting_program_id=program_id,
            part_id=part_id,
            speaker_source_type=data.speaker_source_type,
            speaker_id=data.speaker_id,
            publisher_id=data.publisher_id,
            talk_id=data.talk_id,
            custom_talk_title=data.custom_talk_title or None,
            override_validation=data.override_validation,
        )
        self.db.add(schedule)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race for the same slot
            await self.db.rollback()
            raise ScheduleAlreadyExists(
                date=format_calendar_date(data.date),
                meeting_program_id=program_id,
                part_id=part_id,
            )

        await self.audit.log(
            AuditAction.SCHEDULE_CREATED,
            "schedule",
            schedule.id,
            date=format_calendar_date(data.date),
            meeting_program_id=program_id,
            part_id=part_id,
            speaker_source_type=data.speaker_source_type.value,
            speaker_id=data.speaker_id,
            publisher_id=data.publisher_id,
            talk_id=data.talk_id,
            custom_talk_title=data.custom_talk_title,
            override_validation=data.override_validation,
            validation_bypassed=bypassed,
        )
        return await self.get_schedule(schedule.id)

    async def update_schedule(
        self,
        schedule_id: uuid.UUID,
        data: ScheduleUpdate,
    ) -> ScheduledPublicTalk:
        """Change who gives a scheduled talk or which talk it is."""
        schedule = await self.get_schedule(schedule_id)
        if is_past_date(schedule.date, self.clock.today()):
            raise CannotEditPastSchedule(
                schedule_id=str(schedule_id),
                date=format_calendar_date(schedule.date),
            )

        changes = data.model_dump(exclude_unset=True)
        source = changes.get("speaker_source_type") or schedule.speaker_source_type

        if source == SpeakerSourceType.VISITING_SPEAKER:
            speaker_id = changes.get("speaker_id") or schedule.speaker_id
            if speaker_id is None:
                raise SpeakerNotFoundOrArchived(speaker_id=None)
            if speaker_id != schedule.speaker_id:
                await self._get_active_speaker(speaker_id)
            publisher_id = None
        else:
            publisher_id = changes.get("publisher_id") or schedule.publisher_id
            if publisher_id is None:
                raise PublisherNotFound(publisher_id=None)
            if publisher_id != schedule.publisher_id:
                await self._get_talk_publisher(publisher_id)
            speaker_id = None

        talk_id = changes["talk_id"] if "talk_id" in changes else schedule.talk_id
        override_validation = changes.get("override_validation")
        if override_validation is None:
            override_validation = schedule.override_validation
        bypassed = await self._check_talk(talk_id, speaker_id, override_validation)

        schedule.speaker_source_type = source
        schedule.speaker_id = speaker_id
        schedule.publisher_id = publisher_id
        schedule.talk_id = talk_id
        if "custom_talk_title" in changes:
            schedule.custom_talk_title = changes["custom_talk_title"] or None
        schedule.override_validation = override_validation
        await self.db.flush()

        await self.audit.log(
            AuditAction.SCHEDULE_UPDATED,
            "schedule",
            schedule.id,
            date=format_calendar_date(schedule.date),
            meeting_program_id=schedule.meeting_program_id,
            part_id=schedule.part_id,
            changes=changes,
            validation_bypassed=bypassed,
        )
        return await self.get_schedule(schedule.id)

    async def delete_schedule(self, schedule_id: uuid.UUID) -> None:
        schedule = await self.get_schedule(schedule_id)
        if is_past_date(schedule.date, self.clock.today()):
            raise CannotDeletePastSchedule(
                schedule_id=str(schedule_id),
                date=format_calendar_date(schedule.date),
            )

        await self.db.delete(schedule)
        await self.db.flush()

        await self.audit.log(
            AuditAction.SCHEDULE_DELETED,
            "schedule",
            schedule_id,
            date=format_calendar_date(schedule.date),
            meeting_program_id=schedule.meeting_program_id,
            part_id=schedule.part_id,
            speaker_id=schedule.speaker_id,
            publisher_id=schedule.publisher_id,
            talk_id=schedule.talk_id,
        )


# =============================================================================
# Weekend Meetings
# =============================================================================


class WeekendMeetingService:
    """Plan weekend programs and change who takes their parts."""

    def __init__(self, db: AsyncSession, clock: Clock, audit: AuditLogger):
        self.db = db
        self.clock = clock
        self.audit = audit

    async def list_meetings(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[MeetingProgram]:
        query = (
            select(MeetingProgram)
            .where(MeetingProgram.type == MeetingType.WEEKEND)
            .options(*program_load_options())
            .order_by(MeetingProgram.date.asc())
        )
        if start_date:
            query = query.where(MeetingProgram.date >= start_date)
        if end_date:
            query = query.where(MeetingProgram.date <= end_date)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_meeting(self, program_id: int) -> MeetingProgram:
        program = await get_program(self.db, program_id)
        if program is None or program.type != MeetingType.WEEKEND:
            raise ProgramNotFound(program_id=program_id)
        return program

    async def _load_publishers(self, ids: list[uuid.UUID]) -> dict[uuid.UUID, Publisher]:
        publishers = {}
        for publisher_id in dict.fromkeys(ids):
            publisher = await self.db.get(Publisher, publisher_id)
            if publisher is None:
                raise PublisherNotFound(publisher_id=str(publisher_id))
            publishers[publisher_id] = publisher
        return publishers

    async def _check_assignments(
        self,
        day: date,
        assignments: dict[MeetingPartType, uuid.UUID],
        override_duplicates: bool,
        exclude_part_ids: list[int] | None = None,
    ) -> None:
        """Check existence and eligibility, then double booking on the date."""
        publishers = await self._load_publishers(list(assignments.values()))
        for role, publisher_id in assignments.items():
            require_eligible(role, publishers[publisher_id])

        if override_duplicates:
            return

        conflicting = find_duplicate_publishers(assignments.values())
        conflicting += await find_assigned_publishers(
            self.db, day, assignments.values(), exclude_part_ids or ()
        )
        conflicting = list(dict.fromkeys(conflicting))
        if conflicting:
            raise PublishersAlreadyAssigned(
                date=format_calendar_date(day),
                conflicting_publishers=[str(p) for p in conflicting],
            )

    async def plan_meeting(self, data: WeekendMeetingPlan) -> MeetingProgram:
        """
        Create a full weekend program in one go.

        A program holding only a lazily created public talk is completed in
        place; a program that already has assignments is a conflict.
        """
        require_future_sunday(data.date, self.clock.today())

        exception = await get_exception_on(self.db, data.date)
        if exception is not None:
            raise MeetingDateHasException(
                date=format_calendar_date(data.date),
                exception_type=exception.exception_type.value,
            )

        existing = await get_weekend_program(self.db, data.date)
        if existing is not None and any(part.scheduled_parts for part in existing.parts):
            raise MeetingAlreadyScheduled(
                program_id=existing.id,
                date=format_calendar_date(data.date),
            )

        parts = data.parts
        assignments: dict[MeetingPartType, uuid.UUID] = {
            MeetingPartType.CHAIRMAN: parts.chairman,
            MeetingPartType.WATCHTOWER_STUDY: parts.watchtower_study,
            MeetingPartType.CLOSING_PRAYER: parts.prayer,
        }
        if parts.reader:
            assignments[MeetingPartType.READER] = parts.reader
        if data.is_circuit_overseer_visit and parts.circuit_overseer_talk:
            assignments[MeetingPartType.CIRCUIT_OVERSEER_TALK] = parts.circuit_overseer_talk.publisher_id

        await self._check_assignments(data.date, assignments, data.override_duplicates)

        displaced = None
        if data.is_circuit_overseer_visit and existing is not None:
            talk_part = existing.get_part(MeetingPartType.PUBLIC_TALK)
            if talk_part is not None and talk_part.scheduled_public_talks:
                displaced = talk_part.scheduled_public_talks[0]
                if not data.replace_public_talk:
                    raise ScheduleAlreadyExists(
                        date=format_calendar_date(data.date),
                        meeting_program_id=existing.id,
                        part_id=talk_part.id,
                        existing_schedule_id=str(displaced.id),
                    )

        if existing is None:
            program = MeetingProgram(
                type=MeetingType.WEEKEND,
                date=data.date,
                is_circuit_overseer_visit=data.is_circuit_overseer_visit,
            )
            self.db.add(program)
            try:
                await self.db.flush()
            except IntegrityError:
                await self.db.rollback()
                raise MeetingAlreadyScheduled(date=format_calendar_date(data.date))
            existing_parts: dict[MeetingPartType, MeetingProgramPart] = {}
        else:
            program = existing
            program.is_circuit_overseer_visit = data.is_circuit_overseer_visit
            existing_parts = {part.type: part for part in existing.parts}

        part_types = [MeetingPartType.CHAIRMAN]
        if data.is_circuit_overseer_visit:
            part_types += [MeetingPartType.PUBLIC_TALK, MeetingPartType.CIRCUIT_OVERSEER_TALK]
        part_types.append(MeetingPartType.WATCHTOWER_STUDY)
        if parts.reader:
            part_types.append(MeetingPartType.READER)
        part_types.append(MeetingPartType.CLOSING_PRAYER)

        created: dict[MeetingPartType, MeetingProgramPart] = dict(existing_parts)
        for part_type in part_types:
            if part_type in created:
                continue
            name = None
            if part_type == MeetingPartType.CIRCUIT_OVERSEER_TALK and parts.circuit_overseer_talk:
                name = parts.circuit_overseer_talk.title
            part = MeetingProgramPart(
                meeting_program_id=program.id,
                type=part_type,
                order=part_order(part_type),
                name=name,
            )
            self.db.add(part)
            created[part_type] = part
        await self.db.flush()

        for part_type, publisher_id in assignments.items():
            self.db.add(
                MeetingScheduledPart(
                    meeting_program_part_id=created[part_type].id,
                    publisher_id=publisher_id,
                )
            )

        if data.is_circuit_overseer_visit and parts.circuit_overseer_talk:
            await self._schedule_circuit_overseer_talk(
                program,
                created[MeetingPartType.PUBLIC_TALK],
                parts.circuit_overseer_talk.publisher_id,
                parts.public_talk.title if parts.public_talk else None,
                displaced,
            )

        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise MeetingAlreadyScheduled(date=format_calendar_date(data.date))

        await self.audit.log(
            AuditAction.WEEKEND_MEETING_PLANNED,
            "meeting_program",
            program.id,
            date=format_calendar_date(data.date),
            is_circuit_overseer_visit=data.is_circuit_overseer_visit,
            override_duplicates=data.override_duplicates,
            merged_into_existing=existing is not None,
            parts=parts.model_dump(mode="json"),
        )
        logger.info("Planned weekend meeting %s on %s", program.id, data.date)
        return await self.get_meeting(program.id)

    async def _schedule_circuit_overseer_talk(
        self,
        program: MeetingProgram,
        part: MeetingProgramPart,
        publisher_id: uuid.UUID,
        title: str | None,
        displaced: ScheduledPublicTalk | None = None,
    ) -> None:
        """
        On a CO visit the CO gives the public talk as a local publisher.

        A talk already scheduled in the slot (``displaced``) is taken over
        and the replaced booking is recorded in the audit trail.
        """
        talk = displaced
        if talk is None:
            talk = ScheduledPublicTalk(
                date=program.date,
                meeting_program_id=program.id,
                part_id=part.id,
            )
            self.db.add(talk)
        else:
            await self.audit.log(
                AuditAction.SCHEDULE_UPDATED,
                "schedule",
                talk.id,
                date=format_calendar_date(program.date),
                meeting_program_id=program.id,
                part_id=part.id,
                reason="circuit_overseer_visit",
                previous_speaker_source_type=talk.speaker_source_type.value,
                previous_speaker_id=talk.speaker_id,
                previous_publisher_id=talk.publisher_id,
                previous_talk_id=talk.talk_id,
                previous_custom_talk_title=talk.custom_talk_title,
                publisher_id=publisher_id,
            )
        talk.speaker_source_type = SpeakerSourceType.LOCAL_PUBLISHER
        talk.speaker_id = None
        talk.publisher_id = publisher_id
        talk.talk_id = None
        talk.custom_talk_title = title
        talk.override_validation = False

    async def _ensure_part_and_assignment(
        self,
        program: MeetingProgram,
        part_type: MeetingPartType,
        publisher_id: uuid.UUID,
        name: str | None = None,
    ) -> None:
        """Create the part if missing, then assign or reassign its publisher."""
        part = program.get_part(part_type)
        if part is None:
            part = MeetingProgramPart(
                meeting_program_id=program.id,
                type=part_type,
                order=part_order(part_type),
                name=name,
            )
            self.db.add(part)
            await self.db.flush()
            self.db.add(MeetingScheduledPart(meeting_program_part_id=part.id, publisher_id=publisher_id))
            return

        if name is not None:
            part.name = name
        if part.scheduled_parts:
            part.scheduled_parts[0].publisher_id = publisher_id
        else:
            self.db.add(MeetingScheduledPart(meeting_program_part_id=part.id, publisher_id=publisher_id))

    async def update_meeting(self, program_id: int, data: WeekendMeetingUpdate) -> MeetingProgram:
        """Change the CO visit flag and/or reassign given parts."""
        program = await self.get_meeting(program_id)
        if is_past_date(program.date, self.clock.today()):
            raise CannotEditPastSchedule(
                program_id=program_id,
                date=format_calendar_date(program.date),
            )

        if data.is_circuit_overseer_visit is not None:
            program.is_circuit_overseer_visit = data.is_circuit_overseer_visit

        co_title = None
        if data.parts:
            parts = data.parts
            assignments: dict[MeetingPartType, uuid.UUID] = {}
            for part_type, publisher_id in (
                (MeetingPartType.CHAIRMAN, parts.chairman),
                (MeetingPartType.WATCHTOWER_STUDY, parts.watchtower_study),
                (MeetingPartType.READER, parts.reader),
                (MeetingPartType.CLOSING_PRAYER, parts.prayer),
            ):
                if publisher_id:
                    assignments[part_type] = publisher_id
            if parts.circuit_overseer_talk:
                assignments[MeetingPartType.CIRCUIT_OVERSEER_TALK] = parts.circuit_overseer_talk.publisher_id
                co_title = parts.circuit_overseer_talk.title

            # The parts being reassigned may keep their current holder
            reassigned = [
                part.id for part in program.parts if part.type in assignments
            ]
            await self._check_assignments(
                program.date, assignments, data.override_duplicates, reassigned
            )

            for part_type, publisher_id in assignments.items():
                await self._ensure_part_and_assignment(
                    program,
                    part_type,
                    publisher_id,
                    co_title if part_type == MeetingPartType.CIRCUIT_OVERSEER_TALK else None,
                )

        await self.db.flush()
        await self.audit.log(
            AuditAction.WEEKEND_MEETING_UPDATED,
            "meeting_program",
            program_id,
            changes=data.model_dump(mode="json", exclude_unset=True),
        )
        return await self.get_meeting(program_id)


# =============================================================================
# Meeting Exceptions
# =============================================================================


class MeetingExceptionService:
    """Block out Sundays; an exception always wins over a planned program."""

    def __init__(self, db: AsyncSession, clock: Clock, audit: AuditLogger):
        self.db = db
        self.clock = clock
        self.audit = audit

    async def list_exceptions(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[MeetingException]:
        query = select(MeetingException).order_by(MeetingException.date.asc())
        if start_date:
            query = query.where(MeetingException.date >= start_date)
        if end_date:
            query = query.where(MeetingException.date <= end_date)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_exception(self, exception_id: uuid.UUID) -> MeetingException:
        exception = await self.db.get(MeetingException, exception_id)
        if exception is None:
            raise ExceptionNotFound(exception_id=str(exception_id))
        return exception

    async def _clear_program(self, day: date, confirm_delete_existing: bool) -> int | None:
        """
        Remove the weekend program on ``day`` if the caller confirmed it.

        Returns the id of the deleted program, or None if there was none.
        """
        program = await get_weekend_program(self.db, day)
        if program is None:
            return None

        if not confirm_delete_existing:
            raise MeetingAlreadyScheduledOnException(
                meeting={
                    "id": program.id,
                    "date": format_calendar_date(program.date),
                    "is_circuit_overseer_visit": program.is_circuit_overseer_visit,
                    "parts": describe_assignments(program),
                }
            )

        await delete_program_cascade(self.db, program.id)
        return program.id

    async def create_exception(self, data: MeetingExceptionCreate) -> MeetingException:
        require_future_sunday(data.date, self.clock.today())

        if await get_exception_on(self.db, data.date) is not None:
            raise ExceptionAlreadyExists(date=format_calendar_date(data.date))

        deleted_program_id = await self._clear_program(data.date, data.confirm_delete_existing)

        exception = MeetingException(
            date=data.date,
            exception_type=data.exception_type,
            description=data.description,
        )
        self.db.add(exception)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ExceptionAlreadyExists(date=format_calendar_date(data.date))

        await self.audit.log(
            AuditAction.MEETING_EXCEPTION_CREATED,
            "meeting_exception",
            exception.id,
            date=format_calendar_date(data.date),
            exception_type=data.exception_type.value,
            description=data.description,
            deleted_existing_meeting=deleted_program_id is not None,
            deleted_meeting_id=deleted_program_id,
        )
        return exception

    async def update_exception(
        self,
        exception_id: uuid.UUID,
        data: MeetingExceptionUpdate,
    ) -> MeetingException:
        exception = await self.get_exception(exception_id)
        changes = data.model_dump(exclude_unset=True, exclude={"confirm_delete_existing"})

        deleted_program_id = None
        new_date = data.date if "date" in data.model_fields_set else None
        if new_date is not None and new_date != exception.date:
            require_future_sunday(new_date, self.clock.today())
            if await get_exception_on(self.db, new_date) is not None:
                raise ExceptionAlreadyExists(date=format_calendar_date(new_date))
            deleted_program_id = await self._clear_program(new_date, data.confirm_delete_existing)
            exception.date = new_date

        if changes.get("exception_type") is not None:
            exception.exception_type = changes["exception_type"]
        if "description" in changes:
            exception.description = changes["description"]

        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ExceptionAlreadyExists(date=format_calendar_date(exception.date))

        await self.audit.log(
            AuditAction.MEETING_EXCEPTION_UPDATED,
            "meeting_exception",
            exception.id,
            changes=data.model_dump(mode="json", exclude_unset=True),
            deleted_existing_meeting=deleted_program_id is not None,
            deleted_meeting_id=deleted_program_id,
        )
        await self.db.refresh(exception)
        return exception

    async def delete_exception(self, exception_id: uuid.UUID) -> None:
        exception = await self.get_exception(exception_id)
        await self.db.delete(exception)
        await self.db.flush()
        await self.audit.log(
            AuditAction.MEETING_EXCEPTION_DELETED,
            "meeting_exception",
            exception_id,
            date=format_calendar_date(exception.date),
            exception_type=exception.exception_type.value,
        )

"""
Conflict detection.

Two kinds of occupancy are checked:

- a (date, program, part) slot already holds a scheduled public talk;
- a publisher is already assigned to another part on the same date.

The slot check is advisory (the UI asks before submitting); the unique
constraint on ``scheduled_public_talks`` is what actually prevents double
booking.
"""

import uuid
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from congregation_planner.scheduling.models import (
    MeetingProgram,
    MeetingProgramPart,
    MeetingScheduledPart,
    MeetingType,
    ScheduledPublicTalk,
)


@dataclass
class ConflictCheck:
    has_conflict: bool
    existing: ScheduledPublicTalk | None = None


async def check_conflict(
    db: AsyncSession,
    day: date,
    meeting_program_id: int,
    part_id: int,
) -> ConflictCheck:
    """Look up the schedule occupying a (date, program, part) slot."""
    result = await db.execute(
        select(ScheduledPublicTalk)
        .where(
            ScheduledPublicTalk.date == day,
            ScheduledPublicTalk.meeting_program_id == meeting_program_id,
            ScheduledPublicTalk.part_id == part_id,
        )
        .options(
            selectinload(ScheduledPublicTalk.speaker),
            selectinload(ScheduledPublicTalk.publisher),
            selectinload(ScheduledPublicTalk.talk),
        )
    )
    existing = result.scalar_one_or_none()
    return ConflictCheck(has_conflict=existing is not None, existing=existing)


def find_duplicate_publishers(publisher_ids: Iterable[uuid.UUID]) -> list[uuid.UUID]:
    """Publishers that appear more than once in one request, in first-seen order."""
    counts = Counter(publisher_ids)
    return [publisher_id for publisher_id, count in counts.items() if count > 1]


async def find_assigned_publishers(
    db: AsyncSession,
    day: date,
    publisher_ids: Iterable[uuid.UUID],
    exclude_part_ids: Iterable[int] = (),
) -> list[uuid.UUID]:
    """
    Publishers from ``publisher_ids`` already holding a part on ``day``.

    Parts in ``exclude_part_ids`` are ignored, so that re-assigning a part
    does not conflict with its own current holder.
    """
    publisher_ids = list(dict.fromkeys(publisher_ids))
    if not publisher_ids:
        return []

    query = (
        select(MeetingScheduledPart.publisher_id)
        .join(MeetingProgramPart, MeetingScheduledPart.meeting_program_part_id == MeetingProgramPart.id)
        .join(MeetingProgram, MeetingProgramPart.meeting_program_id == MeetingProgram.id)
        .where(
            MeetingProgram.type == MeetingType.WEEKEND,
            MeetingProgram.date == day,
            MeetingScheduledPart.publisher_id.in_(publisher_ids),
        )
    )
    exclude_part_ids = list(exclude_part_ids)
    if exclude_part_ids:
        query = query.where(MeetingProgramPart.id.not_in(exclude_part_ids))

    result = await db.execute(query)
    assigned = set(result.scalars().all())
    return [publisher_id for publisher_id in publisher_ids if publisher_id in assigned]

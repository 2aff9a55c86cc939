"""
Scheduling API Router

Endpoints for public talk schedules, weekend meeting programs, meeting
exceptions and auto-suggestion.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from congregation_planner.auth.dependencies import CurrentUser, require_permission
from congregation_planner.auth.permissions import Permission, has_permission
from congregation_planner.core.audit import AuditAction, AuditLogger
from congregation_planner.core.config import settings
from congregation_planner.core.database import get_db
from congregation_planner.core.dates import CalendarDate, Clock, get_clock
from congregation_planner.core.errors import PermissionDenied
from congregation_planner.scheduling.schemas import (
    AutoSuggestionRequest,
    AutoSuggestionResponse,
    ConflictCheckResponse,
    MeetingExceptionCreate,
    MeetingExceptionResponse,
    MeetingExceptionUpdate,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleUpdate,
    WeekendMeetingPlan,
    WeekendMeetingResponse,
    WeekendMeetingUpdate,
)
from congregation_planner.scheduling.services import (
    MeetingExceptionService,
    ScheduleService,
    WeekendMeetingService,
    program_state,
)
from congregation_planner.scheduling.suggestion import AutoSuggestionService

router = APIRouter(tags=["scheduling"])


def _audit(db: AsyncSession, user: CurrentUser) -> AuditLogger:
    return AuditLogger(db, user.id, user.email)


# =============================================================================
# Schedules (public talks)
# =============================================================================


@router.get("/schedules", response_model=list[ScheduleResponse])
async def list_schedules(
    history: bool = False,
    start_date: CalendarDate | None = Query(default=None),
    end_date: CalendarDate | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_permission(Permission.WEEKEND_MEETINGS_LIST)),
) -> list[ScheduleResponse]:
    """List upcoming schedules, or past ones with ``history=true``."""
    if history and not has_permission(current_user.role, Permission.WEEKEND_MEETINGS_LIST_HISTORY):
        await _audit(db, current_user).log(
            AuditAction.PERMISSION_DENIED,
            "api",
            "/schedules",
            attempted_action="GET",
            required_permission=str(Permission.WEEKEND_MEETINGS_LIST_HISTORY),
            user_role=current_user.role,
        )
        await db.commit()
        raise PermissionDenied(
            required_permission=str(Permission.WEEKEND_MEETINGS_LIST_HISTORY),
            role=current_user.role,
        )
    service = ScheduleService(db, clock, _audit(db, current_user))
    return await service.list_schedules(history=history, start_date=start_date, end_date=end_date)


@router.post("/schedules", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    data: ScheduleCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_SCHEDULE_PUBLIC_TALKS)
    ),
) -> ScheduleResponse:
    """Schedule a public talk on a future Sunday."""
    service = ScheduleService(db, clock, _audit(db, current_user))
    schedule = await service.create_schedule(data)
    await db.commit()
    return schedule


@router.get("/schedules/conflicts", response_model=ConflictCheckResponse)
async def check_schedule_conflict(
    date: CalendarDate = Query(),
    meeting_program_id: int = Query(gt=0),
    part_id: int = Query(gt=0),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_SCHEDULE_PUBLIC_TALKS)
    ),
) -> ConflictCheckResponse:
    """Check whether a (date, program, part) slot is already taken."""
    service = ScheduleService(db, clock, _audit(db, current_user))
    conflict = await service.check_conflict(date, meeting_program_id, part_id)
    return ConflictCheckResponse(
        has_conflict=conflict.has_conflict,
        existing_schedule=(
            ScheduleResponse.model_validate(conflict.existing) if conflict.existing else None
        ),
    )


@router.patch("/schedules/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: UUID,
    data: ScheduleUpdate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_SCHEDULE_PUBLIC_TALKS)
    ),
) -> ScheduleResponse:
    service = ScheduleService(db, clock, _audit(db, current_user))
    schedule = await service.update_schedule(schedule_id, data)
    await db.commit()
    return schedule


@router.delete("/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: UUID,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_SCHEDULE_PUBLIC_TALKS)
    ),
) -> None:
    service = ScheduleService(db, clock, _audit(db, current_user))
    await service.delete_schedule(schedule_id)
    await db.commit()


# =============================================================================
# Weekend Meetings
# =============================================================================


@router.get("/weekend-meetings", response_model=list[WeekendMeetingResponse])
async def list_weekend_meetings(
    start_date: CalendarDate | None = Query(default=None),
    end_date: CalendarDate | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_permission(Permission.WEEKEND_MEETINGS_LIST)),
) -> list[WeekendMeetingResponse]:
    """List weekend programs with their parts and derived scheduling state."""
    service = WeekendMeetingService(db, clock, _audit(db, current_user))
    programs = await service.list_meetings(start_date=start_date, end_date=end_date)
    return [WeekendMeetingResponse.from_program(p, program_state(p)) for p in programs]


@router.post(
    "/weekend-meetings/plan",
    response_model=WeekendMeetingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def plan_weekend_meeting(
    data: WeekendMeetingPlan,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_SCHEDULE_REST)
    ),
) -> WeekendMeetingResponse:
    """Plan the non-talk parts of a weekend meeting (and the CO talk on a visit)."""
    service = WeekendMeetingService(db, clock, _audit(db, current_user))
    program = await service.plan_meeting(data)
    await db.commit()
    return WeekendMeetingResponse.from_program(program, program_state(program))


@router.patch("/weekend-meetings/{program_id}", response_model=WeekendMeetingResponse)
async def update_weekend_meeting(
    program_id: int,
    data: WeekendMeetingUpdate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_SCHEDULE_REST)
    ),
) -> WeekendMeetingResponse:
    service = WeekendMeetingService(db, clock, _audit(db, current_user))
    program = await service.update_meeting(program_id, data)
    await db.commit()
    return WeekendMeetingResponse.from_program(program, program_state(program))


# =============================================================================
# Auto-Suggestion
# =============================================================================


@router.post("/auto-suggestion", response_model=AutoSuggestionResponse)
async def auto_suggestion(
    data: AutoSuggestionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.WEEKEND_MEETINGS_LIST)),
) -> AutoSuggestionResponse:
    """Suggest the next speaker; skip by resending with the speaker excluded."""
    service = AutoSuggestionService(
        db,
        timeout_seconds=settings.auto_suggestion_timeout_seconds,
        pool_size=settings.talk_pool_size,
    )
    return await service.suggest(data.excluded_speaker_ids)


# =============================================================================
# Meeting Exceptions
# =============================================================================


@router.get("/meeting-exceptions", response_model=list[MeetingExceptionResponse])
async def list_meeting_exceptions(
    start_date: CalendarDate | None = Query(default=None),
    end_date: CalendarDate | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_permission(Permission.WEEKEND_MEETINGS_LIST)),
) -> list[MeetingExceptionResponse]:
    service = MeetingExceptionService(db, clock, _audit(db, current_user))
    return await service.list_exceptions(start_date=start_date, end_date=end_date)


@router.post(
    "/meeting-exceptions",
    response_model=MeetingExceptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_meeting_exception(
    data: MeetingExceptionCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_MANAGE_EXCEPTIONS)
    ),
) -> MeetingExceptionResponse:
    """
    Block out a Sunday.

    If a weekend program exists on that date the request fails with 409 and
    the program's assignments, unless ``confirm_delete_existing`` is set, in
    which case the program is deleted first.
    """
    service = MeetingExceptionService(db, clock, _audit(db, current_user))
    exception = await service.create_exception(data)
    await db.commit()
    return exception


@router.patch("/meeting-exceptions/{exception_id}", response_model=MeetingExceptionResponse)
async def update_meeting_exception(
    exception_id: UUID,
    data: MeetingExceptionUpdate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_MANAGE_EXCEPTIONS)
    ),
) -> MeetingExceptionResponse:
    service = MeetingExceptionService(db, clock, _audit(db, current_user))
    exception = await service.update_exception(exception_id, data)
    await db.commit()
    return exception


@router.delete("/meeting-exceptions/{exception_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting_exception(
    exception_id: UUID,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(
        require_permission(Permission.WEEKEND_MEETINGS_MANAGE_EXCEPTIONS)
    ),
) -> None:
    service = MeetingExceptionService(db, clock, _audit(db, current_user))
    await service.delete_exception(exception_id)
    await db.commit()

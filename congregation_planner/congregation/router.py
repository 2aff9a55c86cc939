"""
Congregation API Router

Endpoints for the registry: publishers, visiting speakers, the public talk
catalog and congregations.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from congregation_planner.auth.dependencies import (
    CurrentUser,
    get_audit_logger,
    require_permission,
)
from congregation_planner.auth.permissions import Permission
from congregation_planner.congregation.schemas import (
    AvailableForPartsResponse,
    CongregationCreate,
    CongregationResponse,
    LinkUserRequest,
    PublicTalkCreate,
    PublicTalkResponse,
    PublicTalkStatusUpdate,
    PublicTalkUpdate,
    PublisherCreate,
    PublisherResponse,
    PublisherUpdate,
    SpeakerArchiveRequest,
    SpeakerCreate,
    SpeakerResponse,
    SpeakerUpdate,
)
from congregation_planner.congregation.services import (
    CongregationService,
    PublisherService,
    SpeakerService,
    TalkService,
)
from congregation_planner.core.audit import AuditLogger
from congregation_planner.core.database import get_db

router = APIRouter(tags=["congregation"])


# =============================================================================
# Publishers
# =============================================================================


@router.get("/publishers", response_model=list[PublisherResponse])
async def list_publishers(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.PUBLISHERS_LIST)),
) -> list[PublisherResponse]:
    return await PublisherService(db, audit).list_publishers()


@router.get("/publishers/available-for-parts", response_model=AvailableForPartsResponse)
async def publishers_available_for_parts(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.PUBLISHERS_LIST)),
) -> AvailableForPartsResponse:
    """Publishers grouped by the weekend meeting parts they may take."""
    grouped = await PublisherService(db, audit).available_for_parts()
    return AvailableForPartsResponse.model_validate(grouped, from_attributes=True)


@router.post("/publishers", response_model=PublisherResponse, status_code=status.HTTP_201_CREATED)
async def create_publisher(
    data: PublisherCreate,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.PUBLISHERS_CREATE)),
) -> PublisherResponse:
    publisher = await PublisherService(db, audit).create_publisher(data)
    await db.commit()
    return publisher


@router.patch("/publishers/{publisher_id}", response_model=PublisherResponse)
async def update_publisher(
    publisher_id: UUID,
    data: PublisherUpdate,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.PUBLISHERS_UPDATE)),
) -> PublisherResponse:
    """Update a publisher's names or capability flags."""
    publisher = await PublisherService(db, audit).update_publisher(publisher_id, data)
    await db.commit()
    return publisher


@router.patch("/publishers/{publisher_id}/link-user", response_model=PublisherResponse)
async def link_publisher_user(
    publisher_id: UUID,
    data: LinkUserRequest,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.PUBLISHERS_LINK_TO_USER)),
) -> PublisherResponse:
    publisher = await PublisherService(db, audit).link_user(publisher_id, data.user_id)
    await db.commit()
    return publisher


# =============================================================================
# Speakers
# =============================================================================


@router.get("/speakers", response_model=list[SpeakerResponse])
async def list_speakers(
    include_archived: bool = False,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.SPEAKERS_LIST)),
) -> list[SpeakerResponse]:
    return await SpeakerService(db, audit).list_speakers(include_archived=include_archived)


@router.post("/speakers", response_model=SpeakerResponse, status_code=status.HTTP_201_CREATED)
async def create_speaker(
    data: SpeakerCreate,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.SPEAKERS_CREATE)),
) -> SpeakerResponse:
    """Add a visiting speaker together with the talks they are approved for."""
    speaker = await SpeakerService(db, audit).create_speaker(data)
    await db.commit()
    return speaker


@router.patch("/speakers/{speaker_id}", response_model=SpeakerResponse)
async def update_speaker(
    speaker_id: UUID,
    data: SpeakerUpdate,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.SPEAKERS_UPDATE)),
) -> SpeakerResponse:
    """Update a speaker; ``talk_ids`` replaces the approved talk list."""
    speaker = await SpeakerService(db, audit).update_speaker(speaker_id, data)
    await db.commit()
    return speaker


@router.patch("/speakers/{speaker_id}/archive", response_model=SpeakerResponse)
async def archive_speaker(
    speaker_id: UUID,
    data: SpeakerArchiveRequest,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.SPEAKERS_ARCHIVE)),
) -> SpeakerResponse:
    """Archive (``archived: true``) or restore (``archived: false``) a speaker."""
    speaker = await SpeakerService(db, audit).set_archived(speaker_id, data.archived)
    await db.commit()
    return speaker


# =============================================================================
# Public Talks
# =============================================================================


@router.get("/public-talks", response_model=list[PublicTalkResponse])
async def list_public_talks(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.TALKS_LIST)),
) -> list[PublicTalkResponse]:
    return await TalkService(db, audit).list_talks()


@router.post("/public-talks", response_model=PublicTalkResponse, status_code=status.HTTP_201_CREATED)
async def create_public_talk(
    data: PublicTalkCreate,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.TALKS_CREATE)),
) -> PublicTalkResponse:
    talk = await TalkService(db, audit).create_talk(data)
    await db.commit()
    return talk


@router.patch("/public-talks/{talk_id}", response_model=PublicTalkResponse)
async def update_public_talk(
    talk_id: int,
    data: PublicTalkUpdate,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.TALKS_UPDATE)),
) -> PublicTalkResponse:
    talk = await TalkService(db, audit).update_talk(talk_id, data)
    await db.commit()
    return talk


@router.patch("/public-talks/{talk_id}/status", response_model=PublicTalkResponse)
async def set_public_talk_status(
    talk_id: int,
    data: PublicTalkStatusUpdate,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.TALKS_FLAG)),
) -> PublicTalkResponse:
    talk = await TalkService(db, audit).set_status(talk_id, data.status)
    await db.commit()
    return talk


# =============================================================================
# Congregations
# =============================================================================


@router.get("/congregations", response_model=list[CongregationResponse])
async def list_congregations(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.SPEAKERS_LIST)),
) -> list[CongregationResponse]:
    return await CongregationService(db, audit).list_congregations()


@router.post(
    "/congregations",
    response_model=CongregationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_congregation(
    data: CongregationCreate,
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: CurrentUser = Depends(require_permission(Permission.SPEAKERS_CREATE)),
) -> CongregationResponse:
    congregation = await CongregationService(db, audit).create_congregation(data)
    await db.commit()
    return congregation

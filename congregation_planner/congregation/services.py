"""
Congregation Module Services

Business logic for the registry the scheduler draws on: publishers and their
capability flags, visiting speakers and their approved talks, the public talk
catalog and congregations.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from congregation_planner.congregation.models import (
    Congregation,
    PublicTalk,
    Publisher,
    Speaker,
    TalkStatus,
)
from congregation_planner.congregation.schemas import (
    CongregationCreate,
    PublicTalkCreate,
    PublicTalkUpdate,
    PublisherCreate,
    PublisherUpdate,
    SpeakerCreate,
    SpeakerUpdate,
)
from congregation_planner.core.audit import AuditAction, AuditLogger
from congregation_planner.core.database import utcnow
from congregation_planner.core.errors import (
    CongregationExists,
    CongregationNotFound,
    ResourceNotFound,
    TalkNotFound,
    UserAlreadyLinked,
)
from congregation_planner.scheduling.eligibility import available_for_parts
from congregation_planner.scheduling.models import MeetingPartType

logger = logging.getLogger(__name__)


class PublisherService:
    """Service for local publishers."""

    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit

    async def get_publisher(self, publisher_id: uuid.UUID) -> Publisher:
        publisher = await self.db.get(Publisher, publisher_id)
        if publisher is None:
            raise ResourceNotFound(resource="publisher", id=str(publisher_id))
        return publisher

    async def list_publishers(self) -> list[Publisher]:
        result = await self.db.execute(
            select(Publisher).order_by(Publisher.last_name, Publisher.first_name)
        )
        return list(result.scalars().all())

    async def _ensure_user_free(self, user_id: str, publisher_id: uuid.UUID | None = None) -> None:
        query = select(Publisher.id).where(Publisher.user_id == user_id)
        if publisher_id is not None:
            query = query.where(Publisher.id != publisher_id)
        linked = (await self.db.execute(query)).scalar_one_or_none()
        if linked is not None:
            raise UserAlreadyLinked(user_id=user_id, publisher_id=str(linked))

    async def _flush_user_link(self, user_id: str | None) -> None:
        try:
            await self.db.flush()
        except IntegrityError:
            # Another request linked the same account first
            await self.db.rollback()
            raise UserAlreadyLinked(user_id=user_id)

    async def create_publisher(self, data: PublisherCreate) -> Publisher:
        if data.user_id is not None:
            await self._ensure_user_free(data.user_id)

        publisher = Publisher(**data.model_dump())
        self.db.add(publisher)
        await self._flush_user_link(data.user_id)

        await self.audit.log(
            AuditAction.PUBLISHER_CREATED,
            "publisher",
            str(publisher.id),
            name=publisher.full_name,
        )
        logger.info("Created publisher %s", publisher.id)
        return publisher

    async def update_publisher(self, publisher_id: uuid.UUID, data: PublisherUpdate) -> Publisher:
        publisher = await self.get_publisher(publisher_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(publisher, field, value)
        await self.db.flush()

        await self.audit.log(
            AuditAction.PUBLISHER_UPDATED,
            "publisher",
            str(publisher.id),
            changes=changes,
        )
        return publisher

    async def link_user(self, publisher_id: uuid.UUID, user_id: str | None) -> Publisher:
        """Link the publisher to a user account, or unlink it with ``None``."""
        publisher = await self.get_publisher(publisher_id)
        if user_id is not None:
            await self._ensure_user_free(user_id, publisher.id)

        previous = publisher.user_id
        publisher.user_id = user_id
        await self._flush_user_link(user_id)

        await self.audit.log(
            AuditAction.PUBLISHER_USER_LINKED,
            "publisher",
            str(publisher.id),
            previous_user_id=previous,
            user_id=user_id,
        )
        return publisher

    async def available_for_parts(self) -> dict[str, list[Publisher]]:
        """Publishers grouped by the weekend meeting parts they may take."""
        grouped = available_for_parts(await self.list_publishers())
        return {
            "chairman": grouped[MeetingPartType.CHAIRMAN],
            "watchtower_study": grouped[MeetingPartType.WATCHTOWER_STUDY],
            "reader": grouped[MeetingPartType.READER],
            "prayer": grouped[MeetingPartType.CLOSING_PRAYER],
            "circuit_overseer_talk": grouped[MeetingPartType.CIRCUIT_OVERSEER_TALK],
        }


class SpeakerService:
    """Service for visiting speakers."""

    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit

    async def get_speaker(self, speaker_id: uuid.UUID) -> Speaker:
        speaker = await self.db.get(Speaker, speaker_id)
        if speaker is None:
            raise ResourceNotFound(resource="speaker", id=str(speaker_id))
        return speaker

    async def list_speakers(self, include_archived: bool = False) -> list[Speaker]:
        query = select(Speaker).order_by(Speaker.last_name, Speaker.first_name)
        if not include_archived:
            query = query.where(Speaker.archived.is_(False))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _get_congregation(self, congregation_id: uuid.UUID | None) -> Congregation | None:
        if congregation_id is None:
            return None
        congregation = await self.db.get(Congregation, congregation_id)
        if congregation is None:
            raise CongregationNotFound(congregation_id=str(congregation_id))
        return congregation

    async def _get_talks(self, talk_ids: list[int]) -> list[PublicTalk]:
        """Approved talks by id, ordered by talk number. Unknown ids are an error."""
        talk_ids = list(dict.fromkeys(talk_ids))
        if not talk_ids:
            return []
        result = await self.db.execute(select(PublicTalk).where(PublicTalk.id.in_(talk_ids)))
        talks = list(result.scalars().all())
        missing = sorted(set(talk_ids) - {talk.id for talk in talks})
        if missing:
            raise TalkNotFound(talk_ids=missing)
        return sorted(talks, key=lambda talk: talk.no)

    async def create_speaker(self, data: SpeakerCreate) -> Speaker:
        congregation = await self._get_congregation(data.congregation_id)
        talks = await self._get_talks(data.talk_ids)

        speaker = Speaker(
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            congregation=congregation,
            talks=talks,
        )
        self.db.add(speaker)
        await self.db.flush()

        await self.audit.log(
            AuditAction.SPEAKER_CREATED,
            "speaker",
            str(speaker.id),
            name=speaker.full_name,
            talk_ids=[talk.id for talk in speaker.talks],
        )
        logger.info("Created speaker %s with %d approved talks", speaker.id, len(talks))
        return speaker

    async def update_speaker(self, speaker_id: uuid.UUID, data: SpeakerUpdate) -> Speaker:
        """
        Update a speaker's details. A given ``talk_ids`` list replaces the
        approved talks in the same transaction.
        """
        speaker = await self.get_speaker(speaker_id)
        fields = data.model_fields_set

        if data.first_name is not None:
            speaker.first_name = data.first_name
        if data.last_name is not None:
            speaker.last_name = data.last_name
        if "phone" in fields:
            speaker.phone = data.phone
        if "congregation_id" in fields:
            speaker.congregation = await self._get_congregation(data.congregation_id)

        previous_talk_ids = [talk.id for talk in speaker.talks]
        if data.talk_ids is not None:
            speaker.talks = await self._get_talks(data.talk_ids)
        await self.db.flush()

        await self.audit.log(
            AuditAction.SPEAKER_UPDATED,
            "speaker",
            str(speaker.id),
            changes=data.model_dump(mode="json", exclude_unset=True),
            previous_talk_ids=previous_talk_ids,
            talk_ids=[talk.id for talk in speaker.talks],
        )
        return speaker

    async def set_archived(self, speaker_id: uuid.UUID, archived: bool) -> Speaker:
        """Archive or restore a speaker. Repeating the current state is a no-op."""
        speaker = await self.get_speaker(speaker_id)
        if speaker.archived == archived:
            return speaker

        speaker.archived = archived
        speaker.archived_at = utcnow() if archived else None
        await self.db.flush()

        await self.audit.log(
            AuditAction.SPEAKER_ARCHIVED if archived else AuditAction.SPEAKER_RESTORED,
            "speaker",
            str(speaker.id),
        )
        return speaker


class TalkService:
    """Service for the public talk catalog."""

    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit

    async def list_talks(self) -> list[PublicTalk]:
        result = await self.db.execute(select(PublicTalk).order_by(PublicTalk.no, PublicTalk.id))
        return list(result.scalars().all())

    async def create_talk(self, data: PublicTalkCreate) -> PublicTalk:
        talk = PublicTalk(**data.model_dump())
        self.db.add(talk)
        await self.db.flush()

        await self.audit.log(
            AuditAction.TALK_CREATED,
            "public_talk",
            str(talk.id),
            no=talk.no,
            title=talk.title,
        )
        return talk

    async def get_talk(self, talk_id: int) -> PublicTalk:
        talk = await self.db.get(PublicTalk, talk_id)
        if talk is None:
            raise ResourceNotFound(resource="public_talk", id=talk_id)
        return talk

    async def update_talk(self, talk_id: int, data: PublicTalkUpdate) -> PublicTalk:
        talk = await self.get_talk(talk_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(talk, field, value)
        await self.db.flush()

        await self.audit.log(
            AuditAction.TALK_UPDATED,
            "public_talk",
            str(talk.id),
            changes=changes,
        )
        return talk

    async def set_status(self, talk_id: int, status: TalkStatus | None) -> PublicTalk:
        talk = await self.get_talk(talk_id)

        old_status = talk.status
        talk.status = status
        await self.db.flush()

        await self.audit.log(
            AuditAction.TALK_STATUS_CHANGED,
            "public_talk",
            str(talk.id),
            old_status=old_status.value if old_status else None,
            new_status=status.value if status else None,
        )
        return talk


class CongregationService:
    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit

    async def list_congregations(self) -> list[Congregation]:
        result = await self.db.execute(select(Congregation).order_by(Congregation.name))
        return list(result.scalars().all())

    async def create_congregation(self, data: CongregationCreate) -> Congregation:
        congregation = Congregation(name=data.name)
        self.db.add(congregation)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise CongregationExists(name=data.name)

        await self.audit.log(
            AuditAction.CONGREGATION_CREATED,
            "congregation",
            str(congregation.id),
            name=congregation.name,
        )
        return congregation

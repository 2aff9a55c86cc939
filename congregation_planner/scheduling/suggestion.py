"""
Auto-suggestion of the next public talk speaker.

Picks the visiting speaker who has gone longest without giving a talk,
together with the talks they could give, favouring talks that have gone
longest without being given. Deterministic: ties break on name and id.

Skipping a suggestion is the caller's job: it sends the returned speaker id
back in ``excluded_speaker_ids`` and everything is recomputed.
"""

import logging
import time
import uuid
from datetime import date

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from congregation_planner.congregation.models import Publisher, PublicTalk, Speaker, SpeakerTalk
from congregation_planner.core.config import settings
from congregation_planner.core.errors import AutoSuggestionTimeout
from congregation_planner.scheduling.models import ScheduledPublicTalk
from congregation_planner.scheduling.schemas import (
    AutoSuggestionResponse,
    SuggestedSpeaker,
    SuggestedTalk,
)

logger = logging.getLogger(__name__)

LOCAL_CONGREGATION_NAME = "Local"


class _Deadline:
    """Wall-clock budget checked between the steps of one suggestion."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.started = time.monotonic()

    def check(self, step: str) -> None:
        elapsed = time.monotonic() - self.started
        if elapsed >= self.seconds:
            raise AutoSuggestionTimeout(step=step, elapsed_seconds=round(elapsed, 3))


class AutoSuggestionService:
    """
    Suggests a speaker and talks for the next open weekend.

    Steps:
    1. Talk pool: the ``pool_size`` talks of non-archived visiting speakers
       given longest ago (never given first).
    2. No visiting speakers or an empty pool: suggest a local publisher.
    3. Eligible speakers: approved for a pool talk, not archived, not excluded.
    4. Pick the eligible speaker whose last talk (of any kind) is oldest.
    5. Offer that speaker's pool talks, the ones they gave longest ago first.
    6. Report whether skipping would yield another speaker.

    Running out of time degrades to the local publisher suggestion.
    """

    def __init__(
        self,
        db: AsyncSession,
        timeout_seconds: float | None = None,
        pool_size: int | None = None,
    ):
        self.db = db
        self.timeout_seconds = (
            settings.auto_suggestion_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.pool_size = settings.talk_pool_size if pool_size is None else pool_size

    async def suggest(self, excluded_speaker_ids: list[uuid.UUID] | None = None) -> AutoSuggestionResponse:
        excluded = list(dict.fromkeys(excluded_speaker_ids or []))
        deadline = _Deadline(self.timeout_seconds)
        try:
            return await self._suggest_visiting_speaker(excluded, deadline)
        except AutoSuggestionTimeout as e:
            logger.warning("Auto-suggestion timed out (%s), falling back to local publisher", e.data)
            return await self.suggest_local_publisher(excluded)

    async def _suggest_visiting_speaker(
        self,
        excluded: list[uuid.UUID],
        deadline: _Deadline,
    ) -> AutoSuggestionResponse:
        deadline.check("visiting_speakers")
        result = await self.db.execute(select(Speaker.id).where(Speaker.archived.is_(False)).limit(1))
        if result.first() is None:
            logger.debug("No visiting speakers, falling back to local publisher")
            return await self.suggest_local_publisher(excluded)

        deadline.check("talk_pool")
        pool = await self._talk_pool()
        if not pool:
            logger.debug("Empty talk pool, falling back to local publisher")
            return await self.suggest_local_publisher(excluded)
        pool_ids = [talk_id for talk_id, *_ in pool]

        deadline.check("eligible_speakers")
        eligible_ids = await self._eligible_speakers(pool_ids, excluded)
        if not eligible_ids:
            return AutoSuggestionResponse(speaker=None, available_talks=[], has_more_suggestions=False)

        deadline.check("speaker_selection")
        speaker, last_talk_date = await self._least_recent_speaker(eligible_ids)

        deadline.check("available_talks")
        available = await self._available_talks(speaker.id, pool_ids)

        deadline.check("has_more_suggestions")
        has_more = any(speaker_id != speaker.id for speaker_id in eligible_ids)

        logger.info(
            "Suggested speaker %s with %d talks (excluded: %d)",
            speaker.id,
            len(available),
            len(excluded),
        )
        return AutoSuggestionResponse(
            speaker=SuggestedSpeaker(
                id=speaker.id,
                first_name=speaker.first_name,
                last_name=speaker.last_name,
                phone=speaker.phone,
                congregation_name=speaker.congregation.name if speaker.congregation else None,
                last_talk_date=last_talk_date,
                is_visiting=True,
            ),
            available_talks=available,
            has_more_suggestions=has_more,
        )

    async def _talk_pool(self) -> list[tuple]:
        """Talks of active visiting speakers, given longest ago first."""
        last_given = func.max(ScheduledPublicTalk.date).label("last_given_date")
        result = await self.db.execute(
            select(PublicTalk.id, PublicTalk.no, PublicTalk.title, last_given)
            .select_from(SpeakerTalk)
            .join(PublicTalk, SpeakerTalk.talk_id == PublicTalk.id)
            .join(Speaker, SpeakerTalk.speaker_id == Speaker.id)
            .outerjoin(
                ScheduledPublicTalk,
                and_(
                    ScheduledPublicTalk.talk_id == PublicTalk.id,
                    ScheduledPublicTalk.speaker_id == Speaker.id,
                ),
            )
            .where(Speaker.archived.is_(False))
            .group_by(PublicTalk.id, PublicTalk.no, PublicTalk.title)
            .order_by(last_given.asc().nulls_first(), PublicTalk.no.asc(), PublicTalk.id.asc())
            .limit(self.pool_size)
        )
        return [tuple(row) for row in result.all()]

    async def _eligible_speakers(
        self,
        pool_ids: list[int],
        excluded: list[uuid.UUID],
    ) -> list[uuid.UUID]:
        query = (
            select(Speaker.id)
            .select_from(SpeakerTalk)
            .join(Speaker, SpeakerTalk.speaker_id == Speaker.id)
            .where(SpeakerTalk.talk_id.in_(pool_ids), Speaker.archived.is_(False))
            .group_by(Speaker.id)
        )
        if excluded:
            query = query.where(Speaker.id.not_in(excluded))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _least_recent_speaker(self, speaker_ids: list[uuid.UUID]) -> tuple[Speaker, date | None]:
        """The speaker whose last talk, of any kind, is oldest (never first)."""
        last_talk = func.max(ScheduledPublicTalk.date).label("last_talk_date")
        result = await self.db.execute(
            select(Speaker, last_talk)
            .outerjoin(ScheduledPublicTalk, ScheduledPublicTalk.speaker_id == Speaker.id)
            .where(Speaker.id.in_(speaker_ids))
            .group_by(Speaker.id)
            .order_by(
                last_talk.asc().nulls_first(),
                Speaker.last_name.asc(),
                Speaker.first_name.asc(),
                Speaker.id.asc(),
            )
            .limit(1)
        )
        speaker, last_talk_date = result.one()
        return speaker, last_talk_date

    async def _available_talks(self, speaker_id: uuid.UUID, pool_ids: list[int]) -> list[SuggestedTalk]:
        """The speaker's approved pool talks, the ones they gave longest ago first."""
        last_given = func.max(ScheduledPublicTalk.date).label("last_given_date")
        result = await self.db.execute(
            select(PublicTalk.id, PublicTalk.no, PublicTalk.title, last_given)
            .select_from(SpeakerTalk)
            .join(PublicTalk, SpeakerTalk.talk_id == PublicTalk.id)
            .outerjoin(
                ScheduledPublicTalk,
                and_(
                    ScheduledPublicTalk.talk_id == PublicTalk.id,
                    ScheduledPublicTalk.speaker_id == speaker_id,
                ),
            )
            .where(SpeakerTalk.speaker_id == speaker_id, PublicTalk.id.in_(pool_ids))
            .group_by(PublicTalk.id, PublicTalk.no, PublicTalk.title)
            .order_by(last_given.asc().nulls_first(), PublicTalk.no.asc(), PublicTalk.id.asc())
        )
        return [
            SuggestedTalk(id=talk_id, no=no, title=title, last_given_date=last_given_date)
            for talk_id, no, title, last_given_date in result.all()
        ]

    async def suggest_local_publisher(
        self,
        excluded: list[uuid.UUID] | None = None,
    ) -> AutoSuggestionResponse:
        """
        Fallback: the local publisher who gave a public talk longest ago,
        offered the whole talk catalog.
        """
        excluded = excluded or []
        last_talk = func.max(ScheduledPublicTalk.date).label("last_talk_date")
        query = (
            select(Publisher, last_talk)
            .outerjoin(ScheduledPublicTalk, ScheduledPublicTalk.publisher_id == Publisher.id)
            .where(Publisher.delivers_public_talks.is_(True))
            .group_by(Publisher.id)
            .order_by(
                last_talk.asc().nulls_first(),
                Publisher.last_name.asc(),
                Publisher.first_name.asc(),
                Publisher.id.asc(),
            )
            .limit(2)
        )
        if excluded:
            query = query.where(Publisher.id.not_in(excluded))
        rows = (await self.db.execute(query)).all()
        if not rows:
            return AutoSuggestionResponse(speaker=None, available_talks=[], has_more_suggestions=False)

        publisher, last_talk_date = rows[0]
        result = await self.db.execute(select(PublicTalk).order_by(PublicTalk.no.asc(), PublicTalk.id.asc()))
        catalog = result.scalars().all()

        return AutoSuggestionResponse(
            speaker=SuggestedSpeaker(
                id=publisher.id,
                first_name=publisher.first_name,
                last_name=publisher.last_name,
                phone=None,
                congregation_name=LOCAL_CONGREGATION_NAME,
                last_talk_date=last_talk_date,
                is_visiting=False,
            ),
            available_talks=[
                SuggestedTalk(id=talk.id, no=talk.no, title=talk.title) for talk in catalog
            ],
            has_more_suggestions=len(rows) > 1,
        )

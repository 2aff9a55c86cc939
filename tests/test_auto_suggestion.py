"""
Tests for the auto-suggestion of the next public talk speaker.
"""

from datetime import date

import pytest

from congregation_planner.scheduling.suggestion import (
    LOCAL_CONGREGATION_NAME,
    AutoSuggestionService,
)


@pytest.fixture
def service(db) -> AutoSuggestionService:
    return AutoSuggestionService(db, timeout_seconds=20, pool_size=10)


class TestVisitingSpeaker:
    """Tests for the regular visiting speaker path."""

    async def test_never_given_talk_first(
        self, service, make_talk, make_speaker, make_congregation, give_talk
    ) -> None:
        """Talk 45 was never given, talk 12 was: 45 is offered first."""
        talk_12 = await make_talk(12)
        talk_45 = await make_talk(45)
        speaker = await make_speaker(
            talks=[talk_12, talk_45], congregation=await make_congregation("Bytom")
        )
        await give_talk(date(2020, 1, 5), talk_12, speaker=speaker)

        suggestion = await service.suggest()

        assert suggestion.speaker.id == speaker.id
        assert suggestion.speaker.is_visiting is True
        assert suggestion.speaker.congregation_name == "Bytom"
        assert suggestion.speaker.last_talk_date == date(2020, 1, 5)
        assert [t.no for t in suggestion.available_talks] == [45, 12]
        assert suggestion.available_talks[0].last_given_date is None
        assert suggestion.available_talks[1].last_given_date == date(2020, 1, 5)
        assert suggestion.has_more_suggestions is False

    async def test_least_recent_speaker_first(
        self, service, make_talk, make_speaker, give_talk
    ) -> None:
        talk = await make_talk(12)
        recent = await make_speaker("Adam", "Adamski", talks=[talk])
        older = await make_speaker("Bogdan", "Bogdański", talks=[talk])
        never = await make_speaker("Czesław", "Czarnecki", talks=[talk])
        await give_talk(date(2020, 3, 1), talk, speaker=recent)
        await give_talk(date(2020, 1, 5), talk, speaker=older)

        first = await service.suggest()
        second = await service.suggest([never.id])
        third = await service.suggest([never.id, older.id])

        assert first.speaker.id == never.id
        assert first.speaker.last_talk_date is None
        assert second.speaker.id == older.id
        assert third.speaker.id == recent.id
        assert first.has_more_suggestions is True
        assert third.has_more_suggestions is False

    async def test_exclusion_never_repeats(self, service, make_talk, make_speaker) -> None:
        """Skipping through every suggestion visits each speaker exactly once."""
        talk = await make_talk(12)
        speakers = [
            await make_speaker(f"Speaker{i}", f"Surname{i}", talks=[talk]) for i in range(5)
        ]

        excluded = []
        while True:
            suggestion = await service.suggest(excluded)
            if suggestion.speaker is None:
                break
            assert suggestion.speaker.id not in excluded
            excluded.append(suggestion.speaker.id)

        assert sorted(excluded) == sorted(s.id for s in speakers)

    async def test_everyone_excluded(self, service, make_talk, make_speaker) -> None:
        talk = await make_talk(12)
        speaker = await make_speaker(talks=[talk])

        suggestion = await service.suggest([speaker.id])

        assert suggestion.speaker is None
        assert suggestion.available_talks == []
        assert suggestion.has_more_suggestions is False

    async def test_archived_speaker_never_suggested(self, service, make_talk, make_speaker) -> None:
        talk = await make_talk(12)
        active = await make_speaker("Adam", "Adamski", talks=[talk])
        await make_speaker("Bogdan", "Bogdański", talks=[talk], archived=True)

        suggestion = await service.suggest()

        assert suggestion.speaker.id == active.id
        assert suggestion.has_more_suggestions is False

    async def test_pool_limits_offered_talks(self, db, make_talk, make_speaker, give_talk) -> None:
        """Only talks inside the pool are offered."""
        recent = await make_talk(1)
        fresh = await make_talk(2)
        speaker = await make_speaker(talks=[recent, fresh])
        await give_talk(date(2020, 1, 5), recent, speaker=speaker)

        suggestion = await AutoSuggestionService(db, pool_size=1).suggest()

        assert [t.no for t in suggestion.available_talks] == [2]

    async def test_deterministic(self, service, make_talk, make_speaker) -> None:
        talk = await make_talk(12)
        for i in range(3):
            await make_speaker(f"Speaker{i}", "Same", talks=[talk])

        first = await service.suggest()
        second = await service.suggest()

        assert first == second


class TestLocalPublisherFallback:
    """Tests for the local publisher fallback."""

    async def test_no_visiting_speakers(self, service, make_publisher, make_talk) -> None:
        await make_talk(45)
        await make_talk(12)
        publisher = await make_publisher(delivers_public_talks=True)
        await make_publisher("Adam", "Bez", is_reader=True)

        suggestion = await service.suggest()

        assert suggestion.speaker.id == publisher.id
        assert suggestion.speaker.is_visiting is False
        assert suggestion.speaker.congregation_name == LOCAL_CONGREGATION_NAME
        assert [t.no for t in suggestion.available_talks] == [12, 45]
        assert suggestion.has_more_suggestions is False

    async def test_speakers_without_talks(self, service, make_speaker, make_publisher) -> None:
        """Visiting speakers approved for nothing leave the pool empty."""
        await make_speaker()
        publisher = await make_publisher(delivers_public_talks=True)

        suggestion = await service.suggest()

        assert suggestion.speaker.id == publisher.id

    async def test_fallback_honours_exclusions(self, service, make_publisher) -> None:
        first = await make_publisher("Adam", "Adamski", delivers_public_talks=True)
        second = await make_publisher("Bogdan", "Bogdański", delivers_public_talks=True)

        suggestion = await service.suggest()
        assert suggestion.speaker.id == first.id
        assert suggestion.has_more_suggestions is True

        suggestion = await service.suggest([first.id])
        assert suggestion.speaker.id == second.id
        assert suggestion.has_more_suggestions is False

    async def test_nobody_at_all(self, service) -> None:
        suggestion = await service.suggest()

        assert suggestion.speaker is None
        assert suggestion.has_more_suggestions is False

    async def test_timeout_degrades_to_fallback(
        self, db, make_talk, make_speaker, make_publisher
    ) -> None:
        """Running out of time answers with the local publisher, not an error."""
        talk = await make_talk(12)
        await make_speaker(talks=[talk])
        publisher = await make_publisher(delivers_public_talks=True)

        suggestion = await AutoSuggestionService(db, timeout_seconds=0).suggest()

        assert suggestion.speaker.id == publisher.id
        assert suggestion.speaker.is_visiting is False

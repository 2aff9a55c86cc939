"""
Eligibility rules: which publisher may take which weekend meeting part.

Every rule is a pure function of the publisher's capability flags. A role is
granted when ANY of its flags is set.
"""

from collections.abc import Iterable
from typing import Protocol

from congregation_planner.core.errors import (
    EligibilityError,
    PublisherCannotChair,
    PublisherCannotConductWatchtower,
    PublisherCannotDeliverPublicTalks,
    PublisherCannotPray,
    PublisherCannotRead,
    PublisherNotCircuitOverseer,
)
from congregation_planner.scheduling.models import MeetingPartType


class Capabilities(Protocol):
    """The capability flags eligibility is decided on."""

    is_elder: bool
    can_chair_weekend_meeting: bool
    conducts_watchtower_study: bool
    backup_watchtower_conductor: bool
    is_reader: bool
    offers_public_prayer: bool
    delivers_public_talks: bool
    is_circuit_overseer: bool


# role -> (flags granting it, error raised when none is set)
RULES: dict[MeetingPartType, tuple[tuple[str, ...], type[EligibilityError]]] = {
    MeetingPartType.CHAIRMAN: (
        ("is_elder", "can_chair_weekend_meeting"),
        PublisherCannotChair,
    ),
    MeetingPartType.WATCHTOWER_STUDY: (
        ("conducts_watchtower_study", "backup_watchtower_conductor"),
        PublisherCannotConductWatchtower,
    ),
    MeetingPartType.READER: (("is_reader",), PublisherCannotRead),
    MeetingPartType.CLOSING_PRAYER: (("offers_public_prayer",), PublisherCannotPray),
    MeetingPartType.CIRCUIT_OVERSEER_TALK: (("is_circuit_overseer",), PublisherNotCircuitOverseer),
    # Local publisher as the public talk source
    MeetingPartType.PUBLIC_TALK: (("delivers_public_talks",), PublisherCannotDeliverPublicTalks),
}


def is_eligible(role: MeetingPartType, publisher: Capabilities) -> bool:
    flags, _ = RULES[role]
    return any(getattr(publisher, flag) for flag in flags)


def require_eligible(role: MeetingPartType, publisher: Capabilities) -> None:
    """
    Raise the role's eligibility error if the publisher may not take it.

    The error carries the role, the flags that were checked and the
    publisher id (when there is one).
    """
    flags, error = RULES[role]
    if not is_eligible(role, publisher):
        publisher_id = getattr(publisher, "id", None)
        raise error(
            role=role.value,
            required_flags=list(flags),
            publisher_id=str(publisher_id) if publisher_id is not None else None,
        )


def eligible_roles(publisher: Capabilities) -> list[MeetingPartType]:
    """All roles the publisher may take, in display order."""
    return [role for role in MeetingPartType if is_eligible(role, publisher)]


def available_for_parts(
    publishers: Iterable[Capabilities],
) -> dict[MeetingPartType, list[Capabilities]]:
    """Group publishers by the non-public-talk roles they may fill."""
    publishers = list(publishers)
    roles = (
        MeetingPartType.CHAIRMAN,
        MeetingPartType.WATCHTOWER_STUDY,
        MeetingPartType.READER,
        MeetingPartType.CLOSING_PRAYER,
        MeetingPartType.CIRCUIT_OVERSEER_TALK,
    )
    return {role: [p for p in publishers if is_eligible(role, p)] for role in roles}

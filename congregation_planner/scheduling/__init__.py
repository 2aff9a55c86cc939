"""
Scheduling Module

Weekend meeting programs, public talk schedules, meeting exceptions and the
auto-suggestion of the next visiting speaker.
"""

from congregation_planner.scheduling.models import (
    MeetingException,
    MeetingExceptionType,
    MeetingPartType,
    MeetingProgram,
    MeetingProgramPart,
    MeetingScheduledPart,
    MeetingType,
    ScheduledPublicTalk,
    SpeakerSourceType,
)

__all__ = [
    "MeetingException",
    "MeetingExceptionType",
    "MeetingPartType",
    "MeetingProgram",
    "MeetingProgramPart",
    "MeetingScheduledPart",
    "MeetingType",
    "ScheduledPublicTalk",
    "SpeakerSourceType",
]

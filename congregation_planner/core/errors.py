"""
Domain Errors

Expected, caller-recoverable failures raised by the service layer. Each error
knows its HTTP status and i18n message key; the API renders them as

    {"error": {"kind": "<ClassName>", "message": "errors.<key>", "data": {...}}}

so clients can show an actionable message or retry with confirmation.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    message_key: str = "errors.unknown"

    def __init__(self, **data: Any) -> None:
        super().__init__(self.message_key)
        self.data = data

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_payload(self) -> dict[str, Any]:
        """Machine-readable error body."""
        return {
            "error": {
                "kind": self.kind,
                "message": self.message_key,
                "data": self.data,
            }
        }


# =============================================================================
# Eligibility
# =============================================================================


class EligibilityError(DomainError):
    """A publisher lacks the capability flag required for a role."""

    status_code = 400


class PublisherCannotChair(EligibilityError):
    message_key = "errors.publisherCannotChair"


class PublisherCannotConductWatchtower(EligibilityError):
    message_key = "errors.publisherCannotConductWatchtower"


class PublisherCannotRead(EligibilityError):
    message_key = "errors.publisherCannotRead"


class PublisherCannotPray(EligibilityError):
    message_key = "errors.publisherCannotPray"


class PublisherNotCircuitOverseer(EligibilityError):
    message_key = "errors.publisherNotCircuitOverseer"


class PublisherCannotDeliverPublicTalks(EligibilityError):
    message_key = "errors.publisherCannotDeliverPublicTalks"


# =============================================================================
# Temporal
# =============================================================================


class DateMustBeSunday(DomainError):
    status_code = 400
    message_key = "errors.dateMustBeSunday"


class DateMustBeFuture(DomainError):
    status_code = 400
    message_key = "errors.dateMustBeFuture"


class CannotEditPastSchedule(DomainError):
    status_code = 403
    message_key = "errors.cannotEditPastSchedule"


class CannotDeletePastSchedule(DomainError):
    status_code = 403
    message_key = "errors.cannotDeletePastSchedule"


class MeetingDateHasException(DomainError):
    status_code = 403
    message_key = "errors.meetingDateHasException"


# =============================================================================
# Conflicts
# =============================================================================


class ScheduleAlreadyExists(DomainError):
    status_code = 409
    message_key = "errors.scheduleAlreadyExists"


class PublishersAlreadyAssigned(DomainError):
    status_code = 409
    message_key = "errors.publishersAlreadyAssigned"


class MeetingAlreadyScheduled(DomainError):
    status_code = 409
    message_key = "errors.meetingAlreadyScheduled"


class MeetingAlreadyScheduledOnException(DomainError):
    status_code = 409
    message_key = "errors.meetingAlreadyScheduledOnException"


class ExceptionAlreadyExists(DomainError):
    status_code = 400
    message_key = "errors.exceptionAlreadyExists"


class UserAlreadyLinked(DomainError):
    status_code = 400
    message_key = "errors.userAlreadyLinked"


class CongregationExists(DomainError):
    status_code = 409
    message_key = "errors.congregationAlreadyExists"


# =============================================================================
# Approval
# =============================================================================


class SpeakerDoesntHaveTalk(DomainError):
    status_code = 422
    message_key = "errors.speakerDoesntHaveTalk"


# =============================================================================
# Not found
# =============================================================================


class SpeakerNotFoundOrArchived(DomainError):
    status_code = 400
    message_key = "errors.speakerNotFoundOrArchived"


class PublisherNotFound(DomainError):
    status_code = 400
    message_key = "errors.publisherNotFound"


class TalkNotFound(DomainError):
    status_code = 400
    message_key = "errors.talkNotFound"


class CongregationNotFound(DomainError):
    status_code = 400
    message_key = "errors.congregationNotFound"


class MeetingProgramNotFound(DomainError):
    status_code = 400
    message_key = "errors.meetingProgramNotFound"


class PartNotFound(DomainError):
    status_code = 400
    message_key = "errors.partNotFound"


class ScheduleNotFound(DomainError):
    status_code = 404
    message_key = "errors.scheduleNotFound"


class ProgramNotFound(DomainError):
    status_code = 404
    message_key = "errors.programNotFound"


class ExceptionNotFound(DomainError):
    status_code = 404
    message_key = "errors.exceptionNotFound"


class ResourceNotFound(DomainError):
    """Path-addressed registry entity (publisher, speaker, talk) does not exist."""

    status_code = 404
    message_key = "errors.notFound"


# =============================================================================
# Access
# =============================================================================


class Unauthorized(DomainError):
    status_code = 401
    message_key = "errors.unauthorized"


class PermissionDenied(DomainError):
    status_code = 403
    message_key = "errors.permissionDenied"


# =============================================================================
# Timeout
# =============================================================================


class AutoSuggestionTimeout(DomainError):
    """Raised inside auto-suggestion only; degraded to the fallback path."""

    status_code = 408
    message_key = "errors.autoSuggestionTimeout"

"""
Audit Trail

Every mutating operation records who did what to which resource. Events are
written as rows in the caller's session (so they commit or roll back with the
change itself) and mirrored as JSON lines on the ``congregation_planner.audit``
logger.
"""

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, DateTime, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from congregation_planner.core.database import Base, utcnow

logger = logging.getLogger("congregation_planner.audit")


class AuditAction(StrEnum):
    """Actions recorded in the audit trail."""

    SCHEDULE_CREATED = "schedule.created"
    SCHEDULE_UPDATED = "schedule.updated"
    SCHEDULE_DELETED = "schedule.deleted"

    WEEKEND_MEETING_PLANNED = "weekend_meeting.planned"
    WEEKEND_MEETING_UPDATED = "weekend_meeting.updated"

    MEETING_EXCEPTION_CREATED = "meeting_exception.created"
    MEETING_EXCEPTION_UPDATED = "meeting_exception.updated"
    MEETING_EXCEPTION_DELETED = "meeting_exception.deleted"

    PUBLISHER_CREATED = "publisher.created"
    PUBLISHER_UPDATED = "publisher.updated"
    PUBLISHER_USER_LINKED = "publisher.user_linked"

    SPEAKER_CREATED = "speaker.created"
    SPEAKER_UPDATED = "speaker.updated"
    SPEAKER_ARCHIVED = "speaker.archived"
    SPEAKER_RESTORED = "speaker.restored"

    TALK_CREATED = "talk.created"
    TALK_UPDATED = "talk.updated"
    TALK_STATUS_CHANGED = "talk.status_changed"

    CONGREGATION_CREATED = "congregation.created"

    PERMISSION_DENIED = "security.permission_denied"
    UNAUTHORIZED_ACCESS = "security.unauthorized_access"


@dataclass
class AuditEvent:
    """A single audit event before it is persisted."""

    action: AuditAction
    resource_type: str
    resource_id: str | None = None
    actor_id: str | None = None
    actor_email: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        data = asdict(self)
        data["action"] = self.action.value
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, sort_keys=True)


class AuditLogEntry(Base):
    """Persisted audit event."""

    __tablename__ = "audit_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(String(64), index=True)
    resource_type: Mapped[str] = mapped_column(String(64))
    resource_id: Mapped[str | None] = mapped_column(String(64))
    actor_id: Mapped[str | None] = mapped_column(String(255), index=True)
    actor_email: Mapped[str | None] = mapped_column(String(255))
    details: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), default=dict
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class AuditLogger:
    """Audit sink bound to one session and one actor."""

    def __init__(
        self,
        db: AsyncSession,
        actor_id: str | None = None,
        actor_email: str | None = None,
    ):
        self.db = db
        self.actor_id = actor_id
        self.actor_email = actor_email

    async def log(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: Any = None,
        **details: Any,
    ) -> AuditEvent:
        """Record an event in the current transaction."""
        event = AuditEvent(
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            actor_id=self.actor_id,
            actor_email=self.actor_email,
            details=json.loads(json.dumps(details, default=str)),
        )
        self.db.add(
            AuditLogEntry(
                action=event.action.value,
                resource_type=event.resource_type,
                resource_id=event.resource_id,
                actor_id=event.actor_id,
                actor_email=event.actor_email,
                details=event.details,
                created_at=event.timestamp,
            )
        )
        logger.info(event.to_json())
        return event


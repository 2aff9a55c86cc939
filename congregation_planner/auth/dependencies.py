"""
Auth Dependencies

FastAPI dependencies for the caller's identity and permission checks.

Authentication happens upstream (reverse proxy / identity provider); the
resolved identity is forwarded in the ``X-User-Id``, ``X-User-Email`` and
``X-User-Role`` headers.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from congregation_planner.auth.permissions import Permission, has_permission
from congregation_planner.core.audit import AuditAction, AuditLogger
from congregation_planner.core.database import get_db
from congregation_planner.core.errors import PermissionDenied, Unauthorized


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str | None = None
    role: str | None = None


async def get_current_user(
    request: Request,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
    x_user_role: str | None = Header(default=None, alias="X-User-Role"),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Get current authenticated user."""
    if not x_user_id:
        await AuditLogger(db).log(
            AuditAction.UNAUTHORIZED_ACCESS,
            "api",
            request.url.path,
            attempted_action=request.method,
            path=request.url.path,
        )
        # The request fails, so persist the audit row before raising
        await db.commit()
        raise Unauthorized(path=request.url.path)

    return CurrentUser(id=x_user_id, email=x_user_email, role=x_user_role)


def require_permission(
    permission: Permission,
) -> Callable[..., Awaitable[CurrentUser]]:
    """
    Build a dependency that lets the request through only if the caller's
    role grants ``permission``.
    """

    async def dependency(
        request: Request,
        user: CurrentUser = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> CurrentUser:
        if has_permission(user.role, permission):
            return user

        await AuditLogger(db, user.id, user.email).log(
            AuditAction.PERMISSION_DENIED,
            "api",
            request.url.path,
            attempted_action=request.method,
            required_permission=str(permission),
            user_role=user.role,
        )
        await db.commit()
        raise PermissionDenied(required_permission=str(permission), role=user.role)

    return dependency


def get_audit_logger(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AuditLogger:
    """Audit logger bound to the current user and request session."""
    return AuditLogger(db, user.id, user.email)

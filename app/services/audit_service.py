"""
Audit trail service.

Writes are fire-and-forget: ``record`` schedules the insert on the running
event loop and returns immediately, each write uses its own session, and a
failed write is logged and dropped so it never fails the operation that
triggered it. ``drain`` waits for writes still in flight (shutdown, tests).
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, List, Optional, Set
from uuid import UUID

import structlog
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.domain.schemas.audit import AuditAction, ClientContext
from app.infrastructure.database.base import AsyncSessionLocal
from app.infrastructure.database.models import AuditLog
from app.repositories.audit_log import AuditLogRepository

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


def client_context_from_request(request: Request) -> ClientContext:
    """
    Extract the caller's address and user agent.

    The first hop of ``X-Forwarded-For`` wins, then ``X-Real-IP``, then the
    socket peer.
    """
    ip_address = None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip() or None
    if not ip_address:
        ip_address = request.headers.get("x-real-ip")
    if not ip_address and request.client:
        ip_address = request.client.host
    return ClientContext(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )


class AuditService:
    """Records and queries security-relevant actions."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory or AsyncSessionLocal
        self._pending: Set[asyncio.Task] = set()

    def record(
        self,
        *,
        actor_id: Optional[UUID],
        actor_email: Optional[str],
        actor_roles: Iterable[str] = (),
        action: AuditAction,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        description: Optional[str] = None,
        client: Optional[ClientContext] = None,
        success: bool = True,
        error_message: Optional[str] = None,
    ) -> None:
        """
        Schedule an audit write and return immediately.

        Args:
            actor_id: User performing the action, if known
            actor_email: Their email, if known
            actor_roles: Their role names at the time of the action
            action: What happened
            resource_type: Kind of object acted upon
            resource_id: Identifier of that object
            description: Free text, defaults to the action's description
            client: Request origin
            success: Whether the action succeeded
            error_message: Failure reason when ``success`` is False
        """
        client = client or ClientContext()
        data = {
            "user_id": actor_id,
            "user_email": actor_email,
            "user_roles": ",".join(sorted(actor_roles)) or None,
            "action": action.value,
            "resource_type": resource_type,
            "resource_id": str(resource_id) if resource_id is not None else None,
            "description": description or action.description,
            "ip_address": client.ip_address,
            "user_agent": client.user_agent,
            "success": success,
            "error_message": error_message,
        }

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("audit_record_dropped_no_loop", action=action.value)
            return

        task = loop.create_task(self._write(data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, data: dict) -> None:
        try:
            async with self.session_factory() as session:
                await AuditLogRepository(session).create(data)
            logger.debug("audit_record_written", action=data["action"], user_id=str(data["user_id"]))
        except Exception as e:
            logger.error(
                "audit_record_failed",
                action=data["action"],
                user_id=str(data["user_id"]),
                error=str(e),
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Queries

    async def get_user_audit_logs(self, user_id: UUID, skip: int = 0, limit: int = 100) -> List[AuditLog]:
        async with self.session_factory() as session:
            return await AuditLogRepository(session).get_by_user(user_id, skip=skip, limit=limit)

    async def get_audit_logs_by_action(self, action: AuditAction, skip: int = 0, limit: int = 100) -> List[AuditLog]:
        async with self.session_factory() as session:
            return await AuditLogRepository(session).get_by_action(action.value, skip=skip, limit=limit)

    async def get_audit_logs_by_date_range(
        self,
        start: datetime,
        end: datetime,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        async with self.session_factory() as session:
            return await AuditLogRepository(session).get_by_date_range(start, end, skip=skip, limit=limit)

    async def get_recent_audit_logs(self, limit: Optional[int] = None) -> List[AuditLog]:
        async with self.session_factory() as session:
            return await AuditLogRepository(session).get_recent(limit or settings.AUDIT_RECENT_LIMIT)

    async def get_failed_actions(self, skip: int = 0, limit: int = 100) -> List[AuditLog]:
        async with self.session_factory() as session:
            return await AuditLogRepository(session).get_failed(skip=skip, limit=limit)

    async def get_login_attempts(self, user_id: UUID, hours: int = 24) -> List[AuditLog]:
        since = datetime.now(timezone.utc) - timedelta(hours=hours)
        async with self.session_factory() as session:
            return await AuditLogRepository(session).get_login_attempts(user_id, since)


# Process-wide audit service
audit_service = AuditService()

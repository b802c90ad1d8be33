"""
Audit log repository.
"""
from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import AuditLog
from app.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """Read side of the audit trail. Writes go through ``create``."""

    def __init__(self, db: AsyncSession):
        super().__init__(AuditLog, db)

    async def _fetch(self, stmt, skip: int, limit: int) -> List[AuditLog]:
        stmt = stmt.order_by(AuditLog.timestamp.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_by_user(self, user_id: UUID, *, skip: int = 0, limit: int = 100) -> List[AuditLog]:
        return await self._fetch(select(AuditLog).where(AuditLog.user_id == user_id), skip, limit)

    async def get_by_action(self, action: str, *, skip: int = 0, limit: int = 100) -> List[AuditLog]:
        return await self._fetch(select(AuditLog).where(AuditLog.action == action), skip, limit)

    async def get_by_date_range(
        self,
        start: datetime,
        end: datetime,
        *,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        stmt = select(AuditLog).where(AuditLog.timestamp.between(start, end))
        return await self._fetch(stmt, skip, limit)

    async def get_recent(self, limit: int = 50) -> List[AuditLog]:
        return await self._fetch(select(AuditLog), 0, limit)

    async def get_failed(self, *, skip: int = 0, limit: int = 100) -> List[AuditLog]:
        return await self._fetch(select(AuditLog).where(AuditLog.success.is_(False)), skip, limit)

    async def get_login_attempts(
        self,
        user_id: UUID,
        since: datetime,
    ) -> List[AuditLog]:
        """
        Login and failed-login records for a user since a point in time.
        """
        stmt = select(AuditLog).where(
            AuditLog.user_id == user_id,
            AuditLog.action.in_(("LOGIN", "LOGIN_FAILED")),
            AuditLog.timestamp >= since,
        )
        return await self._fetch(stmt, 0, 1000)

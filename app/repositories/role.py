"""
Role and permission repositories.
"""
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import Permission, Role
from app.repositories.base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    """Role repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(Role, db)

    async def get_by_name(self, name: str) -> Optional[Role]:
        stmt = select(Role).where(Role.name == name)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_names(self, names: Iterable[str]) -> List[Role]:
        """
        Get every role whose name is in ``names``.

        Missing names are simply absent from the result; callers compare
        lengths to detect them.
        """
        names = list(set(names))
        if not names:
            return []
        stmt = select(Role).where(Role.name.in_(names))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def exists_by_name(self, name: str) -> bool:
        stmt = select(func.count()).select_from(Role).where(Role.name == name)
        result = await self.db.execute(stmt)
        return result.scalar_one() > 0

    async def list_all(self) -> List[Role]:
        stmt = select(Role).order_by(Role.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


class PermissionRepository(BaseRepository[Permission]):
    """Permission repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(Permission, db)

    async def get_by_name(self, name: str) -> Optional[Permission]:
        stmt = select(Permission).where(Permission.name == name)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_names(self, names: Iterable[str]) -> List[Permission]:
        names = list(set(names))
        if not names:
            return []
        stmt = select(Permission).where(Permission.name.in_(names))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def exists_by_name(self, name: str) -> bool:
        stmt = select(func.count()).select_from(Permission).where(Permission.name == name)
        result = await self.db.execute(stmt)
        return result.scalar_one() > 0

    async def list_filtered(
        self,
        *,
        resource: Optional[str] = None,
        action: Optional[str] = None,
    ) -> List[Permission]:
        """
        Get permissions, optionally narrowed to a resource and/or action.

        Args:
            resource: Resource tag, e.g. ``users``
            action: One of READ, WRITE, DELETE, EXECUTE

        Returns:
            Matching permissions ordered by name
        """
        stmt = select(Permission)
        if resource is not None:
            stmt = stmt.where(Permission.resource == resource)
        if action is not None:
            stmt = stmt.where(Permission.action == action)
        result = await self.db.execute(stmt.order_by(Permission.name))
        return list(result.scalars().all())

    async def count_by_resource(self) -> Dict[str, int]:
        stmt = select(Permission.resource, func.count(Permission.id)).group_by(Permission.resource)
        result = await self.db.execute(stmt)
        return {resource: count for resource, count in result.all()}

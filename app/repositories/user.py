"""
User repository.
"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import Role, User
from app.repositories.base import BaseRepository

ScopeRow = Tuple[Optional[str], Optional[str], Optional[str]]


class UserRepository(BaseRepository[User]):
    """User repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_by_email(
        self,
        email: str,
    ) -> Optional[User]:
        """
        Get user by email.

        Args:
            email: User email, compared case-insensitively

        Returns:
            User if found
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_username(
        self,
        username: str,
    ) -> Optional[User]:
        """
        Get user by username.

        Args:
            username: Exact username

        Returns:
            User if found
        """
        stmt = select(User).where(User.username == username)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def exists_by_email(self, email: str) -> bool:
        stmt = select(func.count()).select_from(User).where(User.email == email.strip().lower())
        result = await self.db.execute(stmt)
        return result.scalar_one() > 0

    async def exists_by_username(self, username: str) -> bool:
        stmt = select(func.count()).select_from(User).where(User.username == username)
        result = await self.db.execute(stmt)
        return result.scalar_one() > 0

    async def list_users(
        self,
        *,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        stmt = select(User).order_by(User.created_at)
        if is_active is not None:
            stmt = stmt.where(User.is_active == is_active)
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def get_by_role_name(
        self,
        role_name: str,
        *,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        """
        Get users holding a role.

        Args:
            role_name: Exact role name
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Users holding the role
        """
        stmt = (
            select(User)
            .join(User.roles)
            .where(Role.name == role_name)
            .order_by(User.created_at)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    @staticmethod
    def _scoped(
        stmt,
        *,
        state_code: Optional[str] = None,
        district_code: Optional[str] = None,
        school_code: Optional[str] = None,
        class_code: Optional[str] = None,
        role_name: Optional[str] = None,
    ):
        """Narrow ``stmt`` to users matching every given scope field."""
        if role_name:
            stmt = stmt.join(User.roles).where(Role.name == role_name)
        if state_code is not None:
            stmt = stmt.where(User.state_code == state_code)
        if district_code is not None:
            stmt = stmt.where(User.district_code == district_code)
        if school_code is not None:
            stmt = stmt.where(User.school_code == school_code)
        if class_code is not None:
            stmt = stmt.where(User.class_code == class_code)
        return stmt

    async def list_by_scope(
        self,
        *,
        state_code: Optional[str] = None,
        district_code: Optional[str] = None,
        school_code: Optional[str] = None,
        class_code: Optional[str] = None,
        role_name: Optional[str] = None,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        """
        Get users matching every given scope field.

        Args:
            state_code: State code filter
            district_code: District code filter
            school_code: School code filter
            class_code: Class code filter
            role_name: Restrict to holders of this role
            is_active: Restrict to active or inactive accounts
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Matching users
        """
        stmt = self._scoped(
            select(User),
            state_code=state_code,
            district_code=district_code,
            school_code=school_code,
            class_code=class_code,
            role_name=role_name,
        )
        if is_active is not None:
            stmt = stmt.where(User.is_active == is_active)

        stmt = stmt.order_by(User.created_at).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    async def search(
        self,
        query: str,
        *,
        state_code: Optional[str] = None,
        district_code: Optional[str] = None,
        school_code: Optional[str] = None,
        class_code: Optional[str] = None,
        role_name: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        """
        Case-insensitive substring match on name, email or username.

        Scope filters apply before ``skip``/``limit``.
        """
        pattern = f"%{query.strip()}%"
        stmt = select(User).where(
            or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.username.ilike(pattern),
            )
        )
        stmt = self._scoped(
            stmt,
            state_code=state_code,
            district_code=district_code,
            school_code=school_code,
            class_code=class_code,
            role_name=role_name,
        )
        stmt = stmt.order_by(User.name).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    async def get_scope_rows(self) -> List[ScopeRow]:
        """
        Distinct (state, district, school) triples present in the store.

        Feeds the scope containment index.
        """
        stmt = select(User.state_code, User.district_code, User.school_code).distinct()
        result = await self.db.execute(stmt)
        return [tuple(row) for row in result.all()]

    async def count_active(self) -> int:
        stmt = select(func.count()).select_from(User).where(User.is_active.is_(True))
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def count_by_role(self) -> Dict[str, int]:
        stmt = (
            select(Role.name, func.count(User.id))
            .select_from(Role)
            .outerjoin(Role.users)
            .group_by(Role.name)
        )
        result = await self.db.execute(stmt)
        return {name: count for name, count in result.all()}

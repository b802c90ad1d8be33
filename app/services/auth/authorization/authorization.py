"""
Id-resolving authorization service.

Callers holding only user ids (token subjects, path parameters) go through
this service; it loads the users and delegates every decision to the pure
``AuthorizationEngine``. An id that does not resolve to a user answers False
instead of raising.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

import structlog

from app.core.config import settings
from app.core.exceptions import PermissionDeniedError
from app.infrastructure.database.models import User
from app.repositories.user import UserRepository

from .engine import AuthorizationEngine
from .hierarchy import ScopeIndex
from .rbac import HierarchyLevel

logger = structlog.get_logger(__name__)


class ScopeIndexCache:
    """
    Process-wide containment index, rebuilt from the store when stale.

    Requests share one index instead of scanning every user's scope columns
    each time. Writes that change a user's scope call ``invalidate()`` so the
    next request rebuilds; other processes catch up within ``ttl_seconds``.
    """

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds
        self._index: Optional[ScopeIndex] = None
        self._expires_at: Optional[datetime] = None

    def _is_fresh(self) -> bool:
        return (
            self._index is not None
            and self._expires_at is not None
            and datetime.now(timezone.utc) < self._expires_at
        )

    async def get(self, user_repository: UserRepository) -> ScopeIndex:
        """
        Return the cached index, rebuilding it from ``user_repository`` if stale.

        Args:
            user_repository: Source of the scope rows

        Returns:
            Containment index
        """
        if self._is_fresh():
            return self._index

        rows = await user_repository.get_scope_rows()
        index = ScopeIndex.from_rows(rows)
        self._index = index
        self._expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
        logger.debug("scope_index_built", rows=len(rows), links=len(index))
        return index

    def invalidate(self) -> None:
        self._index = None
        self._expires_at = None


scope_index_cache = ScopeIndexCache(ttl_seconds=settings.SCOPE_INDEX_TTL_SECONDS)


async def build_authorization_engine(
    user_repository: UserRepository,
    strict: Optional[bool] = None,
    cache: Optional[ScopeIndexCache] = None,
) -> AuthorizationEngine:
    """
    Build an engine, with a containment index when strict scoping is on.

    Args:
        user_repository: Source of the scope rows
        strict: Override for ``settings.STRICT_SCOPE_CONTAINMENT``
        cache: Index cache, the process-wide one by default

    Returns:
        Configured engine
    """
    if strict is None:
        strict = settings.STRICT_SCOPE_CONTAINMENT
    if not strict:
        return AuthorizationEngine()

    index = await (cache or scope_index_cache).get(user_repository)
    return AuthorizationEngine(scope_index=index)


class AuthorizationService:
    """Resolves user ids and delegates to an ``AuthorizationEngine``."""

    def __init__(
        self,
        user_repository: UserRepository,
        engine: Optional[AuthorizationEngine] = None,
    ):
        self.user_repository = user_repository
        self.engine = engine or AuthorizationEngine()

    async def _resolve(self, user_id: UUID) -> Optional[User]:
        user = await self.user_repository.get(user_id)
        if user is None:
            logger.debug("authorization_user_unresolved", user_id=str(user_id))
        return user

    async def has_permission(self, user_id: UUID, permission_name: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.has_permission(user, permission_name)

    async def has_resource_permission(self, user_id: UUID, resource: str, action: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.has_resource_permission(user, resource, action)

    async def has_any_permission(self, user_id: UUID, *permission_names: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.has_any_permission(user, *permission_names)

    async def has_all_permissions(self, user_id: UUID, *permission_names: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.has_all_permissions(user, *permission_names)

    async def has_role(self, user_id: UUID, role_name: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.has_role(user, role_name)

    async def is_admin(self, user_id: UUID) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.is_admin(user)

    async def get_role_level(self, user_id: UUID) -> HierarchyLevel:
        user = await self._resolve(user_id)
        if user is None:
            return HierarchyLevel.UNKNOWN
        return self.engine.get_role_level(user)

    async def get_user_permissions(self, user_id: UUID) -> List[str]:
        user = await self._resolve(user_id)
        return self.engine.get_user_permissions(user) if user is not None else []

    async def can_manage_user(self, manager_id: UUID, target_id: UUID) -> bool:
        """
        Check the organizational-hierarchy management rule between two ids.

        Args:
            manager_id: Acting user
            target_id: User being read or modified

        Returns:
            False when either id is unknown, otherwise the engine's answer
        """
        manager = await self._resolve(manager_id)
        if manager is None:
            return False
        target = await self._resolve(target_id)
        if target is None:
            return False
        return self.engine.can_manage_user(manager, target)

    async def has_higher_privilege(self, manager_id: UUID, target_id: UUID) -> bool:
        manager = await self._resolve(manager_id)
        target = await self._resolve(target_id)
        if manager is None or target is None:
            return False
        return self.engine.has_higher_privilege(manager, target)

    async def can_access_state(self, user_id: UUID, state_code: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.can_access_state(user, state_code)

    async def can_access_district(self, user_id: UUID, district_code: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.can_access_district(user, district_code)

    async def can_access_school(self, user_id: UUID, school_code: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.can_access_school(user, school_code)

    async def can_access_class(self, user_id: UUID, school_code: str, class_code: str) -> bool:
        user = await self._resolve(user_id)
        return user is not None and self.engine.can_access_class(user, school_code, class_code)

    def is_resource_owner(self, user_id: UUID, resource_user_id: UUID) -> bool:
        return self.engine.is_resource_owner(user_id, resource_user_id)

    def can_edit_own_profile(self, user_id: UUID, profile_user_id: UUID) -> bool:
        return self.engine.can_edit_own_profile(user_id, profile_user_id)

    # Raising variants

    async def _require(self, user_id: UUID) -> User:
        user = await self._resolve(user_id)
        if user is None:
            raise PermissionDeniedError("Access denied")
        return user

    async def require_permission(self, user_id: UUID, permission_name: str) -> None:
        self.engine.require_permission(await self._require(user_id), permission_name)

    async def require_any_permission(self, user_id: UUID, *permission_names: str) -> None:
        self.engine.require_any_permission(await self._require(user_id), *permission_names)

    async def require_all_permissions(self, user_id: UUID, *permission_names: str) -> None:
        self.engine.require_all_permissions(await self._require(user_id), *permission_names)

    async def require_role(self, user_id: UUID, role_name: str) -> None:
        self.engine.require_role(await self._require(user_id), role_name)

    async def require_admin(self, user_id: UUID) -> None:
        self.engine.require_admin(await self._require(user_id))

    async def require_can_manage_user(self, manager_id: UUID, target_id: UUID) -> None:
        if not await self.can_manage_user(manager_id, target_id):
            raise PermissionDeniedError(
                "You don't have permission to manage this user based on organizational hierarchy"
            )

    async def require_can_access_state(self, user_id: UUID, state_code: str) -> None:
        self.engine.require_can_access_state(await self._require(user_id), state_code)

    async def require_can_access_district(self, user_id: UUID, district_code: str) -> None:
        self.engine.require_can_access_district(await self._require(user_id), district_code)

    async def require_can_access_school(self, user_id: UUID, school_code: str) -> None:
        self.engine.require_can_access_school(await self._require(user_id), school_code)

    async def require_can_access_class(self, user_id: UUID, school_code: str, class_code: str) -> None:
        self.engine.require_can_access_class(await self._require(user_id), school_code, class_code)

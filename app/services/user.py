"""
User service.

Every operation takes the acting user first and starts with explicit
authorization guards; the organizational hierarchy decides whose accounts
an actor can reach.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

import structlog

from app.core.exceptions import (
    PermissionDeniedError,
    RoleNotFoundError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from app.core.security import PasswordHasher
from app.domain.schemas.audit import AuditAction, ClientContext
from app.domain.schemas.user import SCOPE_FIELDS, UserCreate, UserStatistics, UserUpdate
from app.infrastructure.database.models import Role, User
from app.repositories.role import RoleRepository
from app.repositories.user import UserRepository
from app.services.audit_service import AuditService
from app.services.auth.authorization.authorization import ScopeIndexCache, scope_index_cache
from app.services.auth.authorization.engine import AuthorizationEngine, default_engine
from app.services.auth.authorization.permissions import PermissionName
from app.services.auth.authorization.rbac import HierarchyLevel, RoleManager, SystemRole, role_manager

logger = structlog.get_logger(__name__)

# Fields a user may not change on their own account
PRIVILEGED_FIELDS = frozenset(SCOPE_FIELDS) | {"email_verified"}

# (field, field it depends on)
SCOPE_DEPENDENCIES = (
    ("district_code", "state_code"),
    ("school_code", "district_code"),
    ("class_code", "school_code"),
)


def validate_scope(fields: Dict[str, Any]) -> None:
    """
    Check that scope codes increase in specificity.

    A district code needs a state code, a school code a district code and a
    class code a school code.

    Raises:
        ValidationError: On the first missing parent code
    """
    for field, parent in SCOPE_DEPENDENCIES:
        if fields.get(field) and not fields.get(parent):
            raise ValidationError(f"{field} requires {parent}", field=field)


class UserService:
    """User account management within the organizational hierarchy."""

    def __init__(
        self,
        user_repository: UserRepository,
        role_repository: RoleRepository,
        audit_service: AuditService,
        engine: Optional[AuthorizationEngine] = None,
        password_hasher: Optional[PasswordHasher] = None,
        roles: Optional[RoleManager] = None,
        scope_cache: Optional[ScopeIndexCache] = None,
    ):
        self.user_repo = user_repository
        self.role_repo = role_repository
        self.audit = audit_service
        self.engine = engine or default_engine
        self.password_hasher = password_hasher or PasswordHasher()
        self.roles = roles or role_manager
        self.scope_cache = scope_cache or scope_index_cache

    # Helpers

    def _audit(
        self,
        actor: User,
        action: AuditAction,
        target: Any,
        client: Optional[ClientContext],
        description: Optional[str] = None,
    ) -> None:
        self.audit.record(
            actor_id=actor.id,
            actor_email=actor.email,
            actor_roles=actor.role_names,
            action=action,
            resource_type="User",
            resource_id=getattr(target, "id", target),
            description=description,
            client=client,
        )

    async def _get_target(self, user_id: UUID) -> User:
        user = await self.user_repo.get(user_id)
        if user is None:
            raise UserNotFoundError(f"User not found: {user_id}")
        return user

    async def _resolve_roles(self, names: Iterable[str]) -> List[Role]:
        names = sorted(set(names))
        if not names:
            raise ValidationError("At least one role is required", field="roles")
        roles = await self.role_repo.get_by_names(names)
        missing = set(names) - {role.name for role in roles}
        if missing:
            raise RoleNotFoundError(f"Role not found: {', '.join(sorted(missing))}")
        return roles

    def _require_assignable(self, actor: User, roles: Iterable[Role]) -> None:
        actor_level = self.engine.get_role_level(actor)
        for role in roles:
            if not self.roles.can_assign(actor_level, role.name):
                raise PermissionDeniedError(f"You cannot assign role: {role.name}")

    def _visible(self, actor: User, users: Iterable[User]) -> List[User]:
        if self.engine.is_admin(actor):
            return list(users)
        return [user for user in users if self.engine.can_manage_user(actor, user)]

    def _managed_scope(self, actor: User) -> Optional[Dict[str, Any]]:
        """Store filter matching the accounts ``actor`` manages, None for nobody."""
        engine = self.engine
        if engine.has_role(actor, SystemRole.STATE):
            return {"state_code": actor.state_code} if actor.state_code else None
        if engine.has_role(actor, SystemRole.DISTRICT):
            if not actor.district_code:
                return None
            return {"state_code": actor.state_code, "district_code": actor.district_code}
        if engine.has_role(actor, SystemRole.SCHOOL):
            return {"school_code": actor.school_code} if actor.school_code else None
        if engine.has_role(actor, SystemRole.CLASS):
            if not actor.class_code:
                return None
            return {
                "school_code": actor.school_code,
                "class_code": actor.class_code,
                "role_name": SystemRole.STUDENT.value,
            }
        return None

    def _require_consistent_scope(self, actor: User, fields: Dict[str, Any]) -> None:
        """
        Check new scope codes against the containment index.

        A district already filed under another state, or a school under
        another district or state, would make the code ambiguous for every
        user once the index is rebuilt. STATE and DISTRICT actors must also
        reach any code the index already knows. ADMIN is exempt.

        Raises:
            ValidationError: A code belongs elsewhere in the hierarchy
            PermissionDeniedError: The actor cannot reach a known code
        """
        index = self.engine.scope_index
        if index is None or self.engine.is_admin(actor):
            return

        state_code = fields.get("state_code")
        district_code = fields.get("district_code")
        school_code = fields.get("school_code")

        if district_code and index.knows_district(district_code):
            if not index.district_in_state(district_code, state_code):
                raise ValidationError(
                    f"District {district_code} does not belong to state {state_code}",
                    field="district_code",
                )
        if school_code and index.knows_school(school_code):
            known_district = index.district_of_school(school_code)
            known_state = index.state_of_school(school_code)
            if (
                (known_district is None and known_state is None)
                or known_district not in (None, district_code)
                or known_state not in (None, state_code)
            ):
                raise ValidationError(
                    f"School {school_code} does not belong to district {district_code}",
                    field="school_code",
                )

        if self.engine.get_role_level(actor) in (HierarchyLevel.STATE, HierarchyLevel.DISTRICT):
            if school_code and index.knows_school(school_code):
                self.engine.require_can_access_school(actor, school_code)
            elif district_code and index.knows_district(district_code):
                self.engine.require_can_access_district(actor, district_code)

    # Operations

    async def create_user(
        self,
        actor: User,
        data: UserCreate,
        client: Optional[ClientContext] = None,
    ) -> User:
        """
        Create a user account.

        Args:
            actor: User performing the creation
            data: New account details, including at least one role
            client: Request origin for the audit trail

        Returns:
            Created user

        Raises:
            PermissionDeniedError: Missing CREATE_USERS, target outside the
                actor's hierarchy, or a role not below the actor's level
            ValidationError: Scope codes skip a level
            RoleNotFoundError: A requested role does not exist
            UserAlreadyExistsError: Email or username taken
        """
        self.engine.require_permission(actor, PermissionName.CREATE_USERS)

        fields = data.model_dump(exclude={"password", "roles"})
        validate_scope(fields)
        self._require_consistent_scope(actor, fields)
        roles = await self._resolve_roles(data.roles)

        candidate = User(
            **fields,
            password_hash=self.password_hasher.hash(data.password),
            is_active=True,
            email_verified=False,
        )
        candidate.roles = set(roles)

        self.engine.require_can_manage_user(actor, candidate)
        self._require_assignable(actor, roles)

        if await self.user_repo.exists_by_email(data.email):
            raise UserAlreadyExistsError("Email already exists", field="email")
        if await self.user_repo.exists_by_username(data.username):
            raise UserAlreadyExistsError("Username already exists", field="username")

        user = await self.user_repo.save(candidate)
        if user.district_code or user.school_code:
            self.scope_cache.invalidate()

        self._audit(actor, AuditAction.USER_CREATE, user, client, f"Created user {user.username}")
        logger.info(
            "user_created",
            user_id=str(user.id),
            created_by=str(actor.id),
            roles=user.role_names,
        )
        return user

    async def get_user(self, actor: User, user_id: UUID) -> User:
        """Fetch an account the actor owns or manages."""
        target = await self._get_target(user_id)
        self.engine.require_self_or_manager(actor, target)
        return target

    async def list_users(
        self,
        actor: User,
        *,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        """
        List the accounts the actor manages.

        ADMIN sees every account; other roles see their managed scope.
        """
        self.engine.require_permission(actor, PermissionName.VIEW_USERS)

        if self.engine.is_admin(actor):
            return await self.user_repo.list_users(is_active=is_active, skip=skip, limit=limit)

        scope = self._managed_scope(actor)
        if scope is None:
            return []
        users = await self.user_repo.list_by_scope(**scope, is_active=is_active, skip=skip, limit=limit)
        return self._visible(actor, users)

    async def list_users_by_scope(
        self,
        actor: User,
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
        List users in an organizational unit.

        The most specific code given decides which access check applies.

        Raises:
            ValidationError: class_code given without school_code
            PermissionDeniedError: The actor cannot reach the unit
        """
        self.engine.require_permission(actor, PermissionName.VIEW_USERS)

        if class_code is not None:
            if school_code is None:
                raise ValidationError("class_code requires school_code", field="class_code")
            self.engine.require_can_access_class(actor, school_code, class_code)
        elif school_code is not None:
            self.engine.require_can_access_school(actor, school_code)
        elif district_code is not None:
            self.engine.require_can_access_district(actor, district_code)
        elif state_code is not None:
            self.engine.require_can_access_state(actor, state_code)
        else:
            self.engine.require_admin(actor)

        return await self.user_repo.list_by_scope(
            state_code=state_code,
            district_code=district_code,
            school_code=school_code,
            class_code=class_code,
            role_name=role_name,
            skip=skip,
            limit=limit,
        )

    async def list_students_in_class(
        self,
        actor: User,
        school_code: str,
        class_code: str,
    ) -> List[User]:
        self.engine.require_permission(actor, PermissionName.VIEW_USERS)
        self.engine.require_can_access_class(actor, school_code, class_code)
        return await self.user_repo.list_by_scope(
            school_code=school_code,
            class_code=class_code,
            role_name=SystemRole.STUDENT.value,
        )

    async def list_users_by_role(
        self,
        actor: User,
        role_name: str,
        *,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        """Holders of ``role_name`` among the accounts the actor manages."""
        self.engine.require_permission(actor, PermissionName.VIEW_USERS)
        if self.engine.is_admin(actor):
            return await self.user_repo.get_by_role_name(role_name, skip=skip, limit=limit)

        scope = self._managed_scope(actor)
        # CLASS actors only manage students
        if scope is None or scope.pop("role_name", role_name) != role_name:
            return []
        users = await self.user_repo.list_by_scope(**scope, role_name=role_name, skip=skip, limit=limit)
        return self._visible(actor, users)

    async def search_users(
        self,
        actor: User,
        query: str,
        *,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        """Match name, email or username; the scope filter applies before paging."""
        self.engine.require_permission(actor, PermissionName.VIEW_USERS)
        if self.engine.is_admin(actor):
            return await self.user_repo.search(query, skip=skip, limit=limit)

        scope = self._managed_scope(actor)
        if scope is None:
            return []
        users = await self.user_repo.search(query, **scope, skip=skip, limit=limit)
        return self._visible(actor, users)

    async def update_user(
        self,
        actor: User,
        user_id: UUID,
        data: UserUpdate,
        client: Optional[ClientContext] = None,
    ) -> User:
        """
        Apply a partial update.

        Users may edit their own profile fields but not their own scope or
        email_verified flag (ADMIN excepted). Changing someone else's account
        needs UPDATE_USERS and management rights, and after a scope change
        the account must still be manageable by the actor.

        Raises:
            UserNotFoundError: Unknown user
            PermissionDeniedError: See above
            ValidationError: Resulting scope codes skip a level
        """
        target = await self._get_target(user_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return target

        is_self = self.engine.is_resource_owner(actor.id, target.id)
        privileged = PRIVILEGED_FIELDS.intersection(changes)

        if is_self and privileged and not self.engine.is_admin(actor):
            raise PermissionDeniedError(
                f"You cannot change {', '.join(sorted(privileged))} on your own account"
            )
        if not is_self:
            self.engine.require_permission(actor, PermissionName.UPDATE_USERS)
            self.engine.require_can_manage_user(actor, target)

        resulting_scope = {field: getattr(target, field) for field in SCOPE_FIELDS}
        resulting_scope.update({k: v for k, v in changes.items() if k in SCOPE_FIELDS})
        validate_scope(resulting_scope)
        scope_changed = bool(set(SCOPE_FIELDS).intersection(changes))
        if scope_changed:
            self._require_consistent_scope(actor, resulting_scope)

        for field, value in changes.items():
            setattr(target, field, value)

        if privileged and not self.engine.is_admin(actor) and not self.engine.can_manage_user(actor, target):
            raise PermissionDeniedError("You cannot move a user outside your organizational hierarchy")

        target.updated_at = datetime.now(timezone.utc)
        user = await self.user_repo.save(target)
        if scope_changed:
            self.scope_cache.invalidate()

        self._audit(
            actor,
            AuditAction.USER_UPDATE,
            user,
            client,
            f"Updated fields: {', '.join(sorted(changes))}",
        )
        logger.info("user_updated", user_id=str(user.id), updated_by=str(actor.id), fields=sorted(changes))
        return user

    async def assign_roles(
        self,
        actor: User,
        user_id: UUID,
        role_names: Iterable[str],
        client: Optional[ClientContext] = None,
    ) -> User:
        """
        Replace a user's roles.

        Raises:
            PermissionDeniedError: Missing MANAGE_ROLES, target outside the
                hierarchy, or a role not below the actor's level
            RoleNotFoundError: A requested role does not exist
            ValidationError: Empty role list
        """
        self.engine.require_permission(actor, PermissionName.MANAGE_ROLES)
        target = await self._get_target(user_id)
        self.engine.require_can_manage_user(actor, target)

        roles = await self._resolve_roles(role_names)
        self._require_assignable(actor, roles)

        previous = target.role_names
        target.roles = set(roles)
        target.updated_at = datetime.now(timezone.utc)
        user = await self.user_repo.save(target)

        self._audit(
            actor,
            AuditAction.ROLE_ASSIGN,
            user,
            client,
            f"Roles changed from {previous} to {user.role_names}",
        )
        logger.info("user_roles_assigned", user_id=str(user.id), roles=user.role_names, assigned_by=str(actor.id))
        return user

    async def _set_active(
        self,
        actor: User,
        user_id: UUID,
        active: bool,
        client: Optional[ClientContext],
    ) -> User:
        self.engine.require_permission(actor, PermissionName.UPDATE_USERS)
        target = await self._get_target(user_id)
        if not active and self.engine.is_resource_owner(actor.id, target.id):
            raise ValidationError("You cannot deactivate your own account")
        self.engine.require_can_manage_user(actor, target)

        target.is_active = active
        target.updated_at = datetime.now(timezone.utc)
        user = await self.user_repo.save(target)

        action = AuditAction.USER_ACTIVATE if active else AuditAction.USER_DEACTIVATE
        self._audit(actor, action, user, client)
        logger.info("user_active_changed", user_id=str(user.id), is_active=active, changed_by=str(actor.id))
        return user

    async def activate_user(self, actor: User, user_id: UUID, client: Optional[ClientContext] = None) -> User:
        return await self._set_active(actor, user_id, True, client)

    async def deactivate_user(self, actor: User, user_id: UUID, client: Optional[ClientContext] = None) -> User:
        return await self._set_active(actor, user_id, False, client)

    async def delete_user(
        self,
        actor: User,
        user_id: UUID,
        client: Optional[ClientContext] = None,
    ) -> None:
        """
        Permanently delete an account.

        Raises:
            PermissionDeniedError: Missing DELETE_USERS or target outside the hierarchy
            ValidationError: Actor deleting their own account
            UserNotFoundError: Unknown user
        """
        self.engine.require_permission(actor, PermissionName.DELETE_USERS)
        target = await self._get_target(user_id)
        if self.engine.is_resource_owner(actor.id, target.id):
            raise ValidationError("You cannot delete your own account")
        self.engine.require_can_manage_user(actor, target)

        await self.user_repo.delete(target.id)

        self._audit(actor, AuditAction.USER_DELETE, target.id, client, f"Deleted user {target.username}")
        logger.info("user_deleted", user_id=str(target.id), deleted_by=str(actor.id))

    async def get_user_statistics(self, actor: User) -> UserStatistics:
        self.engine.require_admin(actor)
        total = await self.user_repo.count()
        active = await self.user_repo.count_active()
        return UserStatistics(
            total_users=total,
            active_users=active,
            inactive_users=total - active,
            users_by_role=await self.user_repo.count_by_role(),
        )

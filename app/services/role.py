"""
Role and permission management service.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID

import structlog

from app.core.exceptions import (
    PermissionAlreadyExistsError,
    PermissionNotFoundError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
    ValidationError,
)
from app.domain.schemas.audit import AuditAction, ClientContext
from app.domain.schemas.role import (
    PermissionCreate,
    PermissionUpdate,
    RoleCreate,
    RoleStatistics,
    RoleUpdate,
)
from app.infrastructure.database.models import Permission, Role, User
from app.repositories.role import PermissionRepository, RoleRepository
from app.services.audit_service import AuditService
from app.services.auth.authorization.engine import AuthorizationEngine, default_engine
from app.services.auth.authorization.permissions import PermissionAction, PermissionName
from app.services.auth.authorization.rbac import ROLE_LEVELS

logger = structlog.get_logger(__name__)


class RoleService:
    """Manages roles, permissions and the grants between them."""

    def __init__(
        self,
        role_repository: RoleRepository,
        permission_repository: PermissionRepository,
        audit_service: AuditService,
        engine: Optional[AuthorizationEngine] = None,
    ):
        self.role_repo = role_repository
        self.permission_repo = permission_repository
        self.audit = audit_service
        self.engine = engine or default_engine

    def _audit(
        self,
        actor: User,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID,
        description: str,
        client: Optional[ClientContext],
    ) -> None:
        self.audit.record(
            actor_id=actor.id,
            actor_email=actor.email,
            actor_roles=actor.role_names,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            client=client,
        )

    async def _get_role(self, role_id: UUID) -> Role:
        role = await self.role_repo.get(role_id)
        if role is None:
            raise RoleNotFoundError(f"Role not found: {role_id}")
        return role

    async def _get_permission(self, permission_id: UUID) -> Permission:
        permission = await self.permission_repo.get(permission_id)
        if permission is None:
            raise PermissionNotFoundError(f"Permission not found: {permission_id}")
        return permission

    async def _resolve_permissions(self, names: Iterable[str]) -> List[Permission]:
        names = set(names)
        permissions = await self.permission_repo.get_by_names(names)
        missing = names - {permission.name for permission in permissions}
        if missing:
            raise PermissionNotFoundError(f"Permission not found: {', '.join(sorted(missing))}")
        return permissions

    @staticmethod
    def _touch(role: Role) -> None:
        role.updated_at = datetime.now(timezone.utc)

    # Roles

    async def list_roles(self, actor: User) -> List[Role]:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        return await self.role_repo.list_all()

    async def get_role(self, actor: User, role_id: UUID) -> Role:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        return await self._get_role(role_id)

    async def get_role_by_name(self, actor: User, name: str) -> Role:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        role = await self.role_repo.get_by_name(name)
        if role is None:
            raise RoleNotFoundError(f"Role not found: {name}")
        return role

    async def create_role(
        self,
        actor: User,
        data: RoleCreate,
        client: Optional[ClientContext] = None,
    ) -> Role:
        """
        Create a role, optionally with an initial permission set.

        Raises:
            PermissionDeniedError: Missing CREATE_ROLES
            RoleAlreadyExistsError: Name taken
            PermissionNotFoundError: Unknown permission name
        """
        self.engine.require_permission(actor, PermissionName.CREATE_ROLES)
        if await self.role_repo.exists_by_name(data.name):
            raise RoleAlreadyExistsError(f"Role already exists: {data.name}")

        permissions = await self._resolve_permissions(data.permissions)
        role = Role(name=data.name, description=data.description)
        role.permissions = set(permissions)
        role = await self.role_repo.save(role)

        self._audit(actor, AuditAction.ROLE_CREATE, "Role", role.id, f"Created role {role.name}", client)
        logger.info("role_created", role=role.name, permissions=len(permissions))
        return role

    async def update_role(
        self,
        actor: User,
        role_id: UUID,
        data: RoleUpdate,
        client: Optional[ClientContext] = None,
    ) -> Role:
        """
        Rename a role or change its description.

        Built-in roles keep their names; the hierarchy is keyed on them.

        Raises:
            RoleNotFoundError: Unknown role
            RoleAlreadyExistsError: New name taken
            ValidationError: Renaming a built-in role
        """
        self.engine.require_permission(actor, PermissionName.UPDATE_ROLES)
        role = await self._get_role(role_id)
        changes = data.model_dump(exclude_unset=True)

        new_name = changes.get("name")
        if new_name and new_name != role.name:
            if role.name in ROLE_LEVELS:
                raise ValidationError(f"Built-in role {role.name} cannot be renamed", field="name")
            if await self.role_repo.exists_by_name(new_name):
                raise RoleAlreadyExistsError(f"Role already exists: {new_name}")
            role.name = new_name
        if "description" in changes:
            role.description = changes["description"]

        self._touch(role)
        role = await self.role_repo.save(role)
        self._audit(actor, AuditAction.ROLE_UPDATE, "Role", role.id, f"Updated role {role.name}", client)
        return role

    async def delete_role(
        self,
        actor: User,
        role_id: UUID,
        client: Optional[ClientContext] = None,
    ) -> None:
        """
        Delete a role. Membership rows go with it, permissions stay.

        Raises:
            RoleNotFoundError: Unknown role
            ValidationError: Deleting a built-in role
        """
        self.engine.require_permission(actor, PermissionName.DELETE_ROLES)
        role = await self._get_role(role_id)
        if role.name in ROLE_LEVELS:
            raise ValidationError(f"Built-in role {role.name} cannot be deleted")

        await self.role_repo.delete(role.id)
        self._audit(actor, AuditAction.ROLE_DELETE, "Role", role.id, f"Deleted role {role.name}", client)
        logger.info("role_deleted", role=role.name)

    # Grants

    async def replace_permissions(
        self,
        actor: User,
        role_id: UUID,
        permission_names: Iterable[str],
        client: Optional[ClientContext] = None,
    ) -> Role:
        """
        Replace a role's permission set wholesale. An empty set is valid.

        Raises:
            RoleNotFoundError: Unknown role
            PermissionNotFoundError: Unknown permission name
        """
        self.engine.require_permission(actor, PermissionName.MANAGE_PERMISSIONS)
        role = await self._get_role(role_id)
        permissions = await self._resolve_permissions(permission_names)

        before = {permission.name for permission in role.permissions}
        after = {permission.name for permission in permissions}
        role.permissions = set(permissions)
        self._touch(role)
        role = await self.role_repo.save(role)

        for name in sorted(after - before):
            self._audit(actor, AuditAction.PERMISSION_GRANT, "Role", role.id, f"Granted {name} to {role.name}", client)
        for name in sorted(before - after):
            self._audit(actor, AuditAction.PERMISSION_REVOKE, "Role", role.id, f"Revoked {name} from {role.name}", client)

        logger.info("role_permissions_replaced", role=role.name, granted=sorted(after - before), revoked=sorted(before - after))
        return role

    async def add_permission(
        self,
        actor: User,
        role_id: UUID,
        permission_name: str,
        client: Optional[ClientContext] = None,
    ) -> Role:
        self.engine.require_permission(actor, PermissionName.MANAGE_PERMISSIONS)
        role = await self._get_role(role_id)
        permission = await self.permission_repo.get_by_name(permission_name)
        if permission is None:
            raise PermissionNotFoundError(f"Permission not found: {permission_name}")

        if permission not in role.permissions:
            role.permissions.add(permission)
            self._touch(role)
            role = await self.role_repo.save(role)
            self._audit(
                actor,
                AuditAction.PERMISSION_GRANT,
                "Role",
                role.id,
                f"Granted {permission.name} to {role.name}",
                client,
            )
        return role

    async def remove_permission(
        self,
        actor: User,
        role_id: UUID,
        permission_name: str,
        client: Optional[ClientContext] = None,
    ) -> Role:
        self.engine.require_permission(actor, PermissionName.MANAGE_PERMISSIONS)
        role = await self._get_role(role_id)

        granted = next((p for p in role.permissions if p.name == permission_name), None)
        if granted is not None:
            role.permissions.discard(granted)
            self._touch(role)
            role = await self.role_repo.save(role)
            self._audit(
                actor,
                AuditAction.PERMISSION_REVOKE,
                "Role",
                role.id,
                f"Revoked {permission_name} from {role.name}",
                client,
            )
        return role

    async def role_has_permission(self, actor: User, role_id: UUID, permission_name: str) -> bool:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        role = await self._get_role(role_id)
        return any(permission.name == permission_name for permission in role.permissions)

    async def get_role_permissions(self, actor: User, role_id: UUID) -> List[Permission]:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        role = await self._get_role(role_id)
        return sorted(role.permissions, key=lambda permission: permission.name)

    # Permissions

    async def list_permissions(
        self,
        actor: User,
        resource: Optional[str] = None,
        action: Optional[PermissionAction] = None,
    ) -> List[Permission]:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        return await self.permission_repo.list_filtered(
            resource=resource,
            action=action.value if action else None,
        )

    async def get_permission(self, actor: User, permission_id: UUID) -> Permission:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        return await self._get_permission(permission_id)

    async def get_permission_by_name(self, actor: User, name: str) -> Permission:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        permission = await self.permission_repo.get_by_name(name)
        if permission is None:
            raise PermissionNotFoundError(f"Permission not found: {name}")
        return permission

    async def create_permission(
        self,
        actor: User,
        data: PermissionCreate,
        client: Optional[ClientContext] = None,
    ) -> Permission:
        """
        Add a permission to the catalog.

        Raises:
            PermissionAlreadyExistsError: Name taken
        """
        self.engine.require_permission(actor, PermissionName.MANAGE_PERMISSIONS)
        if await self.permission_repo.exists_by_name(data.name):
            raise PermissionAlreadyExistsError(f"Permission already exists: {data.name}")

        permission = await self.permission_repo.create({
            "name": data.name,
            "resource": data.resource,
            "action": data.action.value,
            "description": data.description,
        })
        self._audit(
            actor,
            AuditAction.PERMISSION_CREATE,
            "Permission",
            permission.id,
            f"Created permission {permission.name}",
            client,
        )
        logger.info("permission_created", permission=permission.name)
        return permission

    async def update_permission(
        self,
        actor: User,
        permission_id: UUID,
        data: PermissionUpdate,
        client: Optional[ClientContext] = None,
    ) -> Permission:
        self.engine.require_permission(actor, PermissionName.MANAGE_PERMISSIONS)
        permission = await self._get_permission(permission_id)
        changes = data.model_dump(exclude_unset=True)
        if "action" in changes and changes["action"] is not None:
            changes["action"] = changes["action"].value
        for field, value in changes.items():
            if value is not None or field == "description":
                setattr(permission, field, value)
        return await self.permission_repo.save(permission)

    async def delete_permission(
        self,
        actor: User,
        permission_id: UUID,
        client: Optional[ClientContext] = None,
    ) -> None:
        """Delete a permission; roles lose the grant, nothing else changes."""
        self.engine.require_permission(actor, PermissionName.MANAGE_PERMISSIONS)
        permission = await self._get_permission(permission_id)
        await self.permission_repo.delete(permission.id)
        self._audit(
            actor,
            AuditAction.PERMISSION_DELETE,
            "Permission",
            permission.id,
            f"Deleted permission {permission.name}",
            client,
        )
        logger.info("permission_deleted", permission=permission.name)

    async def get_role_statistics(self, actor: User) -> RoleStatistics:
        self.engine.require_permission(actor, PermissionName.VIEW_ROLES)
        roles = await self.role_repo.list_all()
        return RoleStatistics(
            total_roles=len(roles),
            total_permissions=await self.permission_repo.count(),
            roles_with_permissions=sum(1 for role in roles if role.permissions),
            permissions_by_resource=await self.permission_repo.count_by_resource(),
        )

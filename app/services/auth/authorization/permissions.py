"""
Permission catalog for the testing platform.

Permissions are flat named capabilities tagged with a coarse resource and an
action. Matching is always exact: there are no wildcards and no implication
between actions (WRITE does not grant READ).
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class PermissionAction(str, Enum):
    """Action performed on a resource."""
    READ = "READ"
    WRITE = "WRITE"
    DELETE = "DELETE"
    EXECUTE = "EXECUTE"


class ResourceType(str, Enum):
    """Coarse domain areas a permission applies to."""
    USERS = "users"
    ROLES = "roles"
    TESTS = "tests"
    QUESTIONS = "questions"
    SCORES = "scores"
    REPORTS = "reports"
    AUDIT = "audit"


class PermissionName(str, Enum):
    """Names of the seeded permissions."""
    # users
    VIEW_USERS = "VIEW_USERS"
    CREATE_USERS = "CREATE_USERS"
    UPDATE_USERS = "UPDATE_USERS"
    DELETE_USERS = "DELETE_USERS"
    MANAGE_ROLES = "MANAGE_ROLES"
    # roles
    VIEW_ROLES = "VIEW_ROLES"
    CREATE_ROLES = "CREATE_ROLES"
    UPDATE_ROLES = "UPDATE_ROLES"
    DELETE_ROLES = "DELETE_ROLES"
    MANAGE_PERMISSIONS = "MANAGE_PERMISSIONS"
    # tests
    VIEW_TESTS = "VIEW_TESTS"
    CREATE_TESTS = "CREATE_TESTS"
    UPDATE_TESTS = "UPDATE_TESTS"
    DELETE_TESTS = "DELETE_TESTS"
    TAKE_TESTS = "TAKE_TESTS"
    # questions
    VIEW_QUESTIONS = "VIEW_QUESTIONS"
    CREATE_QUESTIONS = "CREATE_QUESTIONS"
    UPDATE_QUESTIONS = "UPDATE_QUESTIONS"
    DELETE_QUESTIONS = "DELETE_QUESTIONS"
    # scores
    VIEW_SCORES = "VIEW_SCORES"
    UPDATE_SCORES = "UPDATE_SCORES"
    VIEW_OWN_SCORES = "VIEW_OWN_SCORES"
    # reports
    VIEW_REPORTS = "VIEW_REPORTS"
    GENERATE_REPORTS = "GENERATE_REPORTS"
    EXPORT_REPORTS = "EXPORT_REPORTS"
    # audit
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"


class PermissionDefinition(BaseModel):
    """Catalog entry for a permission."""
    name: str
    resource: ResourceType
    action: PermissionAction
    description: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    def __str__(self) -> str:
        return self.name


def _definition(
    name: PermissionName,
    resource: ResourceType,
    action: PermissionAction,
    description: str,
) -> PermissionDefinition:
    return PermissionDefinition(
        name=name.value,
        resource=resource,
        action=action,
        description=description,
    )


DEFAULT_PERMISSIONS: List[PermissionDefinition] = [
    _definition(PermissionName.VIEW_USERS, ResourceType.USERS, PermissionAction.READ, "View user information"),
    _definition(PermissionName.CREATE_USERS, ResourceType.USERS, PermissionAction.WRITE, "Create new users"),
    _definition(PermissionName.UPDATE_USERS, ResourceType.USERS, PermissionAction.WRITE, "Update user information"),
    _definition(PermissionName.DELETE_USERS, ResourceType.USERS, PermissionAction.DELETE, "Delete users"),
    _definition(PermissionName.MANAGE_ROLES, ResourceType.USERS, PermissionAction.EXECUTE, "Assign and remove user roles"),
    _definition(PermissionName.VIEW_ROLES, ResourceType.ROLES, PermissionAction.READ, "View roles and permissions"),
    _definition(PermissionName.CREATE_ROLES, ResourceType.ROLES, PermissionAction.WRITE, "Create new roles"),
    _definition(PermissionName.UPDATE_ROLES, ResourceType.ROLES, PermissionAction.WRITE, "Update roles"),
    _definition(PermissionName.DELETE_ROLES, ResourceType.ROLES, PermissionAction.DELETE, "Delete roles"),
    _definition(PermissionName.MANAGE_PERMISSIONS, ResourceType.ROLES, PermissionAction.EXECUTE, "Grant and revoke role permissions"),
    _definition(PermissionName.VIEW_TESTS, ResourceType.TESTS, PermissionAction.READ, "View tests"),
    _definition(PermissionName.CREATE_TESTS, ResourceType.TESTS, PermissionAction.WRITE, "Create tests"),
    _definition(PermissionName.UPDATE_TESTS, ResourceType.TESTS, PermissionAction.WRITE, "Update tests"),
    _definition(PermissionName.DELETE_TESTS, ResourceType.TESTS, PermissionAction.DELETE, "Delete tests"),
    _definition(PermissionName.TAKE_TESTS, ResourceType.TESTS, PermissionAction.EXECUTE, "Take tests"),
    _definition(PermissionName.VIEW_QUESTIONS, ResourceType.QUESTIONS, PermissionAction.READ, "View questions"),
    _definition(PermissionName.CREATE_QUESTIONS, ResourceType.QUESTIONS, PermissionAction.WRITE, "Create questions"),
    _definition(PermissionName.UPDATE_QUESTIONS, ResourceType.QUESTIONS, PermissionAction.WRITE, "Update questions"),
    _definition(PermissionName.DELETE_QUESTIONS, ResourceType.QUESTIONS, PermissionAction.DELETE, "Delete questions"),
    _definition(PermissionName.VIEW_SCORES, ResourceType.SCORES, PermissionAction.READ, "View all scores in scope"),
    _definition(PermissionName.UPDATE_SCORES, ResourceType.SCORES, PermissionAction.WRITE, "Update scores"),
    _definition(PermissionName.VIEW_OWN_SCORES, ResourceType.SCORES, PermissionAction.READ, "View own scores"),
    _definition(PermissionName.VIEW_REPORTS, ResourceType.REPORTS, PermissionAction.READ, "View reports"),
    _definition(PermissionName.GENERATE_REPORTS, ResourceType.REPORTS, PermissionAction.EXECUTE, "Generate reports"),
    _definition(PermissionName.EXPORT_REPORTS, ResourceType.REPORTS, PermissionAction.EXECUTE, "Export reports"),
    _definition(PermissionName.VIEW_AUDIT_LOGS, ResourceType.AUDIT, PermissionAction.READ, "View audit logs"),
]


class PermissionRegistry:
    """Registry of the permissions known to the platform."""

    def __init__(self, definitions: Optional[List[PermissionDefinition]] = None):
        self._permissions: Dict[str, PermissionDefinition] = {}
        self._resource_permissions: Dict[ResourceType, List[PermissionDefinition]] = {}
        self.register_permissions(DEFAULT_PERMISSIONS if definitions is None else definitions)

    def register_permission(self, permission: PermissionDefinition) -> None:
        """Register a single permission."""
        if permission.name in self._permissions:
            raise ValueError(f"Permission {permission.name} already registered")

        self._permissions[permission.name] = permission
        self._resource_permissions.setdefault(permission.resource, []).append(permission)

        logger.debug("permission_registered", name=permission.name, key=permission.key)

    def register_permissions(self, permissions: List[PermissionDefinition]) -> None:
        """Register multiple permissions."""
        for permission in permissions:
            self.register_permission(permission)

    def get_permission(self, name: str) -> Optional[PermissionDefinition]:
        """Get permission by name."""
        return self._permissions.get(name)

    def get_permissions_for_resource(self, resource: ResourceType) -> List[PermissionDefinition]:
        """Get all permissions for a resource type."""
        return list(self._resource_permissions.get(resource, []))

    def get_all_permissions(self) -> List[PermissionDefinition]:
        """Get all registered permissions."""
        return list(self._permissions.values())

    def permission_exists(self, name: str) -> bool:
        return name in self._permissions

    def __len__(self) -> int:
        return len(self._permissions)


# Global permission registry
permission_registry = PermissionRegistry()

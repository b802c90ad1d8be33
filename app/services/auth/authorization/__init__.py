"""
Hierarchical role-based access control.

Roles grant flat permissions; the organizational hierarchy
(state, district, school, class) decides whose accounts and data a user can
reach. ADMIN bypasses the hierarchy.
"""

from .authorization import (
    AuthorizationService,
    ScopeIndexCache,
    build_authorization_engine,
    scope_index_cache,
)
from .engine import AuthorizationEngine, default_engine
from .hierarchy import ScopeIndex
from .permissions import (
    PermissionAction,
    PermissionDefinition,
    PermissionName,
    PermissionRegistry,
    ResourceType,
    permission_registry,
)
from .rbac import HierarchyLevel, RoleDefinition, RoleManager, SystemRole, role_manager

__all__ = [
    # Services
    "AuthorizationEngine",
    "AuthorizationService",
    "build_authorization_engine",
    "default_engine",
    "ScopeIndex",
    "ScopeIndexCache",
    "scope_index_cache",

    # Catalog
    "PermissionAction",
    "PermissionDefinition",
    "PermissionName",
    "PermissionRegistry",
    "ResourceType",
    "permission_registry",

    # Roles
    "HierarchyLevel",
    "RoleDefinition",
    "RoleManager",
    "SystemRole",
    "role_manager",
]

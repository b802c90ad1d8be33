"""
Domain schemas for the RBAC service.
"""

from .audit import *
from .auth import *
from .role import *
from .user import *

__all__ = [
    # Audit schemas
    "AuditAction",
    "AuditLogRead",
    "ClientContext",

    # Auth schemas
    "AuthResponse",
    "LoginRequest",
    "LoginResponse",
    "PasswordChangeRequest",
    "TokenRefreshRequest",
    "TokenRefreshResponse",
    "TokenValidationRequest",
    "TokenValidationResponse",
    "UserInfo",

    # Role schemas
    "PermissionCreate",
    "PermissionRead",
    "PermissionUpdate",
    "RoleCreate",
    "RolePermissionsUpdate",
    "RoleRead",
    "RoleStatistics",
    "RoleUpdate",

    # User schemas
    "RoleAssignmentRequest",
    "ScopeFields",
    "UserCreate",
    "UserRead",
    "UserStatistics",
    "UserUpdate",
]

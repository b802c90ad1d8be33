"""
Audit trail schemas.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuditAction(str, Enum):
    """Security-relevant actions recorded in the audit trail."""
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    TOKEN_REFRESH = "TOKEN_REFRESH"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"
    USER_ACTIVATE = "USER_ACTIVATE"
    USER_DEACTIVATE = "USER_DEACTIVATE"
    ROLE_ASSIGN = "ROLE_ASSIGN"
    ROLE_CREATE = "ROLE_CREATE"
    ROLE_UPDATE = "ROLE_UPDATE"
    ROLE_DELETE = "ROLE_DELETE"
    PERMISSION_CREATE = "PERMISSION_CREATE"
    PERMISSION_DELETE = "PERMISSION_DELETE"
    PERMISSION_GRANT = "PERMISSION_GRANT"
    PERMISSION_REVOKE = "PERMISSION_REVOKE"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    AuditAction.LOGIN: "User logged in",
    AuditAction.LOGIN_FAILED: "Failed login attempt",
    AuditAction.LOGOUT: "User logged out",
    AuditAction.TOKEN_REFRESH: "Access token refreshed",
    AuditAction.PASSWORD_CHANGE: "Password changed",
    AuditAction.USER_CREATE: "User created",
    AuditAction.USER_UPDATE: "User updated",
    AuditAction.USER_DELETE: "User deleted",
    AuditAction.USER_ACTIVATE: "User activated",
    AuditAction.USER_DEACTIVATE: "User deactivated",
    AuditAction.ROLE_ASSIGN: "Roles assigned to user",
    AuditAction.ROLE_CREATE: "Role created",
    AuditAction.ROLE_UPDATE: "Role updated",
    AuditAction.ROLE_DELETE: "Role deleted",
    AuditAction.PERMISSION_CREATE: "Permission created",
    AuditAction.PERMISSION_DELETE: "Permission deleted",
    AuditAction.PERMISSION_GRANT: "Permission granted to role",
    AuditAction.PERMISSION_REVOKE: "Permission revoked from role",
}


class ClientContext(BaseModel):
    """Network origin of a request, carried into audit records."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditLogRead(BaseModel):
    """Audit record as returned by the API."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: Optional[UUID] = None
    user_email: Optional[str] = None
    user_roles: Optional[str] = None
    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    description: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime
    success: bool
    error_message: Optional[str] = None

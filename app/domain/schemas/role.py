"""
Role and permission schemas.
"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.auth.authorization.permissions import PermissionAction


class PermissionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Z][A-Z0-9_]*$")
    resource: str = Field(..., min_length=1, max_length=50)
    action: PermissionAction
    description: Optional[str] = Field(None, max_length=500)


class PermissionUpdate(BaseModel):
    resource: Optional[str] = Field(None, min_length=1, max_length=50)
    action: Optional[PermissionAction] = None
    description: Optional[str] = Field(None, max_length=500)


class PermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    resource: str
    action: str
    description: Optional[str] = None


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, pattern=r"^[A-Z][A-Z0-9_]*$")
    description: Optional[str] = Field(None, max_length=255)
    permissions: List[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50, pattern=r"^[A-Z][A-Z0-9_]*$")
    description: Optional[str] = Field(None, max_length=255)


class RolePermissionsUpdate(BaseModel):
    """Replacement permission set; an empty list is valid."""
    permissions: List[str] = Field(default_factory=list)


class RoleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("permissions", mode="before")
    @classmethod
    def permission_names(cls, v):
        return sorted(getattr(permission, "name", permission) for permission in v or ())


class RoleStatistics(BaseModel):
    total_roles: int
    total_permissions: int
    roles_with_permissions: int
    permissions_by_resource: Dict[str, int] = Field(default_factory=dict)

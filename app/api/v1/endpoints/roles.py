"""
Role and permission management endpoints.
"""
from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.core.dependencies import get_client_context, get_current_user, get_role_service
from app.domain.schemas.audit import ClientContext
from app.domain.schemas.role import (
    PermissionCreate,
    PermissionRead,
    PermissionUpdate,
    RoleCreate,
    RolePermissionsUpdate,
    RoleRead,
    RoleStatistics,
    RoleUpdate,
)
from app.infrastructure.database.models import User
from app.services.auth.authorization.permissions import PermissionAction
from app.services.role import RoleService

router = APIRouter()
permissions_router = APIRouter()


# Roles

@router.get("", response_model=List[RoleRead])
async def list_roles(
    current_user: User = Depends(get_current_user),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.list_roles(current_user)


@router.post("", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.create_role(current_user, data, client)


@router.get("/statistics", response_model=RoleStatistics)
async def get_statistics(
    current_user: User = Depends(get_current_user),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.get_role_statistics(current_user)


@router.get("/name/{name}", response_model=RoleRead)
async def get_role_by_name(
    name: str,
    current_user: User = Depends(get_current_user),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.get_role_by_name(current_user, name)


@router.get("/{role_id}", response_model=RoleRead)
async def get_role(
    role_id: UUID,
    current_user: User = Depends(get_current_user),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.get_role(current_user, role_id)


@router.patch("/{role_id}", response_model=RoleRead)
async def update_role(
    role_id: UUID,
    data: RoleUpdate,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.update_role(current_user, role_id, data, client)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: UUID,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> None:
    await role_service.delete_role(current_user, role_id, client)


@router.get("/{role_id}/permissions", response_model=List[PermissionRead])
async def get_role_permissions(
    role_id: UUID,
    current_user: User = Depends(get_current_user),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.get_role_permissions(current_user, role_id)


@router.put("/{role_id}/permissions", response_model=RoleRead)
async def replace_role_permissions(
    role_id: UUID,
    body: RolePermissionsUpdate,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    """
    Replace the role's permission set. An empty list clears it.
    """
    return await role_service.replace_permissions(current_user, role_id, body.permissions, client)


@router.post("/{role_id}/permissions/{permission_name}", response_model=RoleRead)
async def add_role_permission(
    role_id: UUID,
    permission_name: str,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.add_permission(current_user, role_id, permission_name, client)


@router.delete("/{role_id}/permissions/{permission_name}", response_model=RoleRead)
async def remove_role_permission(
    role_id: UUID,
    permission_name: str,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.remove_permission(current_user, role_id, permission_name, client)


# Permissions

@permissions_router.get("", response_model=List[PermissionRead])
async def list_permissions(
    resource: Optional[str] = None,
    action: Optional[PermissionAction] = None,
    current_user: User = Depends(get_current_user),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.list_permissions(current_user, resource=resource, action=action)


@permissions_router.post("", response_model=PermissionRead, status_code=status.HTTP_201_CREATED)
async def create_permission(
    data: PermissionCreate,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.create_permission(current_user, data, client)


@permissions_router.get("/name/{name}", response_model=PermissionRead)
async def get_permission_by_name(
    name: str,
    current_user: User = Depends(get_current_user),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.get_permission_by_name(current_user, name)


@permissions_router.get("/{permission_id}", response_model=PermissionRead)
async def get_permission(
    permission_id: UUID,
    current_user: User = Depends(get_current_user),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.get_permission(current_user, permission_id)


@permissions_router.patch("/{permission_id}", response_model=PermissionRead)
async def update_permission(
    permission_id: UUID,
    data: PermissionUpdate,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> Any:
    return await role_service.update_permission(current_user, permission_id, data, client)


@permissions_router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: UUID,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    role_service: RoleService = Depends(get_role_service),
) -> None:
    await role_service.delete_permission(current_user, permission_id, client)

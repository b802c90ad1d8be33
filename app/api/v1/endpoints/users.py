"""
User management endpoints.
"""
from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.config import settings
from app.core.dependencies import get_client_context, get_current_user, get_user_service
from app.domain.schemas.audit import ClientContext
from app.domain.schemas.user import (
    RoleAssignmentRequest,
    UserCreate,
    UserRead,
    UserStatistics,
    UserUpdate,
)
from app.infrastructure.database.models import User
from app.services.user import UserService

router = APIRouter()

Limit = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    """
    Create a user inside the caller's part of the hierarchy.
    """
    return await user_service.create_user(current_user, data, client)


@router.get("", response_model=List[UserRead])
async def list_users(
    active: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Limit,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    """
    List the accounts the caller manages.
    """
    return await user_service.list_users(current_user, is_active=active, skip=skip, limit=limit)


@router.get("/statistics", response_model=UserStatistics)
async def get_statistics(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    return await user_service.get_user_statistics(current_user)


@router.get("/search", response_model=List[UserRead])
async def search_users(
    q: str = Query(..., min_length=1),
    skip: int = Query(0, ge=0),
    limit: int = Limit,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    return await user_service.search_users(current_user, q, skip=skip, limit=limit)


@router.get("/scope", response_model=List[UserRead])
async def list_users_by_scope(
    state_code: Optional[str] = None,
    district_code: Optional[str] = None,
    school_code: Optional[str] = None,
    class_code: Optional[str] = None,
    role: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Limit,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    """
    List users of a state, district, school or class.
    """
    return await user_service.list_users_by_scope(
        current_user,
        state_code=state_code,
        district_code=district_code,
        school_code=school_code,
        class_code=class_code,
        role_name=role,
        skip=skip,
        limit=limit,
    )


@router.get("/schools/{school_code}/classes/{class_code}/students", response_model=List[UserRead])
async def list_students_in_class(
    school_code: str,
    class_code: str,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    return await user_service.list_students_in_class(current_user, school_code, class_code)


@router.get("/roles/{role_name}", response_model=List[UserRead])
async def list_users_by_role(
    role_name: str,
    skip: int = Query(0, ge=0),
    limit: int = Limit,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    return await user_service.list_users_by_role(current_user, role_name, skip=skip, limit=limit)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    """
    Get an account the caller owns or manages.
    """
    return await user_service.get_user(current_user, user_id)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    return await user_service.update_user(current_user, user_id, data, client)


@router.put("/{user_id}/roles", response_model=UserRead)
async def assign_roles(
    user_id: UUID,
    body: RoleAssignmentRequest,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    """
    Replace the user's roles.
    """
    return await user_service.assign_roles(current_user, user_id, body.roles, client)


@router.post("/{user_id}/activate", response_model=UserRead)
async def activate_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    return await user_service.activate_user(current_user, user_id, client)


@router.post("/{user_id}/deactivate", response_model=UserRead)
async def deactivate_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    user_service: UserService = Depends(get_user_service),
) -> Any:
    return await user_service.deactivate_user(current_user, user_id, client)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    user_service: UserService = Depends(get_user_service),
) -> None:
    await user_service.delete_user(current_user, user_id, client)

"""
Audit trail endpoints.
"""
from datetime import datetime
from typing import Any, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.config import settings
from app.core.dependencies import get_audit_service, require_permissions
from app.domain.schemas.audit import AuditAction, AuditLogRead
from app.services.audit_service import AuditService
from app.services.auth.authorization.permissions import PermissionName

router = APIRouter(dependencies=[Depends(require_permissions(PermissionName.VIEW_AUDIT_LOGS))])

Limit = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)


@router.get("/recent", response_model=List[AuditLogRead])
async def get_recent(
    audit: AuditService = Depends(get_audit_service),
) -> Any:
    return await audit.get_recent_audit_logs()


@router.get("/failed", response_model=List[AuditLogRead])
async def get_failed(
    skip: int = Query(0, ge=0),
    limit: int = Limit,
    audit: AuditService = Depends(get_audit_service),
) -> Any:
    return await audit.get_failed_actions(skip=skip, limit=limit)


@router.get("/users/{user_id}", response_model=List[AuditLogRead])
async def get_user_logs(
    user_id: UUID,
    skip: int = Query(0, ge=0),
    limit: int = Limit,
    audit: AuditService = Depends(get_audit_service),
) -> Any:
    return await audit.get_user_audit_logs(user_id, skip=skip, limit=limit)


@router.get("/users/{user_id}/logins", response_model=List[AuditLogRead])
async def get_login_attempts(
    user_id: UUID,
    hours: int = Query(24, ge=1, le=24 * 90),
    audit: AuditService = Depends(get_audit_service),
) -> Any:
    """
    Successful and failed logins of a user over the last ``hours``.
    """
    return await audit.get_login_attempts(user_id, hours=hours)


@router.get("/actions/{action}", response_model=List[AuditLogRead])
async def get_by_action(
    action: AuditAction,
    skip: int = Query(0, ge=0),
    limit: int = Limit,
    audit: AuditService = Depends(get_audit_service),
) -> Any:
    return await audit.get_audit_logs_by_action(action, skip=skip, limit=limit)


@router.get("/range", response_model=List[AuditLogRead])
async def get_by_date_range(
    start: datetime,
    end: datetime,
    skip: int = Query(0, ge=0),
    limit: int = Limit,
    audit: AuditService = Depends(get_audit_service),
) -> Any:
    return await audit.get_audit_logs_by_date_range(start, end, skip=skip, limit=limit)

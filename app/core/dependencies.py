"""
Dependency injection for FastAPI.
"""
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError, InactiveAccountError, InvalidTokenError
from app.domain.schemas.audit import ClientContext
from app.infrastructure.database.base import get_db
from app.infrastructure.database.models import User
from app.repositories.role import PermissionRepository, RoleRepository
from app.repositories.user import UserRepository
from app.services.audit_service import AuditService, audit_service, client_context_from_request
from app.services.auth.auth_service import AuthenticationService
from app.services.auth.authorization import (
    AuthorizationEngine,
    AuthorizationService,
    build_authorization_engine,
)
from app.services.auth.token_service import TokenService
from app.services.role import RoleService
from app.services.user import UserService

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_service() -> TokenService:
    return TokenService()


def get_audit_service() -> AuditService:
    return audit_service


def get_client_context(request: Request) -> ClientContext:
    return client_context_from_request(request)


async def get_authorization_engine(db: AsyncSession = Depends(get_db)) -> AuthorizationEngine:
    """Engine for this request, sharing the cached containment index when enabled."""
    return await build_authorization_engine(UserRepository(db))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> User:
    """
    Get current authenticated user from the bearer access token.

    Args:
        credentials: Bearer credentials
        db: Database session
        token_service: Token verifier

    Returns:
        Current user

    Raises:
        AuthenticationError: Token missing, invalid or naming an unknown user
        InactiveAccountError: Account is deactivated
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    try:
        payload = token_service.decode_access_token(credentials.credentials)
        user_id = token_service.subject_of(payload.model_dump())
    except InvalidTokenError:
        raise AuthenticationError("Could not validate credentials")

    user = await UserRepository(db).get(user_id)
    if user is None:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise InactiveAccountError("Inactive user")

    return user


def require_permissions(*permission_names: str) -> Callable:
    """
    Dependency factory requiring every listed permission.

    Usage:
        @router.get("/", dependencies=[Depends(require_permissions("VIEW_AUDIT_LOGS"))])
    """
    async def checker(
        current_user: User = Depends(get_current_user),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> User:
        engine.require_all_permissions(current_user, *permission_names)
        return current_user

    return checker


# Service factories

def get_authentication_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
    token_service: TokenService = Depends(get_token_service),
) -> AuthenticationService:
    return AuthenticationService(
        user_repository=UserRepository(db),
        audit_service=audit,
        token_service=token_service,
    )


def get_authorization_service(
    db: AsyncSession = Depends(get_db),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> AuthorizationService:
    return AuthorizationService(UserRepository(db), engine=engine)


def get_user_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> UserService:
    return UserService(
        user_repository=UserRepository(db),
        role_repository=RoleRepository(db),
        audit_service=audit,
        engine=engine,
    )


def get_role_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> RoleService:
    return RoleService(
        role_repository=RoleRepository(db),
        permission_repository=PermissionRepository(db),
        audit_service=audit,
        engine=engine,
    )

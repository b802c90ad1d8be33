"""
Authentication endpoints.
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.dependencies import (
    get_authentication_service,
    get_client_context,
    get_current_user,
)
from app.core.exceptions import InvalidCredentialsError, UserNotFoundError
from app.domain.schemas.audit import ClientContext
from app.domain.schemas.auth import (
    AuthResponse,
    LoginRequest,
    LoginResponse,
    PasswordChangeRequest,
    TokenRefreshRequest,
    TokenRefreshResponse,
    TokenValidationRequest,
    TokenValidationResponse,
)
from app.domain.schemas.user import UserRead
from app.infrastructure.database.models import User
from app.services.auth.auth_service import AuthenticationService

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    client: ClientContext = Depends(get_client_context),
    auth_service: AuthenticationService = Depends(get_authentication_service),
) -> Any:
    """
    Login with email or username and password.

    Unknown accounts and wrong passwords get the same answer so the
    endpoint does not reveal which accounts exist.
    """
    try:
        return await auth_service.authenticate(
            identifier=credentials.identifier,
            password=credentials.password,
            client=client,
        )
    except (UserNotFoundError, InvalidCredentialsError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


@router.post("/refresh", response_model=TokenRefreshResponse)
async def refresh_token(
    body: TokenRefreshRequest,
    client: ClientContext = Depends(get_client_context),
    auth_service: AuthenticationService = Depends(get_authentication_service),
) -> Any:
    """
    Exchange a refresh token for a new access token.
    """
    return await auth_service.refresh_token(body.refresh_token, client=client)


@router.post("/change-password", response_model=AuthResponse)
async def change_password(
    body: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    auth_service: AuthenticationService = Depends(get_authentication_service),
) -> Any:
    """
    Change the authenticated user's password.
    """
    return await auth_service.change_password(
        user_id=current_user.id,
        current_password=body.current_password,
        new_password=body.new_password,
        client=client,
    )


@router.post("/logout", response_model=AuthResponse)
async def logout(
    current_user: User = Depends(get_current_user),
    client: ClientContext = Depends(get_client_context),
    auth_service: AuthenticationService = Depends(get_authentication_service),
) -> Any:
    return auth_service.logout(current_user, client=client)


@router.post("/validate", response_model=TokenValidationResponse)
async def validate_token(
    body: TokenValidationRequest,
    auth_service: AuthenticationService = Depends(get_authentication_service),
) -> Any:
    """
    Check whether a token verifies (signature, issuer, expiry).
    """
    return TokenValidationResponse(valid=auth_service.validate_token(body.token))


@router.get("/me", response_model=UserRead)
async def get_me(
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Get the authenticated user's account.
    """
    return current_user

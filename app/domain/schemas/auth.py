"""
Authentication schemas.
"""
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.security import validate_password_strength


class LoginRequest(BaseModel):
    """Login credentials; ``identifier`` is an email or a username."""
    identifier: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class UserInfo(BaseModel):
    """Identity summary returned alongside tokens."""
    id: UUID
    email: str
    username: str
    name: str
    roles: List[str]
    permissions: List[str]


class LoginResponse(BaseModel):
    """Successful login."""
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserInfo


class TokenRefreshRequest(BaseModel):
    refresh_token: str


class TokenRefreshResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class PasswordChangeRequest(BaseModel):
    """Password change for the authenticated user."""
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return validate_password_strength(v)


class TokenValidationRequest(BaseModel):
    token: str


class TokenValidationResponse(BaseModel):
    valid: bool


class AuthResponse(BaseModel):
    """Outcome of an authentication side operation."""
    success: bool
    message: str

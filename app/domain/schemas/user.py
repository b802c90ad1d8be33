"""
User schemas.
"""
import re
from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.security import validate_password_strength

SCOPE_FIELDS = (
    "state_code",
    "state_name",
    "district_code",
    "district_name",
    "school_code",
    "school_name",
    "class_code",
    "class_name",
)

CODE_PATTERN = re.compile(r"^[A-Z0-9-]+$")
PHONE_PATTERN = re.compile(r"^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,9}$")
ROLL_NUMBER_PATTERN = re.compile(r"^[A-Z0-9/-]+$")


class ScopeFields(BaseModel):
    """Organizational placement, most general first."""
    state_code: Optional[str] = Field(None, max_length=10)
    state_name: Optional[str] = Field(None, max_length=100)
    district_code: Optional[str] = Field(None, max_length=20)
    district_name: Optional[str] = Field(None, max_length=100)
    school_code: Optional[str] = Field(None, max_length=30)
    school_name: Optional[str] = Field(None, max_length=255)
    class_code: Optional[str] = Field(None, max_length=20)
    class_name: Optional[str] = Field(None, max_length=100)


class UserInput(ScopeFields):
    """Format rules shared by create and update payloads."""

    @field_validator("state_code", "district_code", "school_code", "class_code")
    @classmethod
    def validate_code(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not CODE_PATTERN.match(v):
            raise ValueError("Code must be uppercase alphanumeric with optional hyphens")
        return v

    @field_validator("phone_number", check_fields=False)
    @classmethod
    def validate_phone_number(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not PHONE_PATTERN.match(v):
            raise ValueError("Invalid phone number format")
        return v

    @field_validator("roll_number", check_fields=False)
    @classmethod
    def validate_roll_number(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not ROLL_NUMBER_PATTERN.match(v):
            raise ValueError("Invalid roll number format")
        return v


class UserCreate(UserInput):
    """User creation schema."""
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    phone_number: Optional[str] = Field(None, max_length=20)
    roles: List[str] = Field(..., min_length=1)
    roll_number: Optional[str] = Field(None, max_length=50)
    date_of_birth: Optional[date] = None
    parent_email: Optional[EmailStr] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UserUpdate(UserInput):
    """
    Partial user update.

    Only fields explicitly sent are applied; scope fields are part of the
    payload but require manager rights to change.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=20)
    email_verified: Optional[bool] = None
    roll_number: Optional[str] = Field(None, max_length=50)
    date_of_birth: Optional[date] = None
    parent_email: Optional[EmailStr] = None


class RoleAssignmentRequest(BaseModel):
    """Wholesale replacement of a user's roles."""
    roles: List[str] = Field(..., min_length=1)


class UserRead(ScopeFields):
    """User response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    username: str
    name: str
    phone_number: Optional[str] = None
    is_active: bool
    email_verified: bool
    roles: List[str] = Field(default_factory=list)
    roll_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    parent_email: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("roles", mode="before")
    @classmethod
    def role_names(cls, v):
        return sorted(getattr(role, "name", role) for role in v or ())


class UserStatistics(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    users_by_role: Dict[str, int] = Field(default_factory=dict)

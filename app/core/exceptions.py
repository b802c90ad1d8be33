"""
Custom exceptions for the application.

Four failure kinds cross service boundaries: not found, already exists,
validation failed and permission denied. Each carries the HTTP status the
API layer answers with, so a single handler in ``app.main`` maps all of them.
"""
from typing import Any, Dict, Optional


class EduRBACException(Exception):
    """Base exception for all service-level failures."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Not found

class NotFoundError(EduRBACException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=404, details=details)


class UserNotFoundError(NotFoundError):
    """User not found exception."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class RoleNotFoundError(NotFoundError):
    """Role not found exception."""

    def __init__(self, message: str = "Role not found"):
        super().__init__(message)


class PermissionNotFoundError(NotFoundError):
    """Permission not found exception."""

    def __init__(self, message: str = "Permission not found"):
        super().__init__(message)


# Already exists

class AlreadyExistsError(EduRBACException):
    """Uniqueness violation exception."""

    def __init__(self, message: str = "Resource already exists", field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=409, details=details)


class UserAlreadyExistsError(AlreadyExistsError):
    """User already exists exception."""

    def __init__(self, message: str = "User already exists", field: Optional[str] = None):
        super().__init__(message, field=field)


class RoleAlreadyExistsError(AlreadyExistsError):
    """Role already exists exception."""

    def __init__(self, message: str = "Role already exists"):
        super().__init__(message, field="name")


class PermissionAlreadyExistsError(AlreadyExistsError):
    """Permission already exists exception."""

    def __init__(self, message: str = "Permission already exists"):
        super().__init__(message, field="name")


# Validation

class ValidationError(EduRBACException):
    """Validation error exception."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        status_code: int = 422,
    ):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=status_code, details=details)


class InvalidCredentialsError(ValidationError):
    """Invalid credentials exception."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, status_code=401)


class InactiveAccountError(ValidationError):
    """Account is deactivated."""

    def __init__(self, message: str = "Account is inactive. Please contact administrator."):
        super().__init__(message, status_code=403)


class InvalidTokenError(ValidationError):
    """Invalid token exception."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message, status_code=401)


# Access

class AuthenticationError(EduRBACException):
    """Missing or unusable bearer credentials."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401)


class PermissionDeniedError(EduRBACException):
    """Authorization check failed."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status_code=403)

"""
JWT token issuing and verification.

Access tokens carry the user's identity, roles and effective permissions so
downstream services can make coarse decisions without a lookup. Refresh
tokens carry only the identity and a ``tokenType`` marker of ``REFRESH``.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from jose import JWTError, jwt
from pydantic import BaseModel, Field

from app.core.config import get_settings
from app.core.exceptions import InvalidTokenError

logger = structlog.get_logger(__name__)
settings = get_settings()

REFRESH_TOKEN_TYPE = "REFRESH"


class TokenPayload(BaseModel):
    """Decoded access-token claims."""
    sub: str  # User ID
    email: str
    username: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
    iat: int
    exp: int
    iss: Optional[str] = None
    tokenType: Optional[str] = None


class TokenService:
    """Service for JWT token operations."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
        refresh_token_expire_days: Optional[int] = None,
        issuer: Optional[str] = None,
    ):
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.access_token_expire_minutes = (
            settings.ACCESS_TOKEN_EXPIRE_MINUTES
            if access_token_expire_minutes is None
            else access_token_expire_minutes
        )
        self.refresh_token_expire_days = (
            settings.REFRESH_TOKEN_EXPIRE_DAYS
            if refresh_token_expire_days is None
            else refresh_token_expire_days
        )
        self.issuer = issuer or settings.JWT_ISSUER

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return self.access_token_expire_minutes * 60

    def create_access_token(
        self,
        user_id: UUID,
        email: str,
        username: str,
        roles: List[str],
        permissions: List[str],
    ) -> str:
        """
        Create a signed access token.

        Args:
            user_id: Token subject
            email: User email
            username: Username
            roles: Role names held by the user
            permissions: Effective permission names

        Returns:
            Encoded JWT
        """
        data = {
            "sub": str(user_id),
            "email": email,
            "username": username,
            "roles": sorted(roles),
            "permissions": sorted(set(permissions)),
        }
        return self._create_token(data, timedelta(minutes=self.access_token_expire_minutes))

    def create_refresh_token(self, user_id: UUID, email: str) -> str:
        """Create a signed refresh token."""
        data = {
            "sub": str(user_id),
            "email": email,
            "tokenType": REFRESH_TOKEN_TYPE,
        }
        return self._create_token(data, timedelta(days=self.refresh_token_expire_days))

    def _create_token(self, data: Dict[str, Any], expires_delta: timedelta) -> str:
        """Create a JWT token with given data and expiration."""
        now = datetime.now(timezone.utc)
        expire = now + expires_delta

        to_encode = data.copy()
        to_encode.update({
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
            "iss": self.issuer,
        })

        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def get_claims(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, expiry and issuer and return the raw claims.

        Raises:
            InvalidTokenError: If the token does not verify
        """
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
            )
        except JWTError as e:
            logger.debug("token_decode_error", error=str(e))
            raise InvalidTokenError() from e

    def validate_token(self, token: str) -> bool:
        try:
            self.get_claims(token)
        except InvalidTokenError:
            return False
        return True

    def decode_access_token(self, token: str) -> TokenPayload:
        """
        Decode an access token.

        Raises:
            InvalidTokenError: If the token does not verify or is a refresh token
        """
        claims = self.get_claims(token)
        if claims.get("tokenType") == REFRESH_TOKEN_TYPE:
            raise InvalidTokenError("Refresh token cannot be used for authentication")
        try:
            return TokenPayload(**claims)
        except ValueError as e:
            raise InvalidTokenError() from e

    def decode_refresh_token(self, token: str) -> Dict[str, Any]:
        """
        Decode a refresh token.

        Raises:
            InvalidTokenError: If the token does not verify or is not a refresh token
        """
        try:
            claims = self.get_claims(token)
        except InvalidTokenError as e:
            raise InvalidTokenError("Invalid or expired refresh token") from e
        if claims.get("tokenType") != REFRESH_TOKEN_TYPE:
            raise InvalidTokenError("Invalid or expired refresh token")
        return claims

    def get_user_id(self, token: str) -> UUID:
        """
        Subject of a verified token as a UUID.

        Raises:
            InvalidTokenError: If the token does not verify or its subject is
                not a well-formed UUID
        """
        claims = self.get_claims(token)
        return self.subject_of(claims)

    @staticmethod
    def subject_of(claims: Dict[str, Any]) -> UUID:
        try:
            return UUID(str(claims.get("sub")))
        except ValueError as e:
            raise InvalidTokenError("Malformed token subject") from e

    def get_roles(self, token: str) -> List[str]:
        return list(self.get_claims(token).get("roles", []))

    def get_permissions(self, token: str) -> List[str]:
        return list(self.get_claims(token).get("permissions", []))

    def token_has_role(self, token: str, role_name: str) -> bool:
        return role_name in self.get_roles(token)

    def token_has_permission(self, token: str, permission_name: str) -> bool:
        return permission_name in self.get_permissions(token)

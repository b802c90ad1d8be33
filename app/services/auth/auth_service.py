"""
Authentication service.

Verifies credentials, issues access and refresh tokens, refreshes access
tokens and changes passwords. Every credential decision on a known account
is written to the audit trail; lookups that match no account are not, since
there is no actor to attribute them to.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog

from app.core.exceptions import (
    EduRBACException,
    InactiveAccountError,
    InvalidCredentialsError,
    UserNotFoundError,
)
from app.core.security import PasswordHasher
from app.domain.schemas.audit import AuditAction, ClientContext
from app.domain.schemas.auth import (
    AuthResponse,
    LoginResponse,
    TokenRefreshResponse,
    UserInfo,
)
from app.infrastructure.database.models import User
from app.repositories.user import UserRepository
from app.services.audit_service import AuditService
from app.services.auth.authorization.engine import AuthorizationEngine, default_engine
from app.services.auth.token_service import TokenService

logger = structlog.get_logger(__name__)


class AuthenticationService:
    """Credential verification and token lifecycle."""

    def __init__(
        self,
        user_repository: UserRepository,
        audit_service: AuditService,
        token_service: Optional[TokenService] = None,
        password_hasher: Optional[PasswordHasher] = None,
        engine: Optional[AuthorizationEngine] = None,
    ):
        self.user_repo = user_repository
        self.audit = audit_service
        self.token_service = token_service or TokenService()
        self.password_hasher = password_hasher or PasswordHasher()
        self.engine = engine or default_engine

    async def _find_by_identifier(self, identifier: str) -> Optional[User]:
        identifier = identifier.strip()
        user = await self.user_repo.get_by_email(identifier)
        if user is None:
            user = await self.user_repo.get_by_username(identifier)
        return user

    def _audit(
        self,
        user: User,
        action: AuditAction,
        client: Optional[ClientContext],
        success: bool = True,
        error_message: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        self.audit.record(
            actor_id=user.id,
            actor_email=user.email,
            actor_roles=user.role_names,
            action=action,
            resource_type="User",
            resource_id=user.id,
            description=description,
            client=client,
            success=success,
            error_message=error_message,
        )

    def _issue_access_token(self, user: User) -> str:
        return self.token_service.create_access_token(
            user_id=user.id,
            email=user.email,
            username=user.username,
            roles=user.role_names,
            permissions=self.engine.get_user_permissions(user),
        )

    async def authenticate(
        self,
        identifier: str,
        password: str,
        client: Optional[ClientContext] = None,
    ) -> LoginResponse:
        """
        Authenticate by email or username and issue tokens.

        Args:
            identifier: Email (matched case-insensitively) or username
            password: Plain text password
            client: Request origin for the audit trail

        Returns:
            LoginResponse with both tokens and a user summary

        Raises:
            UserNotFoundError: If no account matches the identifier
            InactiveAccountError: If the account is deactivated
            InvalidCredentialsError: If the password does not match
        """
        try:
            user = await self._find_by_identifier(identifier)
            if user is None:
                logger.warning("login_attempt_unknown_identifier", ip=client.ip_address if client else None)
                raise UserNotFoundError("Invalid credentials")

            if not user.is_active:
                logger.warning("login_attempt_inactive_user", user_id=str(user.id))
                self._audit(
                    user,
                    AuditAction.LOGIN_FAILED,
                    client,
                    success=False,
                    error_message="Account is inactive",
                )
                raise InactiveAccountError()

            if not self.password_hasher.verify(password, user.password_hash):
                logger.warning("login_attempt_invalid_password", user_id=str(user.id))
                self._audit(
                    user,
                    AuditAction.LOGIN_FAILED,
                    client,
                    success=False,
                    error_message="Invalid password",
                )
                raise InvalidCredentialsError()

            permissions = self.engine.get_user_permissions(user)
            access_token = self._issue_access_token(user)
            refresh_token = self.token_service.create_refresh_token(user.id, user.email)

            user.last_login = datetime.now(timezone.utc)
            await self.user_repo.save(user)

            self._audit(user, AuditAction.LOGIN, client)
            logger.info("user_logged_in", user_id=str(user.id), roles=user.role_names)

            return LoginResponse(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_in=self.token_service.expires_in,
                user=UserInfo(
                    id=user.id,
                    email=user.email,
                    username=user.username,
                    name=user.name,
                    roles=user.role_names,
                    permissions=permissions,
                ),
            )

        except EduRBACException:
            raise
        except Exception as e:
            logger.error("login_error", error=str(e))
            raise

    async def refresh_token(
        self,
        refresh_token: str,
        client: Optional[ClientContext] = None,
    ) -> TokenRefreshResponse:
        """
        Issue a new access token from a refresh token.

        The new token reflects the user's current roles and permissions, not
        those at login time.

        Raises:
            InvalidTokenError: If the token is invalid, expired or not a refresh token
            UserNotFoundError: If the subject no longer exists
            InactiveAccountError: If the account was deactivated since login
        """
        claims = self.token_service.decode_refresh_token(refresh_token)
        user_id = self.token_service.subject_of(claims)

        user = await self.user_repo.get(user_id)
        if user is None:
            logger.warning("token_refresh_unknown_user", user_id=str(user_id))
            raise UserNotFoundError()

        if not user.is_active:
            logger.warning("token_refresh_inactive_user", user_id=str(user.id))
            raise InactiveAccountError("Account is inactive")

        access_token = self._issue_access_token(user)
        self._audit(user, AuditAction.TOKEN_REFRESH, client)
        logger.info("access_token_refreshed", user_id=str(user.id))

        return TokenRefreshResponse(
            access_token=access_token,
            expires_in=self.token_service.expires_in,
        )

    async def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
        client: Optional[ClientContext] = None,
    ) -> AuthResponse:
        """
        Change a user's password after checking the current one.

        Args:
            user_id: Account owner
            current_password: Password being replaced
            new_password: Replacement password
            client: Request origin for the audit trail

        Returns:
            AuthResponse confirming the change

        Raises:
            UserNotFoundError: If the user does not exist
            InvalidCredentialsError: If the current password does not match
        """
        user = await self.user_repo.get(user_id)
        if user is None:
            raise UserNotFoundError()

        if not self.password_hasher.verify(current_password, user.password_hash):
            logger.warning("password_change_wrong_current", user_id=str(user.id))
            self._audit(
                user,
                AuditAction.PASSWORD_CHANGE,
                client,
                success=False,
                error_message="Current password is incorrect",
            )
            raise InvalidCredentialsError("Current password is incorrect")

        user.password_hash = self.password_hasher.hash(new_password)
        user.updated_at = datetime.now(timezone.utc)
        await self.user_repo.save(user)

        self._audit(user, AuditAction.PASSWORD_CHANGE, client)
        logger.info("password_changed", user_id=str(user.id))

        return AuthResponse(success=True, message="Password changed successfully")

    def logout(self, user: User, client: Optional[ClientContext] = None) -> AuthResponse:
        """
        Record a logout.

        Tokens are stateless and stay valid until they expire; clients drop
        them on logout.
        """
        self._audit(user, AuditAction.LOGOUT, client)
        logger.info("user_logged_out", user_id=str(user.id))
        return AuthResponse(success=True, message="Logged out successfully")

    def validate_token(self, token: str) -> bool:
        return self.token_service.validate_token(token)

    def get_user_id_from_token(self, token: str) -> UUID:
        """
        Subject of a token.

        Raises:
            InvalidTokenError: If the token does not verify or its subject is
                not a UUID
        """
        return self.token_service.get_user_id(token)

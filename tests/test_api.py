"""
HTTP-level tests for the v1 API.

Services are wired to mocked repositories through dependency overrides, so
these tests exercise routing, status mapping and serialization without a
database.
"""
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.dependencies import (
    get_audit_service,
    get_authentication_service,
    get_authorization_engine,
    get_current_user,
    get_role_service,
    get_user_service,
)
from app.core.security import PasswordHasher
from app.infrastructure.database.base import get_db
from app.main import app
from app.services.auth.auth_service import AuthenticationService
from app.services.auth.authorization.engine import AuthorizationEngine
from app.services.auth.token_service import TokenService
from app.services.role import RoleService
from app.services.user import UserService
from tests.fixtures.auth import TEST_PASSWORD, make_role, make_user

API = "/api/v1"


@pytest.fixture
def current(school_user):
    """Mutable holder for the authenticated user."""
    return {"user": school_user}


@pytest.fixture
def password_hasher() -> MagicMock:
    hasher = MagicMock(spec=PasswordHasher)
    hasher.verify.side_effect = lambda plain, digest: plain == TEST_PASSWORD
    hasher.hash.side_effect = lambda password: f"hashed:{password}"
    return hasher


@pytest_asyncio.fixture
async def client(
    current,
    password_hasher,
    mock_user_repository,
    mock_role_repository,
    mock_permission_repository,
    mock_audit_service,
):
    engine = AuthorizationEngine()
    token_service = TokenService()

    app.dependency_overrides[get_current_user] = lambda: current["user"]
    app.dependency_overrides[get_authorization_engine] = lambda: engine
    app.dependency_overrides[get_audit_service] = lambda: mock_audit_service
    app.dependency_overrides[get_authentication_service] = lambda: AuthenticationService(
        mock_user_repository,
        mock_audit_service,
        token_service=token_service,
        password_hasher=password_hasher,
        engine=engine,
    )
    app.dependency_overrides[get_user_service] = lambda: UserService(
        mock_user_repository,
        mock_role_repository,
        mock_audit_service,
        engine=engine,
        password_hasher=password_hasher,
    )
    app.dependency_overrides[get_role_service] = lambda: RoleService(
        mock_role_repository,
        mock_permission_repository,
        mock_audit_service,
        engine=engine,
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestAuthEndpoints:
    """Login, refresh and profile."""

    @pytest.mark.asyncio
    async def test_login_success(self, client, mock_user_repository, student_user):
        mock_user_repository.get_by_email.return_value = student_user

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": student_user.email, "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "Bearer"
        assert data["user"]["roles"] == ["STUDENT"]
        assert data["user"]["permissions"] == ["TAKE_TESTS", "VIEW_OWN_SCORES", "VIEW_TESTS"]
        assert data["access_token"] and data["refresh_token"]

    @pytest.mark.asyncio
    async def test_login_wrong_password_and_unknown_user_look_alike(self, client, mock_user_repository, student_user):
        """Test both failures answer 401 with the same detail."""
        mock_user_repository.get_by_email.return_value = student_user
        wrong_password = await client.post(
            f"{API}/auth/login",
            json={"identifier": student_user.email, "password": "nope"},
        )

        mock_user_repository.get_by_email.return_value = None
        mock_user_repository.get_by_username.return_value = None
        unknown = await client.post(
            f"{API}/auth/login",
            json={"identifier": "ghost", "password": TEST_PASSWORD},
        )

        assert wrong_password.status_code == unknown.status_code == 401
        assert wrong_password.json() == unknown.json() == {"detail": "Invalid credentials"}

    @pytest.mark.asyncio
    async def test_login_inactive_account(self, client, mock_user_repository):
        mock_user_repository.get_by_email.return_value = make_user("STUDENT", is_active=False)

        response = await client.post(f"{API}/auth/login", json={"identifier": "x", "password": TEST_PASSWORD})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_refresh_with_access_token_rejected(self, client):
        token = TokenService().create_access_token(uuid4(), "x@edulingua.test", "x", [], [])

        response = await client.post(f"{API}/auth/refresh", json={"refresh_token": token})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired refresh token"

    @pytest.mark.asyncio
    async def test_validate(self, client):
        token = TokenService().create_access_token(uuid4(), "x@edulingua.test", "x", [], [])

        valid = await client.post(f"{API}/auth/validate", json={"token": token})
        invalid = await client.post(f"{API}/auth/validate", json={"token": "garbage"})

        assert valid.json() == {"valid": True}
        assert invalid.json() == {"valid": False}

    @pytest.mark.asyncio
    async def test_me(self, client, school_user):
        response = await client.get(f"{API}/auth/me")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(school_user.id)
        assert data["roles"] == ["SCHOOL"]
        assert data["school_code"] == "SCH001"

    @pytest.mark.asyncio
    async def test_me_without_token_is_401(self, client):
        """Test the bearer challenge when no credentials are sent."""
        app.dependency_overrides.pop(get_current_user)
        app.dependency_overrides[get_db] = lambda: AsyncMock()

        response = await client.get(f"{API}/auth/me")

        assert response.status_code == 401
        assert response.json() == {"detail": "Authentication required"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_me_with_bad_token_is_401(self, client):
        app.dependency_overrides.pop(get_current_user)
        app.dependency_overrides[get_db] = lambda: AsyncMock()

        response = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Could not validate credentials"}
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestUserEndpoints:
    """Domain errors map to HTTP statuses."""

    @pytest.mark.asyncio
    async def test_create_user(self, client, mock_user_repository, mock_role_repository):
        mock_user_repository.exists_by_email.return_value = False
        mock_user_repository.exists_by_username.return_value = False
        mock_role_repository.get_by_names.return_value = [make_role("STUDENT")]

        def insert(user):
            user.id = user.id or uuid4()
            return user

        mock_user_repository.save.side_effect = insert

        response = await client.post(
            f"{API}/users",
            json={
                "email": "pupil@edulingua.org",
                "username": "pupil",
                "name": "Pupil",
                "password": "Pupil@1234",
                "roles": ["STUDENT"],
                "state_code": "KA",
                "district_code": "BLR",
                "school_code": "SCH001",
                "class_code": "10A",
            },
        )

        assert response.status_code == 201
        assert response.json()["roles"] == ["STUDENT"]

    @pytest.mark.asyncio
    async def test_create_user_weak_password_is_422(self, client, mock_user_repository):
        response = await client.post(
            f"{API}/users",
            json={
                "email": "pupil@edulingua.org",
                "username": "pupil",
                "name": "Pupil",
                "password": "password123",
                "roles": ["STUDENT"],
                "state_code": "ka",
            },
        )

        assert response.status_code == 422
        fields = {error["loc"][-1] for error in response.json()["detail"]}
        assert fields == {"password", "state_code"}
        mock_user_repository.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_hierarchy_denial_is_403(self, client, mock_user_repository):
        outsider = make_user("STUDENT", school_code="SCH999")
        mock_user_repository.get.return_value = outsider

        response = await client.get(f"{API}/users/{outsider.id}")

        assert response.status_code == 403
        assert "organizational hierarchy" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_missing_user_is_404(self, client, mock_user_repository):
        mock_user_repository.get.return_value = None

        response = await client.get(f"{API}/users/{uuid4()}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_validation_error_is_422_with_field(self, client, current, admin_user):
        current["user"] = admin_user

        response = await client.get(f"{API}/users/scope", params={"class_code": "10A"})

        assert response.status_code == 422
        assert response.json() == {"detail": "class_code requires school_code", "field": "class_code"}

    @pytest.mark.asyncio
    async def test_delete_user(self, client, current, admin_user, mock_user_repository, student_user):
        current["user"] = admin_user
        mock_user_repository.get.return_value = student_user

        response = await client.delete(f"{API}/users/{student_user.id}")

        assert response.status_code == 204
        mock_user_repository.delete.assert_awaited_once_with(student_user.id)


class TestRoleAndAuditEndpoints:

    @pytest.mark.asyncio
    async def test_school_cannot_list_roles(self, client):
        response = await client.get(f"{API}/roles")

        assert response.status_code == 403
        assert response.json()["detail"] == "Required permission: VIEW_ROLES"

    @pytest.mark.asyncio
    async def test_admin_lists_roles(self, client, current, admin_user, mock_role_repository):
        current["user"] = admin_user
        mock_role_repository.list_all.return_value = [make_role("STUDENT")]

        response = await client.get(f"{API}/roles")

        assert response.status_code == 200
        [role] = response.json()
        assert role["name"] == "STUDENT"
        assert role["permissions"] == ["TAKE_TESTS", "VIEW_OWN_SCORES", "VIEW_TESTS"]

    @pytest.mark.asyncio
    async def test_audit_requires_permission(self, client):
        response = await client.get(f"{API}/audit/recent")

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_reads_audit(self, client, current, admin_user, mock_audit_service):
        current["user"] = admin_user
        mock_audit_service.get_recent_audit_logs = AsyncMock(return_value=[])

        response = await client.get(f"{API}/audit/recent")

        assert response.status_code == 200
        assert response.json() == []


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get(f"{API}/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

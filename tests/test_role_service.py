"""
Tests for RoleService.
"""
from uuid import uuid4

import pytest

from app.core.exceptions import (
    PermissionAlreadyExistsError,
    PermissionDeniedError,
    PermissionNotFoundError,
    RoleAlreadyExistsError,
    RoleNotFoundError,
    ValidationError,
)
from app.domain.schemas.audit import AuditAction
from app.domain.schemas.role import PermissionCreate, PermissionUpdate, RoleCreate, RoleUpdate
from app.infrastructure.database.models import Permission
from app.services.auth.authorization.permissions import PermissionAction
from app.services.role import RoleService
from tests.fixtures.auth import make_permission, make_role


@pytest.fixture
def role_service(mock_role_repository, mock_permission_repository, mock_audit_service):
    mock_role_repository.exists_by_name.return_value = False
    mock_permission_repository.exists_by_name.return_value = False
    mock_permission_repository.get_by_names.side_effect = lambda names: [
        make_permission(name) for name in names if name != "MISSING"
    ]
    return RoleService(
        role_repository=mock_role_repository,
        permission_repository=mock_permission_repository,
        audit_service=mock_audit_service,
    )


def _actions(audit) -> list:
    return [call.kwargs["action"] for call in audit.record.call_args_list]


class TestRoles:
    """Role lifecycle."""

    @pytest.mark.asyncio
    async def test_create_role_with_permissions(self, role_service, mock_role_repository, mock_audit_service, admin_user):
        # Act
        role = await role_service.create_role(
            admin_user,
            RoleCreate(name="PROCTOR", description="Invigilates tests", permissions=["VIEW_TESTS"]),
        )

        # Assert
        assert role.name == "PROCTOR"
        assert {permission.name for permission in role.permissions} == {"VIEW_TESTS"}
        mock_role_repository.save.assert_awaited_once()
        assert _actions(mock_audit_service) == [AuditAction.ROLE_CREATE]

    @pytest.mark.asyncio
    async def test_create_role_needs_permission(self, role_service, state_user):
        with pytest.raises(PermissionDeniedError, match="CREATE_ROLES"):
            await role_service.create_role(state_user, RoleCreate(name="PROCTOR"))

    @pytest.mark.asyncio
    async def test_create_duplicate_role(self, role_service, mock_role_repository, admin_user):
        mock_role_repository.exists_by_name.return_value = True

        with pytest.raises(RoleAlreadyExistsError, match="Role already exists: STUDENT"):
            await role_service.create_role(admin_user, RoleCreate(name="STUDENT"))

    @pytest.mark.asyncio
    async def test_create_with_unknown_permission(self, role_service, mock_role_repository, admin_user):
        with pytest.raises(PermissionNotFoundError, match="MISSING"):
            await role_service.create_role(admin_user, RoleCreate(name="PROCTOR", permissions=["MISSING"]))

        mock_role_repository.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_rename_custom_role(self, role_service, mock_role_repository, admin_user):
        mock_role_repository.get.return_value = make_role("PROCTOR", [])

        role = await role_service.update_role(admin_user, uuid4(), RoleUpdate(name="INVIGILATOR"))

        assert role.name == "INVIGILATOR"

    @pytest.mark.asyncio
    async def test_builtin_role_cannot_be_renamed(self, role_service, mock_role_repository, admin_user):
        mock_role_repository.get.return_value = make_role("CLASS")

        with pytest.raises(ValidationError, match="cannot be renamed"):
            await role_service.update_role(admin_user, uuid4(), RoleUpdate(name="TEACHER"))

    @pytest.mark.asyncio
    async def test_builtin_role_description_can_change(self, role_service, mock_role_repository, admin_user):
        mock_role_repository.get.return_value = make_role("CLASS")

        role = await role_service.update_role(admin_user, uuid4(), RoleUpdate(description="Teacher"))

        assert role.name == "CLASS"
        assert role.description == "Teacher"

    @pytest.mark.asyncio
    async def test_delete_custom_role(self, role_service, mock_role_repository, mock_audit_service, admin_user):
        role = make_role("PROCTOR", [])
        mock_role_repository.get.return_value = role

        await role_service.delete_role(admin_user, role.id)

        mock_role_repository.delete.assert_awaited_once_with(role.id)
        assert _actions(mock_audit_service) == [AuditAction.ROLE_DELETE]

    @pytest.mark.asyncio
    async def test_builtin_role_cannot_be_deleted(self, role_service, mock_role_repository, admin_user):
        mock_role_repository.get.return_value = make_role("STUDENT")

        with pytest.raises(ValidationError, match="cannot be deleted"):
            await role_service.delete_role(admin_user, uuid4())

    @pytest.mark.asyncio
    async def test_missing_role(self, role_service, mock_role_repository, admin_user):
        mock_role_repository.get.return_value = None
        mock_role_repository.get_by_name.return_value = None

        with pytest.raises(RoleNotFoundError):
            await role_service.get_role(admin_user, uuid4())
        with pytest.raises(RoleNotFoundError, match="Role not found: NOPE"):
            await role_service.get_role_by_name(admin_user, "NOPE")


class TestGrants:
    """Role to permission grants."""

    @pytest.mark.asyncio
    async def test_replace_permissions_audits_diff(self, role_service, mock_role_repository, mock_audit_service, admin_user):
        """Test one grant or revoke record per changed permission."""
        # Arrange
        role = make_role("PROCTOR", ["VIEW_TESTS", "VIEW_SCORES"])
        mock_role_repository.get.return_value = role

        # Act
        result = await role_service.replace_permissions(admin_user, role.id, ["VIEW_TESTS", "TAKE_TESTS"])

        # Assert
        assert {permission.name for permission in result.permissions} == {"VIEW_TESTS", "TAKE_TESTS"}
        assert _actions(mock_audit_service) == [AuditAction.PERMISSION_GRANT, AuditAction.PERMISSION_REVOKE]

    @pytest.mark.asyncio
    async def test_replace_with_empty_set(self, role_service, mock_role_repository, admin_user):
        role = make_role("PROCTOR", ["VIEW_TESTS"])
        mock_role_repository.get.return_value = role

        result = await role_service.replace_permissions(admin_user, role.id, [])

        assert result.permissions == set()

    @pytest.mark.asyncio
    async def test_add_and_remove_single_permission(
        self, role_service, mock_role_repository, mock_permission_repository, mock_audit_service, admin_user
    ):
        role = make_role("PROCTOR", [])
        mock_role_repository.get.return_value = role
        permission = make_permission("VIEW_TESTS", "tests", "READ")
        mock_permission_repository.get_by_name.return_value = permission

        await role_service.add_permission(admin_user, role.id, "VIEW_TESTS")
        await role_service.add_permission(admin_user, role.id, "VIEW_TESTS")
        assert role.permissions == {permission}
        assert await role_service.role_has_permission(admin_user, role.id, "VIEW_TESTS")

        await role_service.remove_permission(admin_user, role.id, "VIEW_TESTS")
        await role_service.remove_permission(admin_user, role.id, "VIEW_TESTS")
        assert role.permissions == set()

        assert _actions(mock_audit_service) == [AuditAction.PERMISSION_GRANT, AuditAction.PERMISSION_REVOKE]

    @pytest.mark.asyncio
    async def test_grants_need_manage_permissions(self, role_service, school_user):
        with pytest.raises(PermissionDeniedError, match="MANAGE_PERMISSIONS"):
            await role_service.replace_permissions(school_user, uuid4(), [])

    @pytest.mark.asyncio
    async def test_role_permissions_sorted(self, role_service, mock_role_repository, admin_user):
        mock_role_repository.get.return_value = make_role("STUDENT")

        permissions = await role_service.get_role_permissions(admin_user, uuid4())

        assert [permission.name for permission in permissions] == ["TAKE_TESTS", "VIEW_OWN_SCORES", "VIEW_TESTS"]


class TestPermissions:
    """Permission catalog."""

    @pytest.mark.asyncio
    async def test_create_permission(self, role_service, mock_permission_repository, mock_audit_service, admin_user):
        mock_permission_repository.create.side_effect = lambda data: Permission(id=uuid4(), **data)

        permission = await role_service.create_permission(
            admin_user,
            PermissionCreate(name="PUBLISH_TESTS", resource="tests", action=PermissionAction.EXECUTE),
        )

        assert permission.action == "EXECUTE"
        assert _actions(mock_audit_service) == [AuditAction.PERMISSION_CREATE]

    @pytest.mark.asyncio
    async def test_create_duplicate_permission(self, role_service, mock_permission_repository, admin_user):
        mock_permission_repository.exists_by_name.return_value = True

        with pytest.raises(PermissionAlreadyExistsError):
            await role_service.create_permission(
                admin_user,
                PermissionCreate(name="VIEW_TESTS", resource="tests", action=PermissionAction.READ),
            )

    @pytest.mark.asyncio
    async def test_update_permission_action(self, role_service, mock_permission_repository, admin_user):
        permission = make_permission("VIEW_TESTS", "tests", "READ")
        mock_permission_repository.get.return_value = permission

        result = await role_service.update_permission(
            admin_user, permission.id, PermissionUpdate(action=PermissionAction.WRITE)
        )

        assert result.action == "WRITE"
        assert result.resource == "tests"

    @pytest.mark.asyncio
    async def test_list_permissions_needs_view_roles(self, role_service, school_user):
        """Test SCHOOL cannot browse the catalog."""
        with pytest.raises(PermissionDeniedError):
            await role_service.list_permissions(school_user)

    @pytest.mark.asyncio
    async def test_list_permissions_passes_filters(self, role_service, mock_permission_repository, admin_user):
        mock_permission_repository.list_filtered.return_value = []

        await role_service.list_permissions(admin_user, resource="tests", action=PermissionAction.READ)

        mock_permission_repository.list_filtered.assert_awaited_once_with(resource="tests", action="READ")

    @pytest.mark.asyncio
    async def test_delete_permission(self, role_service, mock_permission_repository, mock_audit_service, admin_user):
        permission = make_permission("OLD")
        mock_permission_repository.get.return_value = permission

        await role_service.delete_permission(admin_user, permission.id)

        mock_permission_repository.delete.assert_awaited_once_with(permission.id)
        assert _actions(mock_audit_service) == [AuditAction.PERMISSION_DELETE]

    @pytest.mark.asyncio
    async def test_statistics(self, role_service, mock_role_repository, mock_permission_repository, admin_user):
        mock_role_repository.list_all.return_value = [make_role("STUDENT"), make_role("EMPTY", [])]
        mock_permission_repository.count.return_value = 26
        mock_permission_repository.count_by_resource.return_value = {"tests": 5}

        stats = await role_service.get_role_statistics(admin_user)

        assert stats.total_roles == 2
        assert stats.roles_with_permissions == 1
        assert stats.total_permissions == 26

"""
Tests for the hierarchical authorization engine.

Covers permission and role checks, hierarchy levels, the ordered
can-manage rules and scope access with and without a containment index.
"""
import pytest

from app.core.exceptions import PermissionDeniedError
from app.services.auth.authorization.engine import AuthorizationEngine
from app.services.auth.authorization.permissions import PermissionName
from app.services.auth.authorization.rbac import HierarchyLevel, SystemRole
from tests.fixtures.auth import make_role, make_user


class TestPermissionChecks:
    """Permission and role predicates."""

    def test_admin_has_every_seeded_permission(self, engine, admin_user):
        """Test ADMIN holds the whole catalog."""
        for permission in PermissionName:
            assert engine.has_permission(admin_user, permission)

    def test_student_permissions(self, engine, student_user):
        """Test STUDENT holds exactly its three seeded grants."""
        assert engine.get_user_permissions(student_user) == [
            "TAKE_TESTS",
            "VIEW_OWN_SCORES",
            "VIEW_TESTS",
        ]
        assert not engine.has_permission(student_user, "VIEW_USERS")

    def test_permissions_union_is_deduplicated_and_sorted(self, engine):
        """Test permissions from overlapping roles are merged once."""
        # Arrange
        user = make_user()
        user.roles = {
            make_role("A", ["VIEW_TESTS", "CREATE_TESTS"]),
            make_role("B", ["VIEW_TESTS", "TAKE_TESTS"]),
        }

        # Act
        permissions = engine.get_user_permissions(user)

        # Assert
        assert permissions == ["CREATE_TESTS", "TAKE_TESTS", "VIEW_TESTS"]

    def test_user_without_roles_has_nothing(self, engine):
        """Test an account with no roles holds no permissions."""
        user = make_user()

        assert engine.get_user_permissions(user) == []
        assert not engine.has_permission(user, "VIEW_TESTS")
        assert engine.get_role_level(user) == HierarchyLevel.UNKNOWN

    def test_has_resource_permission_requires_exact_action(self, engine, class_user):
        """Test WRITE on scores does not imply DELETE on scores."""
        assert engine.has_resource_permission(class_user, "scores", "WRITE")
        assert engine.has_resource_permission(class_user, "scores", "READ")
        assert not engine.has_resource_permission(class_user, "scores", "DELETE")

    def test_any_and_all_permissions(self, engine, school_user):
        """Test any/all combinators."""
        assert engine.has_any_permission(school_user, "DELETE_USERS", "VIEW_USERS")
        assert not engine.has_any_permission(school_user, "DELETE_USERS", "MANAGE_ROLES")
        assert engine.has_all_permissions(school_user, "VIEW_USERS", "CREATE_USERS")
        assert not engine.has_all_permissions(school_user, "VIEW_USERS", "DELETE_USERS")

    def test_has_role_and_is_admin(self, engine, admin_user, state_user):
        """Test role membership checks accept enums and strings."""
        assert engine.has_role(state_user, SystemRole.STATE)
        assert engine.has_role(state_user, "STATE")
        assert engine.is_admin(admin_user)
        assert not engine.is_admin(state_user)


class TestHierarchyLevels:
    """Role levels and privilege comparison."""

    def test_level_of_each_system_role(self, engine):
        """Test every system role maps to its level."""
        for role in SystemRole:
            user = make_user(role.value)
            assert engine.get_role_level(user) == HierarchyLevel[role.name]

    def test_most_privileged_role_wins(self, engine):
        """Test a user holding several roles gets the lowest level."""
        user = make_user("STUDENT", "SCHOOL")

        assert engine.get_role_level(user) == HierarchyLevel.SCHOOL

    def test_custom_role_is_unknown_level(self, engine):
        """Test roles created at runtime sit below the hierarchy."""
        user = make_user()
        user.roles = {make_role("PROCTOR", ["VIEW_TESTS"])}

        assert engine.get_role_level(user) == HierarchyLevel.UNKNOWN

    def test_has_higher_privilege(self, engine, state_user, student_user):
        """Test strict comparison of levels."""
        assert engine.has_higher_privilege(state_user, student_user)
        assert not engine.has_higher_privilege(student_user, state_user)
        assert not engine.has_higher_privilege(state_user, state_user)


class TestCanManageUser:
    """Ordered organizational management rules."""

    def test_admin_manages_anyone(self, engine, admin_user, state_user):
        """Test ADMIN bypasses scope entirely."""
        assert engine.can_manage_user(admin_user, state_user)
        assert engine.can_manage_user(admin_user, make_user())

    def test_state_manages_same_state(self, engine, state_user, student_user):
        """Test STATE reaches everyone in its state."""
        other_state = make_user("STUDENT", state_code="TN")

        assert engine.can_manage_user(state_user, student_user)
        assert not engine.can_manage_user(state_user, other_state)

    def test_state_without_code_manages_nobody(self, engine):
        """Test a null state never matches a null target state."""
        manager = make_user("STATE")
        target = make_user("STUDENT")

        assert not engine.can_manage_user(manager, target)

    def test_district_needs_state_and_district(self, engine, district_user, student_user):
        """Test DISTRICT matches on both codes."""
        same_district_other_state = make_user("STUDENT", state_code="TN", district_code="BLR")

        assert engine.can_manage_user(district_user, student_user)
        assert not engine.can_manage_user(district_user, same_district_other_state)

    def test_school_manages_same_school(self, engine, school_user, class_user):
        """Test SCHOOL reaches teachers and students of its school."""
        other_school = make_user("STUDENT", school_code="SCH002")

        assert engine.can_manage_user(school_user, class_user)
        assert not engine.can_manage_user(school_user, other_school)

    def test_class_manages_only_students_of_its_class(self, engine, class_user, student_user):
        """Test CLASS reaches students in the same school and class only."""
        other_teacher = make_user("CLASS", school_code="SCH001", class_code="10A")
        other_class = make_user("STUDENT", school_code="SCH001", class_code="10B")
        other_school = make_user("STUDENT", school_code="SCH002", class_code="10A")

        assert engine.can_manage_user(class_user, student_user)
        assert not engine.can_manage_user(class_user, other_teacher)
        assert not engine.can_manage_user(class_user, other_class)
        assert not engine.can_manage_user(class_user, other_school)

    def test_student_manages_nobody(self, engine, student_user):
        """Test STUDENT has no management reach, even over itself."""
        peer = make_user("STUDENT", school_code="SCH001", class_code="10A")

        assert not engine.can_manage_user(student_user, peer)
        assert not engine.can_manage_user(student_user, student_user)

    def test_first_applicable_rule_decides(self, engine):
        """Test a STATE+CLASS user is judged by the STATE rule only."""
        # Arrange
        manager = make_user("STATE", "CLASS", state_code="KA", school_code="SCH001", class_code="10A")
        student_elsewhere = make_user("STUDENT", state_code="TN", school_code="SCH001", class_code="10A")

        # Act / Assert
        assert not engine.can_manage_user(manager, student_elsewhere)

    def test_require_can_manage_user_message(self, engine, class_user, state_user):
        """Test the denial carries the hierarchy message."""
        with pytest.raises(PermissionDeniedError) as exc_info:
            engine.require_can_manage_user(class_user, state_user)

        assert exc_info.value.message == (
            "You don't have permission to manage this user based on organizational hierarchy"
        )
        assert exc_info.value.status_code == 403


class TestScopeAccessLegacy:
    """Scope access without a containment index."""

    def test_state_access(self, engine, state_user, school_user):
        assert engine.can_access_state(state_user, "KA")
        assert not engine.can_access_state(state_user, "TN")
        assert engine.can_access_state(school_user, "KA")

    def test_state_user_reaches_any_district_and_school(self, engine, state_user):
        """Test STATE is trusted with every lower scope without an index."""
        assert engine.can_access_district(state_user, "ANYWHERE")
        assert engine.can_access_school(state_user, "SCH999")
        assert engine.can_access_class(state_user, "SCH999", "1A")

    def test_district_user_reaches_any_school(self, engine, district_user):
        assert engine.can_access_district(district_user, "BLR")
        assert not engine.can_access_district(district_user, "MYS")
        assert engine.can_access_school(district_user, "SCH999")

    def test_school_and_class_users(self, engine, school_user, class_user, student_user):
        """Test lower roles match their own codes."""
        assert engine.can_access_school(school_user, "SCH001")
        assert not engine.can_access_school(school_user, "SCH002")
        assert engine.can_access_class(school_user, "SCH001", "ANY")
        assert engine.can_access_class(class_user, "SCH001", "10A")
        assert not engine.can_access_class(class_user, "SCH001", "10B")
        assert engine.can_access_class(student_user, "SCH001", "10A")

    def test_user_without_roles_has_no_class_access(self, engine):
        user = make_user(school_code="SCH001", class_code="10A")

        assert not engine.can_access_class(user, "SCH001", "10A")

    def test_admin_reaches_everything(self, engine, admin_user):
        assert engine.can_access_state(admin_user, "TN")
        assert engine.can_access_district(admin_user, "CHN")
        assert engine.can_access_school(admin_user, "SCH101")
        assert engine.can_access_class(admin_user, "SCH101", "1A")


class TestScopeAccessStrict:
    """Scope access with a containment index."""

    def test_state_user_limited_to_its_districts(self, strict_engine, state_user):
        assert strict_engine.can_access_district(state_user, "BLR")
        assert strict_engine.can_access_district(state_user, "MYS")
        assert not strict_engine.can_access_district(state_user, "CHN")
        assert not strict_engine.can_access_district(state_user, "UNKNOWN")

    def test_state_user_limited_to_its_schools(self, strict_engine, state_user):
        assert strict_engine.can_access_school(state_user, "SCH003")
        assert not strict_engine.can_access_school(state_user, "SCH101")
        assert not strict_engine.can_access_class(state_user, "SCH101", "1A")

    def test_district_user_limited_to_its_schools(self, strict_engine, district_user):
        assert strict_engine.can_access_school(district_user, "SCH001")
        assert strict_engine.can_access_school(district_user, "SCH002")
        assert not strict_engine.can_access_school(district_user, "SCH003")
        assert strict_engine.can_access_class(district_user, "SCH002", "9C")


class TestRequireVariants:
    """Raising checks and their messages."""

    def test_require_permission(self, engine, student_user):
        with pytest.raises(PermissionDeniedError, match="Required permission: VIEW_USERS"):
            engine.require_permission(student_user, PermissionName.VIEW_USERS)

    def test_require_any_permission(self, engine, student_user):
        with pytest.raises(PermissionDeniedError, match="Required one of permissions: VIEW_USERS, DELETE_USERS"):
            engine.require_any_permission(student_user, "VIEW_USERS", "DELETE_USERS")

    def test_require_all_permissions(self, engine, school_user):
        with pytest.raises(PermissionDeniedError, match="Required all permissions: VIEW_USERS, DELETE_USERS"):
            engine.require_all_permissions(school_user, "VIEW_USERS", "DELETE_USERS")

    def test_require_role_and_admin(self, engine, school_user):
        with pytest.raises(PermissionDeniedError, match="Required role: STATE"):
            engine.require_role(school_user, SystemRole.STATE)
        with pytest.raises(PermissionDeniedError, match="Admin access required"):
            engine.require_admin(school_user)

    def test_require_scope_messages(self, engine, school_user):
        with pytest.raises(PermissionDeniedError, match="You don't have access to state: TN"):
            engine.require_can_access_state(school_user, "TN")
        with pytest.raises(PermissionDeniedError, match="You don't have access to district: MYS"):
            engine.require_can_access_district(school_user, "MYS")
        with pytest.raises(PermissionDeniedError, match="You don't have access to school: SCH002"):
            engine.require_can_access_school(school_user, "SCH002")

    def test_require_class_message(self, engine, class_user):
        with pytest.raises(PermissionDeniedError) as exc_info:
            engine.require_can_access_class(class_user, "SCH001", "10B")

        assert exc_info.value.message == "You don't have access to class: 10B in school: SCH001"

    def test_require_self_or_manager(self, engine, student_user, class_user):
        """Test owners pass without any management rights."""
        engine.require_self_or_manager(student_user, student_user)
        engine.require_self_or_manager(class_user, student_user)

        with pytest.raises(PermissionDeniedError):
            engine.require_self_or_manager(student_user, class_user)

    def test_passing_checks_return_none(self, engine, admin_user, student_user):
        assert engine.require_permission(admin_user, "DELETE_USERS") is None
        assert engine.require_can_manage_user(admin_user, student_user) is None


class TestOwnership:

    def test_is_resource_owner(self, student_user):
        assert AuthorizationEngine.is_resource_owner(student_user.id, student_user.id)
        assert not AuthorizationEngine.can_edit_own_profile(student_user.id, None)


SCOPED_ROLES = ["STATE", "DISTRICT", "SCHOOL", "CLASS"]
KA_TREE = {"state_code": "KA", "district_code": "BLR", "school_code": "SCH001", "class_code": "10A"}
TN_TREE = {"state_code": "TN", "district_code": "CHN", "school_code": "SCH101", "class_code": "9B"}
SCOPE_DEPTH = {"STATE": 1, "DISTRICT": 2, "SCHOOL": 3, "CLASS": 4, "STUDENT": 4}


def placed(role_name: str, tree: dict):
    """User holding ``role_name`` with the scope codes that role carries."""
    codes = dict(list(tree.items())[: SCOPE_DEPTH[role_name]])
    return make_user(role_name, **codes)


class TestDisjointScopes:
    """Scoped roles in unrelated branches never manage each other."""

    @pytest.mark.parametrize("manager_role", SCOPED_ROLES)
    @pytest.mark.parametrize("target_role", SCOPED_ROLES + ["STUDENT"])
    @pytest.mark.parametrize("indexed", [False, True])
    def test_no_management_across_branches(
        self, engine, strict_engine, manager_role, target_role, indexed
    ):
        checker = strict_engine if indexed else engine
        ka_manager = placed(manager_role, KA_TREE)
        tn_manager = placed(manager_role, TN_TREE)

        assert not checker.can_manage_user(ka_manager, placed(target_role, TN_TREE))
        assert not checker.can_manage_user(tn_manager, placed(target_role, KA_TREE))

    @pytest.mark.parametrize("role_name", SCOPED_ROLES)
    def test_same_role_peers_in_other_branch(self, engine, role_name):
        ka_user = placed(role_name, KA_TREE)
        tn_user = placed(role_name, TN_TREE)

        assert not engine.can_manage_user(ka_user, tn_user)
        assert not engine.can_manage_user(tn_user, ka_user)

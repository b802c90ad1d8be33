"""
Hierarchical authorization engine.

Pure decision functions over already-resolved users. Nothing here touches
the database, a clock or the network; predicates never raise, and the
``require_*`` variants raise ``PermissionDeniedError`` instead of returning
False.

A "user" is anything exposing ``id``, ``roles`` (each with ``name`` and
``permissions``, each permission with ``name``, ``resource``, ``action``)
and the scope fields ``state_code``, ``district_code``, ``school_code`` and
``class_code``. ORM ``User`` rows qualify, as do plain test doubles.
"""

from __future__ import annotations

from typing import Any, List, Optional

import structlog

from app.core.exceptions import PermissionDeniedError

from .hierarchy import ScopeIndex
from .rbac import HierarchyLevel, SystemRole, best_level

logger = structlog.get_logger(__name__)


def _value(item: Any) -> Any:
    return getattr(item, "value", item)


def _iter_permissions(user: Any):
    for role in user.roles or ():
        yield from role.permissions or ()


class AuthorizationEngine:
    """
    Answers "may this user do that" from roles, permissions and scope codes.

    Args:
        scope_index: Containment table used by the district and school
            access checks for STATE and DISTRICT users. Without one, those
            users are granted every lower scope, matching the historical
            behavior of the platform.
    """

    def __init__(self, scope_index: Optional[ScopeIndex] = None):
        self.scope_index = scope_index

    # Permission and role checks

    def has_permission(self, user: Any, permission_name: str) -> bool:
        name = _value(permission_name)
        return any(permission.name == name for permission in _iter_permissions(user))

    def has_resource_permission(self, user: Any, resource: str, action: str) -> bool:
        """Exact match on both resource and action."""
        resource, action = _value(resource), _value(action)
        return any(
            _value(permission.resource) == resource and _value(permission.action) == action
            for permission in _iter_permissions(user)
        )

    def has_any_permission(self, user: Any, *permission_names: str) -> bool:
        return any(self.has_permission(user, name) for name in permission_names)

    def has_all_permissions(self, user: Any, *permission_names: str) -> bool:
        return all(self.has_permission(user, name) for name in permission_names)

    def has_role(self, user: Any, role_name: str) -> bool:
        name = _value(role_name)
        return any(role.name == name for role in user.roles or ())

    def is_admin(self, user: Any) -> bool:
        return self.has_role(user, SystemRole.ADMIN)

    def get_role_level(self, user: Any) -> HierarchyLevel:
        """Most privileged hierarchy level across the user's roles."""
        return best_level(role.name for role in user.roles or ())

    def has_higher_privilege(self, manager: Any, target: Any) -> bool:
        return self.get_role_level(manager) < self.get_role_level(target)

    def get_user_permissions(self, user: Any) -> List[str]:
        """Deduplicated, sorted union of permission names over all roles."""
        return sorted({permission.name for permission in _iter_permissions(user)})

    # Hierarchy checks

    def can_manage_user(self, manager: Any, target: Any) -> bool:
        """
        Check whether ``manager`` may read or modify ``target``'s account.

        Rules are evaluated in order and the first applicable one decides:

        1. ADMIN manages everyone.
        2. STATE manages users in the same (non-null) state.
        3. DISTRICT manages users in the same state and same (non-null)
           district.
        4. SCHOOL manages users in the same (non-null) school.
        5. CLASS manages STUDENT users in the same school and same
           (non-null) class.

        Anyone else manages nobody.
        """
        if self.is_admin(manager):
            return True

        if self.has_role(manager, SystemRole.STATE):
            return manager.state_code is not None and manager.state_code == target.state_code

        if self.has_role(manager, SystemRole.DISTRICT):
            return (
                manager.state_code == target.state_code
                and manager.district_code is not None
                and manager.district_code == target.district_code
            )

        if self.has_role(manager, SystemRole.SCHOOL):
            return manager.school_code is not None and manager.school_code == target.school_code

        if self.has_role(manager, SystemRole.CLASS):
            return (
                manager.school_code == target.school_code
                and manager.class_code is not None
                and manager.class_code == target.class_code
                and self.has_role(target, SystemRole.STUDENT)
            )

        return False

    def can_access_state(self, user: Any, state_code: str) -> bool:
        if self.is_admin(user):
            return True
        return user.state_code == state_code

    def can_access_district(self, user: Any, district_code: str) -> bool:
        if self.is_admin(user):
            return True

        if self.has_role(user, SystemRole.STATE) and user.state_code is not None:
            if self.scope_index is None:
                return True
            return self.scope_index.district_in_state(district_code, user.state_code)

        return user.district_code == district_code

    def can_access_school(self, user: Any, school_code: str) -> bool:
        if self.is_admin(user):
            return True

        if self.has_role(user, SystemRole.STATE):
            if self.scope_index is None:
                return True
            return self.scope_index.school_in_state(school_code, user.state_code)

        if self.has_role(user, SystemRole.DISTRICT):
            if self.scope_index is None:
                return True
            return self.scope_index.school_in_district(school_code, user.district_code)

        return user.school_code == school_code

    def can_access_class(self, user: Any, school_code: str, class_code: str) -> bool:
        if self.is_admin(user):
            return True

        if self.has_role(user, SystemRole.STATE) or self.has_role(user, SystemRole.DISTRICT):
            return self.can_access_school(user, school_code)

        if self.has_role(user, SystemRole.SCHOOL):
            return user.school_code == school_code

        if self.has_role(user, SystemRole.CLASS) or self.has_role(user, SystemRole.STUDENT):
            return user.school_code == school_code and user.class_code == class_code

        return False

    # Ownership

    @staticmethod
    def is_resource_owner(user_id: Any, resource_user_id: Any) -> bool:
        return user_id == resource_user_id

    can_edit_own_profile = is_resource_owner

    # Raising variants

    def _deny(self, user: Any, check: str, message: str) -> None:
        logger.info(
            "authorization_denied",
            user_id=str(getattr(user, "id", None)),
            check=check,
        )
        raise PermissionDeniedError(message)

    def require_permission(self, user: Any, permission_name: str) -> None:
        if not self.has_permission(user, permission_name):
            self._deny(user, "permission", f"Required permission: {_value(permission_name)}")

    def require_any_permission(self, user: Any, *permission_names: str) -> None:
        if not self.has_any_permission(user, *permission_names):
            names = ", ".join(_value(name) for name in permission_names)
            self._deny(user, "any_permission", f"Required one of permissions: {names}")

    def require_all_permissions(self, user: Any, *permission_names: str) -> None:
        if not self.has_all_permissions(user, *permission_names):
            names = ", ".join(_value(name) for name in permission_names)
            self._deny(user, "all_permissions", f"Required all permissions: {names}")

    def require_role(self, user: Any, role_name: str) -> None:
        if not self.has_role(user, role_name):
            self._deny(user, "role", f"Required role: {_value(role_name)}")

    def require_admin(self, user: Any) -> None:
        if not self.is_admin(user):
            self._deny(user, "admin", "Admin access required")

    def require_can_manage_user(self, manager: Any, target: Any) -> None:
        if not self.can_manage_user(manager, target):
            self._deny(
                manager,
                "manage_user",
                "You don't have permission to manage this user based on organizational hierarchy",
            )

    def require_self_or_manager(self, actor: Any, target: Any) -> None:
        """Allow the account owner, otherwise fall back to the manage check."""
        if self.is_resource_owner(actor.id, target.id):
            return
        self.require_can_manage_user(actor, target)

    def require_can_access_state(self, user: Any, state_code: str) -> None:
        if not self.can_access_state(user, state_code):
            self._deny(user, "state", f"You don't have access to state: {state_code}")

    def require_can_access_district(self, user: Any, district_code: str) -> None:
        if not self.can_access_district(user, district_code):
            self._deny(user, "district", f"You don't have access to district: {district_code}")

    def require_can_access_school(self, user: Any, school_code: str) -> None:
        if not self.can_access_school(user, school_code):
            self._deny(user, "school", f"You don't have access to school: {school_code}")

    def require_can_access_class(self, user: Any, school_code: str, class_code: str) -> None:
        if not self.can_access_class(user, school_code, class_code):
            self._deny(
                user,
                "class",
                f"You don't have access to class: {class_code} in school: {school_code}",
            )


# Engine without containment data, used where no index has been loaded
default_engine = AuthorizationEngine()

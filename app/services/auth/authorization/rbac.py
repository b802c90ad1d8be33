"""
Built-in roles and their place in the organizational hierarchy.

Every system role maps to a hierarchy level; a lower level means more
privilege. ADMIN sits above the hierarchy at level 0 and STUDENT at the
bottom. Names of roles created at runtime map to ``HierarchyLevel.UNKNOWN``.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Dict, FrozenSet, Iterable, List, Optional

import structlog
from pydantic import BaseModel, Field

from .permissions import PermissionName

logger = structlog.get_logger(__name__)


class SystemRole(str, Enum):
    """Built-in role names."""
    ADMIN = "ADMIN"
    STATE = "STATE"
    DISTRICT = "DISTRICT"
    SCHOOL = "SCHOOL"
    CLASS = "CLASS"
    STUDENT = "STUDENT"


class HierarchyLevel(IntEnum):
    """Privilege level, lower is more privileged."""
    ADMIN = 0
    STATE = 1
    DISTRICT = 2
    SCHOOL = 3
    CLASS = 4
    STUDENT = 5
    UNKNOWN = 999


ROLE_LEVELS: Dict[str, HierarchyLevel] = {
    role.value: HierarchyLevel[role.name] for role in SystemRole
}


def level_of(role_name: str) -> HierarchyLevel:
    """Hierarchy level of a single role name."""
    return ROLE_LEVELS.get(role_name, HierarchyLevel.UNKNOWN)


def best_level(role_names: Iterable[str]) -> HierarchyLevel:
    """Most privileged level among ``role_names``."""
    return min((level_of(name) for name in role_names), default=HierarchyLevel.UNKNOWN)


class RoleDefinition(BaseModel):
    """Seed definition of a system role."""
    name: SystemRole
    description: str
    permissions: FrozenSet[str] = Field(default_factory=frozenset)

    @property
    def level(self) -> HierarchyLevel:
        return level_of(self.name.value)


def _names(*permissions: PermissionName) -> FrozenSet[str]:
    return frozenset(permission.value for permission in permissions)


P = PermissionName

DEFAULT_ROLES: List[RoleDefinition] = [
    RoleDefinition(
        name=SystemRole.ADMIN,
        description="System Administrator with full access to all features",
        permissions=_names(*PermissionName),
    ),
    RoleDefinition(
        name=SystemRole.STATE,
        description="State-level coordinator managing districts within a state",
        permissions=_names(
            P.VIEW_USERS, P.CREATE_USERS, P.UPDATE_USERS,
            P.VIEW_TESTS, P.CREATE_TESTS, P.UPDATE_TESTS,
            P.VIEW_SCORES,
            P.VIEW_REPORTS, P.GENERATE_REPORTS, P.EXPORT_REPORTS,
        ),
    ),
    RoleDefinition(
        name=SystemRole.DISTRICT,
        description="District-level coordinator managing schools within a district",
        permissions=_names(
            P.VIEW_USERS, P.CREATE_USERS, P.UPDATE_USERS,
            P.VIEW_TESTS, P.CREATE_TESTS,
            P.VIEW_SCORES,
            P.VIEW_REPORTS, P.GENERATE_REPORTS,
        ),
    ),
    RoleDefinition(
        name=SystemRole.SCHOOL,
        description="School-level coordinator managing classes and students",
        permissions=_names(
            P.VIEW_USERS, P.CREATE_USERS, P.UPDATE_USERS,
            P.VIEW_TESTS, P.CREATE_TESTS,
            P.VIEW_QUESTIONS,
            P.VIEW_SCORES,
            P.VIEW_REPORTS,
        ),
    ),
    RoleDefinition(
        name=SystemRole.CLASS,
        description="Class teacher managing students in a specific class",
        permissions=_names(
            P.VIEW_USERS,
            P.VIEW_TESTS,
            P.VIEW_QUESTIONS, P.CREATE_QUESTIONS,
            P.VIEW_SCORES, P.UPDATE_SCORES,
            P.VIEW_REPORTS,
        ),
    ),
    RoleDefinition(
        name=SystemRole.STUDENT,
        description="Student taking language proficiency tests",
        permissions=_names(P.VIEW_TESTS, P.TAKE_TESTS, P.VIEW_OWN_SCORES),
    ),
]

del P


class RoleManager:
    """Lookup over the built-in role definitions."""

    def __init__(self, definitions: Optional[List[RoleDefinition]] = None):
        self._roles: Dict[str, RoleDefinition] = {
            definition.name.value: definition
            for definition in (DEFAULT_ROLES if definitions is None else definitions)
        }

    def get_role(self, name: str) -> Optional[RoleDefinition]:
        return self._roles.get(name)

    def get_all_roles(self) -> List[RoleDefinition]:
        return sorted(self._roles.values(), key=lambda role: role.level)

    def get_default_permissions(self, name: str) -> FrozenSet[str]:
        role = self._roles.get(name)
        return role.permissions if role else frozenset()

    def can_assign(self, actor_level: HierarchyLevel, role_name: str) -> bool:
        """
        Check whether an actor at ``actor_level`` may hand out ``role_name``.

        ADMIN may assign anything; everyone else only roles strictly below
        their own level. Unknown roles are assignable by ADMIN only.
        """
        if actor_level == HierarchyLevel.ADMIN:
            return True
        target_level = level_of(role_name)
        allowed = target_level != HierarchyLevel.UNKNOWN and actor_level < target_level
        if not allowed:
            logger.debug("role_assignment_rejected", actor_level=int(actor_level), role=role_name)
        return allowed


# Global role manager
role_manager = RoleManager()

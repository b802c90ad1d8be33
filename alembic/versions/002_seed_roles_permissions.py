"""Seed built-in roles, permissions and the default administrator

Revision ID: 002
Revises: 001
Create Date: 2026-10-01 00:00:01.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.sql import table, column
from sqlalchemy import String, Boolean
import uuid

from app.core.config import settings
from app.core.security import get_password_hash
from app.services.auth.authorization.permissions import DEFAULT_PERMISSIONS
from app.services.auth.authorization.rbac import DEFAULT_ROLES, SystemRole

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Insert the permission catalog, system roles, grants and admin account."""

    permission_table = table('permissions',
        column('id', sa.UUID),
        column('name', String),
        column('resource', String),
        column('action', String),
        column('description', String)
    )
    role_table = table('roles',
        column('id', sa.UUID),
        column('name', String),
        column('description', String)
    )
    role_permission_table = table('role_permissions',
        column('role_id', sa.UUID),
        column('permission_id', sa.UUID)
    )
    user_table = table('users',
        column('id', sa.UUID),
        column('email', String),
        column('username', String),
        column('name', String),
        column('password_hash', String),
        column('is_active', Boolean),
        column('email_verified', Boolean)
    )
    user_role_table = table('user_roles',
        column('user_id', sa.UUID),
        column('role_id', sa.UUID)
    )

    permission_ids = {}
    permissions = []
    for definition in DEFAULT_PERMISSIONS:
        permission_ids[definition.name] = uuid.uuid4()
        permissions.append({
            'id': permission_ids[definition.name],
            'name': definition.name,
            'resource': definition.resource.value,
            'action': definition.action.value,
            'description': definition.description,
        })
    op.bulk_insert(permission_table, permissions)

    role_ids = {}
    roles = []
    grants = []
    for definition in DEFAULT_ROLES:
        role_ids[definition.name] = uuid.uuid4()
        roles.append({
            'id': role_ids[definition.name],
            'name': definition.name.value,
            'description': definition.description,
        })
        for permission_name in sorted(definition.permissions):
            grants.append({
                'role_id': role_ids[definition.name],
                'permission_id': permission_ids[permission_name],
            })
    op.bulk_insert(role_table, roles)
    op.bulk_insert(role_permission_table, grants)

    # No password configured means no bootstrap account
    if not settings.DEFAULT_ADMIN_PASSWORD:
        return

    admin_id = uuid.uuid4()
    op.bulk_insert(user_table, [{
        'id': admin_id,
        'email': settings.DEFAULT_ADMIN_EMAIL.lower(),
        'username': settings.DEFAULT_ADMIN_USERNAME,
        'name': 'System Administrator',
        'password_hash': get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
        'is_active': True,
        'email_verified': True,
    }])
    op.bulk_insert(user_role_table, [{
        'user_id': admin_id,
        'role_id': role_ids[SystemRole.ADMIN],
    }])


def downgrade() -> None:
    """Remove seed data."""
    # Delete in reverse order due to foreign keys
    op.execute(
        sa.text("DELETE FROM users WHERE username = :username").bindparams(
            username=settings.DEFAULT_ADMIN_USERNAME
        )
    )
    role_names = ", ".join(f"'{definition.name.value}'" for definition in DEFAULT_ROLES)
    op.execute(f"DELETE FROM roles WHERE name IN ({role_names})")
    permission_names = ", ".join(f"'{definition.name}'" for definition in DEFAULT_PERMISSIONS)
    op.execute(f"DELETE FROM permissions WHERE name IN ({permission_names})")

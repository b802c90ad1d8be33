"""
Database models for users, roles, permissions and the audit trail.
"""
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, validates

from app.infrastructure.database.base import Base

PERMISSION_ACTIONS = ("READ", "WRITE", "DELETE", "EXECUTE")


class TimestampMixin:
    """Mixin for created_at and updated_at."""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


# Association tables for many-to-many relationships
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", UUID(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
)

role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", UUID(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", UUID(as_uuid=True), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(Base):
    """A named capability on a coarse resource type."""
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False, index=True)
    resource = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    description = Column(String(500))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    roles = relationship("Role", secondary=role_permissions, back_populates="permissions")

    __table_args__ = (
        CheckConstraint(
            "action IN ('READ', 'WRITE', 'DELETE', 'EXECUTE')",
            name="valid_action",
        ),
        Index("idx_permission_resource_action", "resource", "action"),
    )

    @validates("action")
    def validate_action(self, key, value):
        value = str(getattr(value, "value", value)).upper()
        if value not in PERMISSION_ACTIONS:
            raise ValueError(f"Invalid permission action: {value}")
        return value

    def __repr__(self) -> str:
        return f"<Permission {self.name} ({self.resource}:{self.action})>"


class Role(Base, TimestampMixin):
    """A named bundle of permissions."""
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(255))

    permissions = relationship(
        "Permission",
        secondary=role_permissions,
        back_populates="roles",
        lazy="selectin",
        collection_class=set,
    )
    users = relationship("User", secondary=user_roles, back_populates="roles")

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class User(Base, TimestampMixin):
    """User account with its organizational scope."""
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    phone_number = Column(String(20))

    # Account state
    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    last_login = Column(DateTime(timezone=True))

    # Organizational scope, most general first
    state_code = Column(String(10), index=True)
    state_name = Column(String(100))
    district_code = Column(String(20), index=True)
    district_name = Column(String(100))
    school_code = Column(String(30), index=True)
    school_name = Column(String(255))
    class_code = Column(String(20))
    class_name = Column(String(100))

    # Student profile
    roll_number = Column(String(50))
    date_of_birth = Column(Date)
    parent_email = Column(String(255))

    roles = relationship(
        "Role",
        secondary=user_roles,
        back_populates="users",
        lazy="selectin",
        collection_class=set,
    )

    __table_args__ = (
        Index("idx_user_school_class", "school_code", "class_code"),
    )

    @validates("email", "parent_email")
    def normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def role_names(self) -> list[str]:
        return sorted(role.name for role in self.roles)

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class AuditLog(Base):
    """Append-only record of a security-relevant action."""
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), index=True)
    user_email = Column(String(255))
    user_roles = Column(String(500))
    action = Column(String(50), nullable=False, index=True)
    resource_type = Column(String(100))
    resource_id = Column(String(100))
    description = Column(Text)
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    success = Column(Boolean, default=True, nullable=False)
    error_message = Column(Text)

    __table_args__ = (
        Index("idx_audit_user_timestamp", "user_id", "timestamp"),
    )

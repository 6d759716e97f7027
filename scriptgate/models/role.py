"""Role and role-permission models for RBAC."""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from scriptgate.db.base import Base

# Built-in roles can never be deleted and their level is immutable.
BUILTIN_ROLES = ("admin", "manager", "user")
ADMIN_ROLE = "admin"
DEFAULT_ROLE = "user"
MIN_LEVEL = 0
MAX_LEVEL = 100


class Role(Base):
    """Privilege tier. Lower level = more privileged (0 is reserved for admin)."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=False)
    level = Column(Integer, nullable=False, default=10, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    permissions = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RolePermission.module_id",
    )

    @property
    def is_builtin(self) -> bool:
        return self.name in BUILTIN_ROLES


class RolePermission(Base):
    """Grant of one module to one role."""
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "module_id", name="uq_role_permission_module"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    module_id = Column(String(64), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    role = relationship("Role", back_populates="permissions")

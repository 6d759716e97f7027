"""Models package: import all models so metadata.create_all can discover them."""

from scriptgate.models.role import Role, RolePermission
from scriptgate.models.user import User
from scriptgate.models.module import Module
from scriptgate.models.audit_log import AuditLog

__all__ = [
    "Role", "RolePermission", "User", "Module", "AuditLog",
]

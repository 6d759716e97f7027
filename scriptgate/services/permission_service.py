"""Permission resolver: which modules a role may invoke.

A role inherits every grant held by roles at its own level or a numerically
higher (less privileged) level, so ``admin`` at level 0 sees everything.
"""

import logging
from typing import Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scriptgate.core.config import settings
from scriptgate.models.role import Role, RolePermission
from scriptgate.services.cache_service import cache_service

logger = logging.getLogger("scriptgate.permissions")

_CACHE_KEY = "role_modules:{}"


class PermissionService:
    """Resolves role permissions fresh from the database (or a short-lived cache)."""

    @staticmethod
    def accessible_modules(db: Session, role_name: str) -> Set[str]:
        """Return every module id the role may invoke; empty for an unknown role."""
        cached = cache_service.get_json(_CACHE_KEY.format(role_name))
        if cached is not None:
            return set(cached)

        role = db.query(Role).filter(Role.name == role_name).first()
        if not role:
            logger.warning("Role not found: %s", role_name)
            return set()

        rows = (
            db.query(RolePermission.module_id)
            .join(RolePermission.role)
            .filter(Role.level >= role.level)
            .distinct()
            .all()
        )
        modules = {row.module_id for row in rows}

        cache_service.set_json(
            _CACHE_KEY.format(role_name),
            sorted(modules),
            settings.PERMISSION_CACHE_TTL_SECONDS,
        )
        logger.debug("Accessible modules for %s: %s", role_name, ", ".join(sorted(modules)))
        return modules

    @staticmethod
    def has_access(db: Session, role_name: str, module_id: str) -> bool:
        """Authorization check. Never raises: any internal fault denies access."""
        try:
            allowed = module_id in PermissionService.accessible_modules(db, role_name)
        except Exception:
            logger.exception("Error checking module access for %s to %s", role_name, module_id)
            try:
                db.rollback()
            except SQLAlchemyError:
                logger.error("Rollback failed after access check error")
            return False

        if allowed:
            logger.info("Module access granted for role %s to %s", role_name, module_id)
        else:
            logger.warning("Module access denied for role %s to %s", role_name, module_id)
        return allowed

    @staticmethod
    def invalidate() -> None:
        """Drop cached resolutions. A level change can affect every role."""
        cache_service.invalidate_pattern(_CACHE_KEY.format("*"))


permission_service = PermissionService()

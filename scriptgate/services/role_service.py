"""Role administration: privilege tiers and their module grants."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from scriptgate.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from scriptgate.models.role import (
    ADMIN_ROLE, MAX_LEVEL, MIN_LEVEL, Role, RolePermission,
)
from scriptgate.models.user import User
from scriptgate.services.module_service import normalize_module_id
from scriptgate.services.permission_service import permission_service

logger = logging.getLogger("scriptgate.roles")


def _check_name(name: str) -> str:
    name = (name or "").strip()
    if not 2 <= len(name) <= 50:
        raise ValidationError("Role name must be between 2 and 50 characters")
    return name


def _check_level(name: str, level: int) -> int:
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValidationError("Role level must be an integer")
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise ValidationError(f"Role level must be between {MIN_LEVEL} and {MAX_LEVEL}")
    if level == MIN_LEVEL and name != ADMIN_ROLE:
        raise ValidationError(f"Level {MIN_LEVEL} is reserved for the {ADMIN_ROLE} role")
    return level


class RoleService:
    """CRUD for roles and grants. Every mutation invalidates cached resolutions."""

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        """All roles, most privileged first."""
        return db.query(Role).order_by(Role.level, Role.name).all()

    @staticmethod
    def get_role(db: Session, name: str) -> Role:
        role = db.query(Role).filter(Role.name == name).first()
        if not role:
            raise ResourceNotFoundError(f"Role not found: {name}")
        return role

    @staticmethod
    def create_role(
        db: Session,
        name: str,
        description: str,
        level: int,
        module_ids: Optional[List[str]] = None,
    ) -> Role:
        """Create a custom role, optionally with an initial set of grants."""
        name = _check_name(name)
        level = _check_level(name, level)
        if db.query(Role).filter(Role.name == name).first():
            raise ResourceConflictError(f"Role already exists: {name}")

        role = Role(name=name, description=description, level=level)
        seen = set()
        for raw in module_ids or []:
            module_id = normalize_module_id(raw)
            if not module_id or module_id in seen:
                continue
            seen.add(module_id)
            role.permissions.append(
                RolePermission(module_id=module_id, description=f"Access to {module_id}")
            )

        db.add(role)
        db.commit()
        db.refresh(role)
        permission_service.invalidate()
        logger.info("Role created: %s (level %s)", name, level)
        return role

    @staticmethod
    def update_role(
        db: Session,
        name: str,
        description: Optional[str] = None,
        level: Optional[int] = None,
    ) -> Role:
        """Update a role's description or level. Built-in levels are immutable."""
        role = RoleService.get_role(db, name)

        if level is not None and level != role.level:
            if role.is_builtin:
                raise ValidationError(f"Cannot change the level of core role: {name}")
            role.level = _check_level(name, level)
        if description is not None:
            role.description = description

        db.commit()
        db.refresh(role)
        permission_service.invalidate()
        logger.info("Role updated: %s", name)
        return role

    @staticmethod
    def delete_role(db: Session, name: str) -> None:
        role = RoleService.get_role(db, name)
        if role.is_builtin:
            raise ValidationError(f"Cannot delete core role: {name}")

        assigned = db.query(User).filter(User.role_id == role.id).count()
        if assigned:
            raise ResourceConflictError(
                f"Role {name} is still assigned to {assigned} user(s)"
            )

        db.delete(role)
        db.commit()
        permission_service.invalidate()
        logger.info("Role deleted: %s", name)

    @staticmethod
    def grant_permission(
        db: Session,
        role_name: str,
        module_id: str,
        description: Optional[str] = None,
    ) -> Role:
        """Grant a module to a role. Granting an existing permission is a no-op."""
        role = RoleService.get_role(db, role_name)
        normalized = normalize_module_id(module_id)
        if not normalized:
            raise ValidationError(f"Invalid module ID: {module_id!r}")

        if any(p.module_id == normalized for p in role.permissions):
            logger.warning("Permission already exists: %s -> %s", role_name, normalized)
            return role

        role.permissions.append(
            RolePermission(
                module_id=normalized,
                description=description or f"Access to {normalized}",
            )
        )
        db.commit()
        db.refresh(role)
        permission_service.invalidate()
        logger.info("Granted %s to role %s", normalized, role_name)
        return role

    @staticmethod
    def revoke_permission(db: Session, role_name: str, module_id: str) -> Role:
        """Remove a grant. Revoking an absent grant changes nothing."""
        role = RoleService.get_role(db, role_name)
        normalized = normalize_module_id(module_id)

        match = next((p for p in role.permissions if p.module_id == normalized), None)
        if match is None:
            logger.info("No permission to revoke: %s -> %s", role_name, normalized)
            return role

        role.permissions.remove(match)
        db.commit()
        db.refresh(role)
        permission_service.invalidate()
        logger.info("Revoked %s from role %s", normalized, role_name)
        return role


role_service = RoleService()

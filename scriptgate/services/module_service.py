"""Module registry: the catalog of executable modules and its administration."""

import json
import logging
import re
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from scriptgate.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from scriptgate.executor.params import ParameterDefinition
from scriptgate.models.module import Module
from scriptgate.models.role import RolePermission
from scriptgate.schemas.schemas import ModuleCreate, ModuleUpdate
from scriptgate.services.permission_service import permission_service

logger = logging.getLogger("scriptgate.modules")

MODULE_ID_PATTERN = re.compile(r"^[a-z0-9_]+$")
SCRIPT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def normalize_module_id(value: Optional[str]) -> str:
    """Trim, lower-case and strip everything outside ``[a-z0-9_]``.

    A changed identifier is logged as a possibly malformed or hostile input
    but the normalized value is still returned for lookup.
    """
    if not isinstance(value, str):
        return ""
    normalized = re.sub(r"[^a-z0-9_]", "", value.strip().lower())
    if normalized != value:
        logger.warning("Module ID normalized: %r -> %r", value, normalized)
    return normalized


def serialize_parameters(definitions: Sequence[ParameterDefinition]) -> str:
    return json.dumps([d.model_dump(mode="json") for d in definitions])


class ModuleService:
    """Lookup and CRUD for module definitions."""

    @staticmethod
    def list_enabled(db: Session) -> List[Module]:
        """All enabled modules ordered by display name."""
        return (
            db.query(Module)
            .filter(Module.is_active == True)  # noqa: E712
            .order_by(Module.name, Module.module_id)
            .all()
        )

    @staticmethod
    def list_all(db: Session) -> List[Module]:
        """Admin view, disabled modules included."""
        return db.query(Module).order_by(Module.name, Module.module_id).all()

    @staticmethod
    def get_by_id(db: Session, module_id: str) -> Module:
        """Get an enabled module by (normalized) identifier.

        Raises:
            ResourceNotFoundError: unknown or disabled module.
        """
        normalized = normalize_module_id(module_id)
        if not normalized:
            raise ResourceNotFoundError(f"Module not found: {module_id!r}")
        module = (
            db.query(Module)
            .filter(Module.module_id == normalized, Module.is_active == True)  # noqa: E712
            .first()
        )
        if not module:
            logger.warning("Module not found: %s", normalized)
            raise ResourceNotFoundError(f"Module not found: {normalized}")
        return module

    @staticmethod
    def get_for_admin(db: Session, module_id: str) -> Module:
        """Get a module by exact identifier regardless of its enabled flag."""
        module = db.query(Module).filter(Module.module_id == module_id).first()
        if not module:
            raise ResourceNotFoundError(f"Module not found: {module_id}")
        return module

    @staticmethod
    def _check_script_name(db: Session, script_name: str, exclude_id: Optional[int] = None) -> None:
        if not SCRIPT_NAME_PATTERN.match(script_name) or script_name in (".", ".."):
            raise ValidationError(f"Invalid script name: {script_name}")
        query = db.query(Module).filter(Module.script_name == script_name)
        if exclude_id is not None:
            query = query.filter(Module.id != exclude_id)
        owner = query.first()
        if owner:
            raise ResourceConflictError(
                f"Script {script_name} is already used by module {owner.module_id}"
            )

    @staticmethod
    def create_module(db: Session, data: ModuleCreate, created_by: Optional[int] = None) -> Module:
        """Create a module definition."""
        if not MODULE_ID_PATTERN.match(data.module_id):
            raise ValidationError(
                "Module ID can only contain lowercase letters, numbers and underscores"
            )
        if db.query(Module).filter(Module.module_id == data.module_id).first():
            raise ResourceConflictError(f"Module ID already exists: {data.module_id}")
        ModuleService._check_script_name(db, data.script_name)

        module = Module(
            module_id=data.module_id,
            name=data.name,
            description=data.description,
            tooltip=data.tooltip,
            icon=data.icon or "module",
            script_name=data.script_name,
            parameters_json=serialize_parameters(data.parameters),
            is_active=data.is_active,
            created_by=created_by,
        )
        db.add(module)
        db.commit()
        db.refresh(module)
        logger.info("Module created: %s", module.module_id)
        return module

    @staticmethod
    def update_module(db: Session, module_id: str, data: ModuleUpdate) -> Module:
        """Update the mutable fields of a module. The identifier never changes."""
        module = ModuleService.get_for_admin(db, module_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("script_name") is not None:
            ModuleService._check_script_name(db, data.script_name, exclude_id=module.id)
            module.script_name = data.script_name
        if changes.get("parameters") is not None:
            module.parameters_json = serialize_parameters(data.parameters)
        for field in ("name", "description", "tooltip", "icon", "is_active"):
            if field in changes and (changes[field] is not None or field == "tooltip"):
                setattr(module, field, changes[field])

        db.commit()
        db.refresh(module)
        logger.info("Module updated: %s", module.module_id)
        return module

    @staticmethod
    def delete_module(db: Session, module_id: str) -> None:
        """Delete a module and every grant that references its identifier."""
        module = ModuleService.get_for_admin(db, module_id)
        db.query(RolePermission).filter(RolePermission.module_id == module.module_id).delete(
            synchronize_session=False
        )
        db.delete(module)
        db.commit()
        permission_service.invalidate()
        logger.info("Module deleted: %s", module_id)


module_service = ModuleService()

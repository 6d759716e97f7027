"""Roles API router: role CRUD and module grants (admin only)."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from scriptgate.core.security import require_admin
from scriptgate.db.session import get_db
from scriptgate.schemas.schemas import (
    Identity, MessageResponse, PermissionGrant, RoleCreate, RoleOut, RoleUpdate,
)
from scriptgate.services.audit_service import AuditAction, audit_service
from scriptgate.services.role_service import role_service

router = APIRouter(prefix="/roles", tags=["roles"])


def _snapshot(role) -> dict:
    return {
        "level": role.level,
        "description": role.description,
        "modules": [p.module_id for p in role.permissions],
    }


@router.get("", response_model=List[RoleOut])
async def list_roles(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """List roles, most privileged first."""
    return role_service.list_roles(db)


@router.post("", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    role = role_service.create_role(db, body.name, body.description, body.level, body.modules)
    audit_service.log(
        db, identity, AuditAction.role_created,
        request=request,
        resource_id=role.name,
        new_value=_snapshot(role),
    )
    return role


@router.get("/{name}", response_model=RoleOut)
async def get_role(
    name: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    return role_service.get_role(db, name)


@router.put("/{name}", response_model=RoleOut)
async def update_role(
    name: str,
    body: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Update description or level. Levels of core roles cannot change."""
    old = _snapshot(role_service.get_role(db, name))
    role = role_service.update_role(db, name, description=body.description, level=body.level)
    audit_service.log(
        db, identity, AuditAction.role_updated,
        request=request,
        resource_id=name,
        old_value=old,
        new_value=_snapshot(role),
    )
    return role


@router.delete("/{name}", response_model=MessageResponse)
async def delete_role(
    name: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    old = _snapshot(role_service.get_role(db, name))
    role_service.delete_role(db, name)
    audit_service.log(
        db, identity, AuditAction.role_deleted,
        request=request,
        resource_id=name,
        old_value=old,
    )
    return MessageResponse(message=f"Role {name} deleted")


@router.post("/{name}/modules/{module_id}", response_model=RoleOut)
async def grant_module(
    name: str,
    module_id: str,
    request: Request,
    body: Optional[PermissionGrant] = None,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Grant a module to a role. Re-granting is a no-op."""
    role = role_service.grant_permission(
        db, name, module_id, body.description if body else None
    )
    audit_service.log(
        db, identity, AuditAction.permission_granted,
        request=request,
        resource_id=name,
        new_value={"module_id": module_id},
    )
    return role


@router.delete("/{name}/modules/{module_id}", response_model=RoleOut)
async def revoke_module(
    name: str,
    module_id: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    role = role_service.revoke_permission(db, name, module_id)
    audit_service.log(
        db, identity, AuditAction.permission_revoked,
        request=request,
        resource_id=name,
        old_value={"module_id": module_id},
    )
    return role

"""Admin API router: module catalog, users and audit trail."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from scriptgate.db.session import get_db
from scriptgate.schemas.schemas import (
    AuditLogListResponse, AuditLogOut, Identity, MessageResponse,
    ModuleAdminOut, ModuleCreate, ModuleUpdate,
    UserCreate, UserOut, UserUpdateRequest,
)
from scriptgate.services.audit_service import AuditAction, audit_service
from scriptgate.services.auth_service import auth_service
from scriptgate.services.module_service import module_service
from scriptgate.core.security import require_admin

router = APIRouter(prefix="/admin", tags=["admin"])


# ---- Modules ----
@router.get("/modules", response_model=List[ModuleAdminOut])
async def admin_list_modules(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """List all modules, disabled ones included."""
    return [ModuleAdminOut.from_module(m) for m in module_service.list_all(db)]


@router.post("/modules", response_model=ModuleAdminOut, status_code=201)
async def admin_create_module(
    body: ModuleCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    module = module_service.create_module(db, body, created_by=identity.user_id)
    out = ModuleAdminOut.from_module(module)
    audit_service.log(
        db, identity, AuditAction.module_created,
        request=request,
        resource_id=module.module_id,
        new_value=out.model_dump(mode="json", exclude={"created_at", "updated_at"}),
    )
    return out


@router.put("/modules/{module_id}", response_model=ModuleAdminOut)
async def admin_update_module(
    module_id: str,
    body: ModuleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Update mutable module fields. The identifier is fixed at creation."""
    old = ModuleAdminOut.from_module(module_service.get_for_admin(db, module_id))
    module = module_service.update_module(db, module_id, body)
    out = ModuleAdminOut.from_module(module)
    audit_service.log(
        db, identity, AuditAction.module_updated,
        request=request,
        resource_id=module_id,
        old_value=old.model_dump(mode="json", exclude={"created_at", "updated_at"}),
        new_value=out.model_dump(mode="json", exclude={"created_at", "updated_at"}),
    )
    return out


@router.delete("/modules/{module_id}", response_model=MessageResponse)
async def admin_delete_module(
    module_id: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Delete a module together with its grants."""
    module_service.delete_module(db, module_id)
    audit_service.log(
        db, identity, AuditAction.module_deleted,
        request=request,
        resource_id=module_id,
    )
    return MessageResponse(message=f"Module {module_id} deleted")


# ---- Users ----
@router.get("/users")
async def admin_list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """List all users (admin only)."""
    result = auth_service.list_users(db, page, page_size)
    return {
        "users": [UserOut.model_validate(u) for u in result["users"]],
        "total": result["total"],
        "page": result["page"],
    }


@router.post("/users", response_model=UserOut, status_code=201)
async def admin_create_user(
    body: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    user = auth_service.create_user(
        db, body.username, body.password, body.full_name, body.role_name, body.email,
    )
    audit_service.log(
        db, identity, AuditAction.user_created,
        request=request,
        resource_id=str(user.id),
        new_value={"username": user.username, "role": body.role_name},
    )
    return UserOut.model_validate(user)


@router.put("/users/{user_id}", response_model=UserOut)
async def admin_update_user(
    user_id: int,
    body: UserUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Update a user's role, name, or status (admin only)."""
    user = auth_service.update_user(
        db, user_id,
        full_name=body.full_name,
        email=body.email,
        role_name=body.role_name,
        is_active=body.is_active,
        password=body.password,
    )
    audit_service.log(
        db, identity, AuditAction.user_updated,
        request=request,
        resource_id=str(user_id),
        new_value=body.model_dump(exclude_unset=True, exclude={"password"}),
    )
    return UserOut.model_validate(user)


# ---- Audit ----
@router.get("/audit", response_model=AuditLogListResponse)
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    actor: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Query audit logs (admin only)."""
    result = audit_service.query_logs(db, actor, action, resource_type, page, page_size)
    return AuditLogListResponse(
        logs=[AuditLogOut.model_validate(log) for log in result["logs"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )

"""Modules API router: list, describe and execute the modules a caller may use."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from scriptgate.core.security import get_current_identity
from scriptgate.db.session import get_db
from scriptgate.executor.gate import AccessGate, get_gate
from scriptgate.models.role import ADMIN_ROLE
from scriptgate.schemas.schemas import (
    ExecuteRequest, ExecutionResult, ExecutionStatus, Identity, ModuleOut,
)
from scriptgate.services.audit_service import audit_service

router = APIRouter(prefix="/modules", tags=["modules"])

STATUS_CODES = {
    ExecutionStatus.succeeded: 200,
    ExecutionStatus.denied: 403,
    ExecutionStatus.not_found: 404,
    ExecutionStatus.invalid_parameters: 422,
    ExecutionStatus.failed: 502,
    ExecutionStatus.timed_out: 504,
    ExecutionStatus.internal_error: 500,
}


@router.get("", response_model=List[ModuleOut])
async def list_modules(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_gate),
):
    """List every enabled module the caller's role may invoke."""
    modules = gate.list_accessible_modules(db, identity.role)
    return [ModuleOut.from_module(m) for m in modules]


@router.get("/{module_id}", response_model=ModuleOut)
async def get_module(
    module_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_gate),
):
    """Module metadata and parameter schema."""
    return ModuleOut.from_module(gate.get_module(db, identity.role, module_id))


@router.post("/{module_id}/execute", response_model=ExecutionResult)
def execute_module(
    module_id: str,
    request: Request,
    response: Response,
    body: Optional[ExecuteRequest] = None,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_gate),
):
    """Run a module. Sync handler: each call waits on its own child in the threadpool."""
    params = body.parameters if body else None
    result = gate.execute_module(db, identity.role, module_id, params, identity.user_id)

    # script diagnostics are only shown to administrators
    if identity.role != ADMIN_ROLE:
        result.stderr = None

    audit_service.log_execution(db, identity, result, request=request)
    response.status_code = STATUS_CODES[result.status]
    return result

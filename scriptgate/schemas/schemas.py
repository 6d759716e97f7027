"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from scriptgate.executor.params import ParameterDefinition


# ---- Auth ----
class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None

class Identity(BaseModel):
    """Authenticated caller as carried in a token."""
    user_id: int
    username: str
    role: str


# ---- User ----
class UserOut(BaseModel):
    id: int
    username: str
    full_name: str
    email: Optional[str] = None
    role: Optional[str] = None
    auth_source: str = "local"
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("role", mode="before")
    @classmethod
    def _role_name(cls, value):
        return getattr(value, "name", value)

class UserCreate(BaseModel):
    username: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    role_name: str = "user"

class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    role_name: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=8)


# ---- Role ----
class PermissionOut(BaseModel):
    module_id: str
    description: str

    class Config:
        from_attributes = True

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: str = Field(..., min_length=1, max_length=255)
    level: int = Field(..., ge=0, le=100)
    modules: List[str] = []

class RoleUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    level: Optional[int] = Field(None, ge=0, le=100)

class RoleOut(BaseModel):
    id: int
    name: str
    description: str
    level: int
    is_builtin: bool
    permissions: List[PermissionOut] = []

    class Config:
        from_attributes = True

class PermissionGrant(BaseModel):
    description: Optional[str] = Field(None, max_length=255)


# ---- Module ----
def _unique_parameter_names(params: List[ParameterDefinition]) -> List[ParameterDefinition]:
    seen = set()
    for p in params:
        if p.name in seen:
            raise ValueError(f"Duplicate parameter name: {p.name}")
        seen.add(p.name)
    return params

class ModuleCreate(BaseModel):
    module_id: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-z0-9_]+$")
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    tooltip: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field("module", max_length=50)
    script_name: str = Field(..., min_length=1, max_length=255, pattern=r"^[A-Za-z0-9_.-]+$")
    parameters: List[ParameterDefinition] = []
    is_active: bool = True

    @field_validator("parameters")
    @classmethod
    def _check_parameters(cls, value):
        return _unique_parameter_names(value)

class ModuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    tooltip: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=50)
    script_name: Optional[str] = Field(
        None, min_length=1, max_length=255, pattern=r"^[A-Za-z0-9_.-]+$"
    )
    parameters: Optional[List[ParameterDefinition]] = None
    is_active: Optional[bool] = None

    @field_validator("parameters")
    @classmethod
    def _check_parameters(cls, value):
        if value is None:
            return value
        return _unique_parameter_names(value)

class ModuleOut(BaseModel):
    """What a caller sees: metadata and parameter schema, never the script."""
    id: str
    name: str
    description: str
    tooltip: Optional[str] = None
    icon: str = "module"
    parameters: List[ParameterDefinition] = []

    @classmethod
    def from_module(cls, module) -> "ModuleOut":
        return cls(
            id=module.module_id,
            name=module.name,
            description=module.description,
            tooltip=module.tooltip,
            icon=module.icon or "module",
            parameters=module.parameter_definitions,
        )

class ModuleAdminOut(ModuleOut):
    script_name: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_module(cls, module) -> "ModuleAdminOut":
        base = ModuleOut.from_module(module).model_dump()
        return cls(
            **base,
            script_name=module.script_name,
            is_active=module.is_active,
            created_at=module.created_at,
            updated_at=module.updated_at,
        )


# ---- Execution ----
class ExecuteRequest(BaseModel):
    parameters: Optional[Dict[str, Any]] = None

class ExecutionStatus(str, Enum):
    succeeded = "succeeded"
    denied = "denied"
    not_found = "not_found"
    invalid_parameters = "invalid_parameters"
    failed = "failed"
    timed_out = "timed_out"
    internal_error = "internal_error"

class ExecutionResult(BaseModel):
    """Outcome of one execution request. Exactly one of output/error is set."""
    success: bool
    status: ExecutionStatus
    module_id: str
    output: Optional[str] = None
    error: Optional[str] = None
    errors: List[str] = []
    stderr: Optional[str] = None
    elapsed_ms: Optional[int] = None
    script_name: Optional[str] = None


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    actor_username: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    old_value_json: Optional[str] = None
    new_value_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class AuditLogListResponse(BaseModel):
    logs: List[AuditLogOut]
    total: int
    page: int
    page_size: int


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[str] = None

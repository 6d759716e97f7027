"""Audit service: append-only audit trail for logins, mutations and executions."""

import json
from enum import Enum
from typing import Optional, Any, Union

from fastapi import Request
from sqlalchemy.orm import Session

from scriptgate.models.audit_log import AuditLog
from scriptgate.schemas.schemas import ExecutionResult, Identity


class AuditAction(str, Enum):
    user_login = "user.login"
    user_created = "user.created"
    user_updated = "user.updated"
    role_created = "role.created"
    role_updated = "role.updated"
    role_deleted = "role.deleted"
    permission_granted = "role.permission_granted"
    permission_revoked = "role.permission_revoked"
    module_created = "module.created"
    module_updated = "module.updated"
    module_deleted = "module.deleted"
    module_executed = "module.executed"

    @property
    def resource_type(self) -> str:
        return self.value.split(".", 1)[0]


class AuditService:
    """Records immutable audit log entries for scriptgate events."""

    @staticmethod
    def log(
        db: Session,
        actor: Identity,
        action: AuditAction,
        resource_id: Optional[Union[str, int]] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        request: Optional[Request] = None,
    ) -> AuditLog:
        """Write a single audit log record and commit it.

        The resource type is derived from the action (``role.*`` -> ``role``).
        Client address and user agent are taken from ``request`` when given.
        """
        action = AuditAction(action)
        entry = AuditLog(
            actor_id=actor.user_id,
            actor_username=actor.username,
            action=action.value,
            resource_type=action.resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_value_json=json.dumps(old_value, default=str) if old_value else None,
            new_value_json=json.dumps(new_value, default=str) if new_value else None,
        )
        if request is not None:
            entry.ip_address = request.client.host if request.client else None
            entry.user_agent = request.headers.get("user-agent", "")[:500]
        db.add(entry)
        db.commit()
        return entry

    @staticmethod
    def log_execution(
        db: Session,
        actor: Identity,
        result: ExecutionResult,
        request: Optional[Request] = None,
    ) -> AuditLog:
        """Record the outcome of one module execution, whatever its status."""
        return AuditService.log(
            db,
            actor,
            AuditAction.module_executed,
            resource_id=result.module_id,
            new_value={
                "status": result.status.value,
                "elapsed_ms": result.elapsed_ms,
                "role": actor.role,
                "script_name": result.script_name,
            },
            request=request,
        )

    @staticmethod
    def query_logs(
        db: Session,
        actor_username: Optional[str] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Query audit logs with filters and pagination, newest first."""
        query = db.query(AuditLog)

        if actor_username:
            query = query.filter(AuditLog.actor_username == actor_username)
        if action:
            query = query.filter(AuditLog.action.ilike(f"%{action}%"))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "logs": logs,
            "total": total,
            "page": page,
            "page_size": page_size,
        }


audit_service = AuditService()

"""Access gate: authorize, look up, validate, then run.

Every execution request ends in an ``ExecutionResult``. Denied and not-found
requests are settled before any process is spawned.
"""

import logging
from typing import Any, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scriptgate.core.exceptions import (
    AuthorizationError,
    ExecutionError,
    ExecutionTimeoutError,
    ParameterValidationError,
    ResourceNotFoundError,
)
from scriptgate.executor.engine import ScriptRunner, build_args
from scriptgate.executor.params import validate_parameters
from scriptgate.models.module import Module
from scriptgate.schemas.schemas import ExecutionResult, ExecutionStatus
from scriptgate.services.module_service import module_service, normalize_module_id
from scriptgate.services.permission_service import permission_service

logger = logging.getLogger("scriptgate.gate")

INTERNAL_ERROR_MESSAGE = "Internal error while executing module"


class AccessGate:
    """Entry point the API and CLI use to reach modules."""

    def __init__(self, runner: Optional[ScriptRunner] = None):
        self.runner = runner or ScriptRunner()

    def list_accessible_modules(self, db: Session, role_name: str) -> List[Module]:
        """Enabled modules the role may invoke, ordered by display name."""
        allowed = permission_service.accessible_modules(db, role_name)
        return [m for m in module_service.list_enabled(db) if m.module_id in allowed]

    def get_module(self, db: Session, role_name: str, module_id: str) -> Module:
        """Module metadata for a caller.

        Raises:
            AuthorizationError: the role may not invoke the module.
            ResourceNotFoundError: the module is unknown or disabled.
        """
        normalized = normalize_module_id(module_id)
        if not permission_service.has_access(db, role_name, normalized):
            raise AuthorizationError(f"Access denied to module: {normalized or module_id}")
        return module_service.get_by_id(db, normalized)

    def execute_module(
        self,
        db: Session,
        role_name: str,
        module_id: str,
        raw_params: Optional[Mapping[str, Any]],
        caller_id: Any,
    ) -> ExecutionResult:
        normalized = normalize_module_id(module_id)
        result_id = normalized or str(module_id)

        try:
            if not permission_service.has_access(db, role_name, normalized):
                return _failure(
                    ExecutionStatus.denied, result_id, f"Access denied to module: {result_id}"
                )
            try:
                module = module_service.get_by_id(db, normalized)
            except ResourceNotFoundError as e:
                return _failure(ExecutionStatus.not_found, result_id, e.message)
            definitions = module.parameter_definitions
            script_name = module.script_name
        except (SQLAlchemyError, ValueError):  # ValueError: stored schema no longer parses
            logger.exception("Failed to load module %s", result_id)
            db.rollback()
            return _failure(ExecutionStatus.internal_error, result_id, INTERNAL_ERROR_MESSAGE)

        try:
            return self._validate_and_run(
                module, definitions, script_name, raw_params, role_name, caller_id, result_id
            )
        except Exception:
            logger.exception("Unexpected error while executing module %s", result_id)
            return _failure(ExecutionStatus.internal_error, result_id, INTERNAL_ERROR_MESSAGE)

    def _validate_and_run(
        self,
        module: Module,
        definitions,
        script_name: str,
        raw_params: Optional[Mapping[str, Any]],
        role_name: str,
        caller_id: Any,
        result_id: str,
    ) -> ExecutionResult:
        try:
            params = validate_parameters(raw_params, definitions)
        except ParameterValidationError as e:
            return _failure(
                ExecutionStatus.invalid_parameters, result_id, e.message, errors=e.errors
            )

        args = build_args(params)
        env = {"USER_ID": str(caller_id), "MODULE_ID": module.module_id}
        logger.info("Executing module %s (%s) for role %s", result_id, script_name, role_name)
        logger.debug("Arguments for %s: %s", script_name, args)

        try:
            output = self.runner.run(script_name, args, env=env)
        except ExecutionTimeoutError as e:
            logger.warning("Module %s timed out after %sms", result_id, e.elapsed_ms)
            return _failure(
                ExecutionStatus.timed_out, result_id, e.message,
                stderr=e.stderr, elapsed_ms=e.elapsed_ms, script_name=script_name,
            )
        except ExecutionError as e:
            logger.warning("Module %s failed: %s", result_id, e.message)
            return _failure(
                ExecutionStatus.failed, result_id, e.message,
                stderr=e.stderr, elapsed_ms=e.elapsed_ms, script_name=script_name,
            )

        logger.info("Module %s completed in %sms", result_id, output.elapsed_ms)
        return ExecutionResult(
            success=True,
            status=ExecutionStatus.succeeded,
            module_id=result_id,
            output=output.stdout,
            stderr=output.stderr or None,
            elapsed_ms=output.elapsed_ms,
            script_name=script_name,
        )


def _failure(status: ExecutionStatus, module_id: str, error: str, **extra) -> ExecutionResult:
    return ExecutionResult(success=False, status=status, module_id=module_id, error=error, **extra)


access_gate = AccessGate()


def get_gate() -> AccessGate:
    """FastAPI dependency returning the process-wide gate."""
    return access_gate

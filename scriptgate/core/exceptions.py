"""Custom exception classes for Script Gate."""

from typing import List, Optional


class ScriptGateError(Exception):
    """Base exception for Script Gate."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(ScriptGateError):
    """Raised when authentication fails."""
    pass


class AuthorizationError(ScriptGateError):
    """Raised when a role lacks permission."""
    pass


class ResourceNotFoundError(ScriptGateError):
    """Raised when a requested resource is not found (or is disabled)."""
    pass


class ResourceConflictError(ScriptGateError):
    """Raised when a resource already exists or is still referenced."""
    pass


class ValidationError(ScriptGateError):
    """Raised when an administrative definition is invalid."""
    pass


class ParameterValidationError(ScriptGateError):
    """Raised when caller-supplied module parameters fail validation.

    Carries one message per problem, in parameter definition order.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid parameters: {'; '.join(self.errors)}")


class ExecutionError(ScriptGateError):
    """Raised when a script cannot be spawned or exits non-zero."""

    def __init__(
        self,
        message: str,
        stderr: Optional[str] = None,
        elapsed_ms: Optional[int] = None,
        returncode: Optional[int] = None,
    ):
        super().__init__(message)
        self.stderr = stderr
        self.elapsed_ms = elapsed_ms
        self.returncode = returncode


class ExecutionTimeoutError(ExecutionError):
    """Raised when a script exceeds its wall-clock bound and is killed."""
    pass


class UnsafeScriptNameError(ExecutionError):
    """Raised when a script name contains characters outside the safe set."""
    pass


class ScriptNotFoundError(ExecutionError):
    """Raised when a script does not exist inside the scripts directory."""
    pass

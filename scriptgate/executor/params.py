"""Declarative parameter schemas and the validator that applies them.

A module declares an ordered list of ``ParameterDefinition`` entries. Caller
input is untrusted: ``validate_parameters`` coerces every supplied value to its
declared type, sanitizes text, applies defaults and validation patterns, and
either returns a complete mapping or raises ``ParameterValidationError`` with
every problem found (never a partial result).

Definitions are checked when they are written, so a default value is always
already coerced to the declared type and matches the pattern. That keeps
validation idempotent: re-validating a validated mapping returns it unchanged.
"""

import json
import logging
import math
import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from scriptgate.core.exceptions import ParameterValidationError

logger = logging.getLogger("scriptgate.params")

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_INTEGER = re.compile(r"^[+-]?\d+$")
_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Numbers reach scripts as flag text; longer numerals are refused.
_MAX_NUMBER_LENGTH = 64
_MAX_INTEGER = 10 ** _MAX_NUMBER_LENGTH

# Parameter names become long-form command-line flags.
PARAMETER_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_-]*$"


class ParameterType(str, Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    array = "array"  # list of strings


class ParameterDefinition(BaseModel):
    """Schema entry describing one input a module accepts."""

    name: str = Field(..., min_length=1, max_length=64, pattern=PARAMETER_NAME_PATTERN)
    description: str = Field(..., min_length=1)
    type: ParameterType
    required: bool = False
    default_value: Optional[Any] = None
    validation_pattern: Optional[str] = None
    validation_message: Optional[str] = None

    class Config:
        extra = "forbid"

    @field_validator("validation_pattern")
    @classmethod
    def _pattern_compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid validation pattern: {e}")
        return value

    @model_validator(mode="after")
    def _check_default(self) -> "ParameterDefinition":
        if self.validation_pattern and self.type is not ParameterType.string:
            raise ValueError(
                f"Parameter {self.name}: validation patterns only apply to string parameters"
            )
        if self.default_value is None:
            return self
        if self.required:
            raise ValueError(
                f"Parameter {self.name} is required and cannot declare a default value"
            )
        value, error = coerce_value(self, self.default_value)
        if error:
            raise ValueError(f"Default value does not match type: {error}")
        if not _matches_pattern(self, value):
            raise ValueError(f"Default value for {self.name} does not match its validation pattern")
        self.default_value = value
        return self


def sanitize_string(value: str) -> str:
    """Strip ASCII control characters, normalize line endings, trim whitespace."""
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    return _CONTROL_CHARS.sub("", value).strip()


def _is_encodable(value: str) -> bool:
    # lone surrogates cannot be turned into argv bytes
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _parse_number(text: str) -> Optional[float]:
    text = text.strip()
    if len(text) > _MAX_NUMBER_LENGTH:
        return None
    try:
        if _INTEGER.match(text):
            return int(text)
        if _DECIMAL.match(text):
            number = float(text)
            return number if math.isfinite(number) else None
    except ValueError:
        return None
    return None


def _coerce_list(name: str, items: Sequence[Any]) -> Tuple[Optional[List[str]], Optional[str]]:
    if not all(isinstance(item, str) for item in items):
        return None, f"Parameter {name} must be a list of strings"
    if not all(_is_encodable(item) for item in items):
        return None, f"Parameter {name} contains invalid characters"
    return [sanitize_string(item) for item in items], None


def coerce_value(definition: ParameterDefinition, value: Any) -> Tuple[Any, Optional[str]]:
    """Coerce a single non-null value to the definition's type.

    Returns ``(value, None)`` on success or ``(None, message)`` on failure.
    """
    name = definition.name
    kind = definition.type

    if kind is ParameterType.string:
        if not isinstance(value, str):
            return None, f"Parameter {name} must be a string"
        if not _is_encodable(value):
            return None, f"Parameter {name} contains invalid characters"
        return sanitize_string(value), None

    if kind is ParameterType.number:
        # bool is an int subclass; it is never a number here
        if isinstance(value, bool):
            return None, f"Parameter {name} must be a number"
        if isinstance(value, (int, float)):
            if isinstance(value, float) and not math.isfinite(value):
                return None, f"Parameter {name} must be a valid number"
            if isinstance(value, int) and abs(value) >= _MAX_INTEGER:
                return None, f"Parameter {name} must be a valid number"
            return value, None
        if isinstance(value, str):
            number = _parse_number(value)
            if number is None:
                return None, f"Parameter {name} must be a valid number"
            return number, None
        return None, f"Parameter {name} must be a number"

    if kind is ParameterType.boolean:
        if isinstance(value, bool):
            return value, None
        if isinstance(value, str):
            lowered = value.lower()
            if lowered == "true":
                return True, None
            if lowered == "false":
                return False, None
        return None, f"Parameter {name} must be a boolean (true/false)"

    if kind is ParameterType.array:
        if isinstance(value, (list, tuple)):
            return _coerce_list(name, value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return _coerce_list(name, parsed)
            if not _is_encodable(value):
                return None, f"Parameter {name} contains invalid characters"
            pieces = [sanitize_string(piece) for piece in value.split(",")]
            return [piece for piece in pieces if piece], None
        return None, f"Parameter {name} must be an array"

    return None, f"Unsupported parameter type: {kind}"


def _matches_pattern(definition: ParameterDefinition, value: Any) -> bool:
    if definition.type is not ParameterType.string or not definition.validation_pattern:
        return True
    return re.search(definition.validation_pattern, value) is not None


def validate_parameters(
    raw_params: Optional[Mapping[str, Any]],
    definitions: Sequence[ParameterDefinition],
) -> Dict[str, Any]:
    """Validate caller parameters against a module's definitions.

    Keys not declared by any definition are dropped. Output order follows
    definition order.

    Raises:
        ParameterValidationError: with one message per problem.
    """
    if raw_params is None:
        raw_params = {}
    if not isinstance(raw_params, Mapping):
        raise ParameterValidationError(["Parameters must be an object"])

    validated: Dict[str, Any] = {}
    errors: List[str] = []

    for definition in definitions:
        name = definition.name
        value = raw_params.get(name)

        if value is None:
            if definition.required:
                errors.append(f"Missing required parameter: {name}")
            elif definition.default_value is not None:
                default = definition.default_value
                validated[name] = list(default) if isinstance(default, list) else default
            continue

        coerced, error = coerce_value(definition, value)
        if error:
            errors.append(error)
            continue

        if not _matches_pattern(definition, coerced):
            errors.append(
                definition.validation_message or f"Invalid format for parameter: {name}"
            )
            continue

        validated[name] = coerced

    if errors:
        logger.warning("Parameter validation failed: %s", "; ".join(errors))
        raise ParameterValidationError(errors)

    return validated

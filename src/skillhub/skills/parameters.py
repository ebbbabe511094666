"""Validate a single caller-supplied value against a declared parameter schema."""

from __future__ import annotations

from skillhub.skills.models import ParameterSchema, ParameterType


def matches_type(param_type: ParameterType, value: object) -> bool:
    """Return True if value is an instance of the JSON type named by param_type."""
    if param_type == ParameterType.STRING:
        return isinstance(value, str)
    if param_type == ParameterType.NUMBER:
        # bool is an int subclass but not a JSON number
        return isinstance(value, int | float) and not isinstance(value, bool)
    if param_type == ParameterType.BOOLEAN:
        return isinstance(value, bool)
    if param_type == ParameterType.OBJECT:
        return isinstance(value, dict)
    if param_type == ParameterType.ARRAY:
        return isinstance(value, list | tuple)
    return False


def describe_type(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list | tuple):
        return "array"
    return type(value).__name__


def validate_parameter_value(param: ParameterSchema, value: object) -> str | None:
    """Check value against param. Returns an error message, or None when valid."""
    if not matches_type(param.type, value):
        return f"Expected {param.type.value}, received {describe_type(value)}"
    if param.enum and param.type == ParameterType.STRING and value not in param.enum:
        allowed = ", ".join(str(v) for v in param.enum)
        return f"Value must be one of: {allowed}"
    return None

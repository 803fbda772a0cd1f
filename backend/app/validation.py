from __future__ import annotations

from typing import Any

from .services.errors import ValidationFailed


_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request payloads.

    Accepts ints and plain digit strings. Floats (even 2.0), decimals,
    scientific notation and booleans are rejected instead of truncated.
    """
    # bool is a subclass of int
    if isinstance(value, bool):
        raise ValidationFailed(f"{field} must be an integer", details={"field": field})
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationFailed(f"{field} must be an integer, not a decimal", details={"field": field})
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationFailed(f"{field} must be a plain integer", details={"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationFailed(f"{field} must be an integer", details={"field": field})
    raise ValidationFailed(f"{field} must be an integer", details={"field": field})


def coerce_bool(value: Any, field: str, *, default: bool = False) -> bool:
    """Accept real booleans and the usual true/false strings; reject anything else."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValidationFailed(f"{field} must be a boolean", details={"field": field, "value": value})

from __future__ import annotations

from decimal import Decimal
from typing import Any

from .utils import to_decimal

# Maximum money value accepted at the boundary: 99,999,999.99
# Matches Numeric(10, 2) columns and prevents overflow.
MAX_MONEY = Decimal("99999999.99")


class ServiceError(Exception):
    """Base class for errors surfaced to API callers with a stable code."""
    code = "SERVER_ERROR"
    status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ServiceError):
    """Precondition or state violation (bad input, illegal transition)."""
    code = "VALIDATION_ERROR"
    status = 422


class ForbiddenError(ServiceError):
    """Role or ownership failure."""
    code = "FORBIDDEN"
    status = 403


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status = 404


class ConflictError(ServiceError):
    """Business rule conflict (e.g., a second order for the same appointment)."""
    code = "CONFLICT"
    status = 409


class DatabaseError(ServiceError):
    """Underlying store failure; surfaced verbatim, never retried locally."""
    code = "DATABASE_ERROR"
    status = 500


# =============================================================================
# COERCION (boundary-level, strict)
# =============================================================================

def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Rejects bools, floats with a fractional part, decimals in strings and
    scientific notation. Integral floats (e.g. 2.0 from JSON clients) pass.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def coerce_optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def coerce_money(value: Any, field: str, *, allow_negative: bool = False) -> Decimal:
    """Accept JSON numbers or numeric strings; range-check against MAX_MONEY."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if not allow_negative and amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    return amount


def coerce_optional_text(value: Any, field: str, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int)):
        raise ValidationError(f"{field} must be a string")
    text = str(value).strip()
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def coerce_choice(value: Any, field: str, choices) -> str:
    if not isinstance(value, str) or value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(choices))}")
    return value


def require_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload

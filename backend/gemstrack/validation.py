from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any


# Upper bound for any single money or weight value accepted from a client.
# Keeps Numeric(14, 2) columns from overflowing.
MAX_AMOUNT = Decimal("999999999999.99")


class GemsTrackError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(GemsTrackError, ValueError):
    """400-level input problem, raised before any transaction is opened."""

    status_code = 400


class ConflictError(GemsTrackError, ValueError):
    """409-level conflict: a referenced row vanished or changed under us."""

    status_code = 409


class ComputationFault(GemsTrackError, ArithmeticError):
    """Pricing produced a non-finite result; the transaction is aborted."""

    status_code = 422


class PersistenceError(GemsTrackError, RuntimeError):
    """The backing store could not be reached."""

    status_code = 503


def to_decimal(value: Any, field: str, *, allow_negative: bool = False) -> Decimal:
    """
    Coerce a client-supplied number into a Decimal.

    - None / "" -> Decimal("0")
    - floats go through str() so 0.1 stays 0.1
    - bools are rejected (True is not a price)
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return Decimal("0")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if result.is_finite():
        if not allow_negative and result < 0:
            raise ValidationError(f"{field} cannot be negative", {"field": field})
        if abs(result) > MAX_AMOUNT:
            raise ValidationError(f"{field} is too large", {"field": field})
    return result


def require_finite(value: Decimal, field: str) -> Decimal:
    if not value.is_finite():
        raise ValidationError(f"{field} must be a finite number", {"field": field})
    return value


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def optional_str(value: Any, max_length: int = 255) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    return s[:max_length]


def require_json_object(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload

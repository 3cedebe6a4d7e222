from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from .money import to_decimal


def require_number(value: Any, field_name: str) -> Decimal:
    number = to_decimal(value)
    if number is None:
        raise ValidationError(f"{field_name} must be a number")
    return number


def require_non_negative(value: Any, field_name: str) -> Decimal:
    number = require_number(value, field_name)
    if number < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return number


def require_percent(value: Any, field_name: str) -> Decimal:
    number = require_number(value, field_name)
    if number < 0 or number > 100:
        raise ValidationError(f"{field_name} must be between 0 and 100")
    return number


def require_editor(current_role: Any) -> None:
    """Only admins and managers may change journals, rules and prices."""
    try:
        role = Role(current_role)
    except ValueError:
        raise AuthorizationError("Unknown role")
    if role not in (Role.ADMIN, Role.MANAGER):
        raise AuthorizationError("Only administrators and managers can change billing data")

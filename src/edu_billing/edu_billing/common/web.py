from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from functools import wraps
from typing import Any

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

EDITOR_ROLES = (Role.ADMIN.value, Role.MANAGER.value)


def to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


def ok(data: Any = None, status: int = 200):
    return jsonify({"success": True, "data": to_jsonable(data)}), status


def fail(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def current_role() -> str:
    return str(session.get("role") or "")


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON object body is required")
    return data


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.get("role"):
            return fail("Please sign in to continue", 401)
        return view(*args, **kwargs)

    return wrapper


def editor_required(view):
    """Admins and managers only; teachers get read access."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.get("role"):
            return fail("Please sign in to continue", 401)
        if current_role() not in EDITOR_ROLES:
            return fail("Only administrators and managers can change billing data", 403)
        return view(*args, **kwargs)

    return wrapper


def api_errors(view):
    """Translate domain errors into JSON responses."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except ValidationError as e:
            return fail(str(e), 400)
        except AuthorizationError as e:
            return fail(str(e), 403)
        except Exception:
            logger.exception("Unhandled error in %s", request.path)
            return fail("Internal error", 500)

    return wrapper


def date_arg(value: Any) -> date:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError("Date must be YYYY-MM-DD")

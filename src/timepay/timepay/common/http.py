from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.capabilities import Actor
from ..core.enums import Role
from ..core.exceptions import (
    ConcurrentModification,
    DomainError,
    ForbiddenError,
    IncompleteAttendanceData,
    InvalidTransition,
    MissingPayGrade,
    NotFoundError,
    ValidationError,
)
from .datetime_utils import parse_iso_date, parse_iso_datetime

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their parents.
ERROR_STATUS: tuple[tuple[type[DomainError], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (InvalidTransition, 409),
    (ConcurrentModification, 409),
    (IncompleteAttendanceData, 422),
    (MissingPayGrade, 422),
)


def status_for(error: DomainError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(error, cls):
            return status
    return 400


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        status = status_for(e)
        logger.info("%s %s -> %s %s", request.method, request.path, status, type(e).__name__)
        return jsonify({"success": False, "message": e.message, **e.to_dict()}), status

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "message": "Internal server error"}), 500


def current_actor() -> Actor:
    """Actor from the session populated by the authentication layer."""
    employee_id = session.get("employee_id")
    role = session.get("role")
    if not employee_id or not role:
        raise ForbiddenError("Login required")
    try:
        return Actor.from_role(str(employee_id), Role(role))
    except ValueError:
        raise ForbiddenError("Unknown role", role=role)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("JSON object expected")
    return data


def date_arg(value: Optional[str], field_name: str) -> date:
    if not value:
        raise ValidationError(f"{field_name} is required", field=field_name)
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be YYYY-MM-DD", field=field_name, value=value)


def datetime_arg(value: Optional[str], field_name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO datetime", field=field_name, value=value)


def optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", field=field_name, value=value)


def to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [to_jsonable(v) for v in value]
        return sorted(items, key=str) if isinstance(value, (set, frozenset)) else items
    return value


def ok(data: Any = None, status: int = 200):
    return jsonify({"success": True, "data": to_jsonable(data)}), status


def enum_arg(cls: type[Enum], value: Any, field_name: str):
    try:
        return cls(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Invalid {field_name}",
            field=field_name,
            value=value,
            expected=[m.value for m in cls],
        )

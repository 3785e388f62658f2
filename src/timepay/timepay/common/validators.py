from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return value.strip()


def require_decimal(value: Any, field_name: str, *, minimum: Optional[Decimal] = Decimal("0")) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number", field=field_name, value=value)
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number", field=field_name, value=value)
    if minimum is not None and amount < minimum:
        raise ValidationError(f"{field_name} must be >= {minimum}", field=field_name, value=value)
    return amount

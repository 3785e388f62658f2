from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from ..core.enums import ConfigKind, ConfigStatus


@dataclass(frozen=True)
class ConfigEntity:
    """A payroll configuration item (allowance, pay grade, tax rule, ...).

    ``data`` holds the kind-specific fields; amounts and rates are stored as
    decimal strings. Only APPROVED entities feed payroll.
    """

    entity_id: int
    kind: ConfigKind
    name: str
    data: dict[str, Any] = field(default_factory=dict)
    employee_id: Optional[str] = None
    status: ConfigStatus = ConfigStatus.DRAFT
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    version: int = 1

    def decimal(self, key: str, default: Optional[Decimal] = None) -> Decimal:
        value = self.data.get(key)
        if value is None:
            if default is None:
                raise KeyError(key)
            return default
        return Decimal(str(value))

    def applies_to(self, employee_id: str) -> bool:
        return self.employee_id is None or self.employee_id == str(employee_id)


# Required ``data`` fields per kind; every listed field is numeric except policy_type.
REQUIRED_FIELDS: dict[ConfigKind, tuple[str, ...]] = {
    ConfigKind.ALLOWANCE: ("amount",),
    ConfigKind.PAY_GRADE: ("base_salary",),
    ConfigKind.PAY_TYPE: ("amount",),
    ConfigKind.TAX_RULE: ("rate",),
    ConfigKind.INSURANCE_BRACKET: ("min_salary", "max_salary", "employee_rate", "employer_rate"),
    ConfigKind.SIGNING_BONUS: ("amount",),
    ConfigKind.TERMINATION_BENEFIT: ("amount",),
    ConfigKind.PAYROLL_POLICY: ("policy_type",),
    ConfigKind.PENALTY: ("amount",),
}

# Kinds that only make sense for a single employee.
PER_EMPLOYEE_KINDS = frozenset(
    {
        ConfigKind.SIGNING_BONUS,
        ConfigKind.TERMINATION_BENEFIT,
        ConfigKind.PENALTY,
    }
)

POLICY_FIELDS: dict[str, str] = {
    "OVERTIME": "multiplier",
    "LATENESS": "rate_per_minute",
}

PERCENT_FIELDS = frozenset({"rate", "employee_rate", "employer_rate"})

"""Capabilities resolved once from the caller's role at the request boundary.

Services only ever check capabilities, never roles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable

from .enums import Role
from .exceptions import ForbiddenError


class Capability(str, Enum):
    RECORD_PUNCH = "RECORD_PUNCH"
    EVALUATE_ATTENDANCE = "EVALUATE_ATTENDANCE"
    RESOLVE_EXCEPTIONS = "RESOLVE_EXCEPTIONS"
    ASSIGN_SHIFTS = "ASSIGN_SHIFTS"
    MANAGE_RULES = "MANAGE_RULES"
    EDIT_CONFIG = "EDIT_CONFIG"
    APPROVE_CONFIG = "APPROVE_CONFIG"
    PREPARE_PAYROLL = "PREPARE_PAYROLL"
    APPROVE_PAYROLL_MANAGER = "APPROVE_PAYROLL_MANAGER"
    APPROVE_PAYROLL_FINANCE = "APPROVE_PAYROLL_FINANCE"
    FREEZE_PAYROLL = "FREEZE_PAYROLL"
    FINALIZE_PAYROLL = "FINALIZE_PAYROLL"


ROLE_CAPABILITIES: dict[Role, FrozenSet[Capability]] = {
    Role.EMPLOYEE: frozenset({Capability.RECORD_PUNCH}),
    Role.HR_ADMIN: frozenset(
        {
            Capability.RECORD_PUNCH,
            Capability.EVALUATE_ATTENDANCE,
            Capability.ASSIGN_SHIFTS,
            Capability.MANAGE_RULES,
        }
    ),
    Role.HR_MANAGER: frozenset(
        {
            Capability.EVALUATE_ATTENDANCE,
            Capability.RESOLVE_EXCEPTIONS,
            Capability.ASSIGN_SHIFTS,
        }
    ),
    Role.PAYROLL_SPECIALIST: frozenset(
        {
            Capability.EDIT_CONFIG,
            Capability.PREPARE_PAYROLL,
        }
    ),
    Role.PAYROLL_MANAGER: frozenset(
        {
            Capability.APPROVE_CONFIG,
            Capability.APPROVE_PAYROLL_MANAGER,
            Capability.FREEZE_PAYROLL,
        }
    ),
    Role.FINANCE_STAFF: frozenset({Capability.APPROVE_PAYROLL_FINANCE}),
    Role.SYSTEM: frozenset(
        {
            Capability.EVALUATE_ATTENDANCE,
            Capability.FINALIZE_PAYROLL,
        }
    ),
}


@dataclass(frozen=True)
class Actor:
    """Who is calling, with the capabilities their role grants."""

    employee_id: str
    role: Role
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)

    @classmethod
    def from_role(cls, employee_id: str, role: Role | str) -> "Actor":
        role = Role(role)
        return cls(
            employee_id=str(employee_id),
            role=role,
            capabilities=ROLE_CAPABILITIES.get(role, frozenset()),
        )

    def require_any(self, capabilities: Iterable[Capability]) -> None:
        wanted = frozenset(capabilities)
        if not wanted & self.capabilities:
            raise ForbiddenError(
                f"Role {self.role.value} lacks any of {sorted(c.value for c in wanted)}",
                actor=self.employee_id,
                capabilities=wanted,
            )

    def require(self, capability: Capability) -> None:
        if capability not in self.capabilities:
            raise ForbiddenError(
                f"Role {self.role.value} lacks {capability.value}",
                actor=self.employee_id,
                capability=capability,
            )

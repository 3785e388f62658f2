from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import EmployeeStatus


@dataclass(frozen=True)
class Employee:
    """Directory view of an employee; the HR system of record owns the data."""

    employee_id: str
    full_name: str
    pay_grade_id: Optional[int] = None
    manager_id: Optional[str] = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    bank_account: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == EmployeeStatus.ACTIVE

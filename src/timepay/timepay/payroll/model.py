from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

from ..core.constants import CENTS
from ..core.enums import PayRollPaymentStatus, PayRollStatus, PaySlipPaymentStatus, RunEvent
from ..core.exceptions import ValidationError

ZERO = Decimal("0.00")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PayrollPeriod:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValidationError("Payroll period end must be >= start", start=self.start, end=self.end)

    def label(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


class LineItemKind(str, Enum):
    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"


@dataclass(frozen=True)
class LineItem:
    kind: LineItemKind
    code: str
    label: str
    amount: Decimal


@dataclass(frozen=True)
class PayrollLine:
    """One employee's computed pay for a run; all money quantized to cents."""

    employee_id: str
    worked_hours: Decimal = ZERO
    overtime_minutes: int = 0
    lateness_minutes: int = 0
    base_salary: Decimal = ZERO
    allowances: Decimal = ZERO
    bonuses: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    termination_benefits: Decimal = ZERO
    penalties: Decimal = ZERO
    gross: Decimal = ZERO
    taxes: Decimal = ZERO
    insurance: Decimal = ZERO
    employer_insurance: Decimal = ZERO
    net: Decimal = ZERO
    items: tuple[LineItem, ...] = ()

    def earnings(self) -> tuple[LineItem, ...]:
        return tuple(i for i in self.items if i.kind == LineItemKind.EARNING)

    def deductions(self) -> tuple[LineItem, ...]:
        return tuple(i for i in self.items if i.kind == LineItemKind.DEDUCTION)


class RunExceptionReason(str, Enum):
    INCOMPLETE_ATTENDANCE = "INCOMPLETE_ATTENDANCE"
    MISSING_PAY_GRADE = "MISSING_PAY_GRADE"
    UNKNOWN_EMPLOYEE = "UNKNOWN_EMPLOYEE"
    NEGATIVE_NET_PAY = "NEGATIVE_NET_PAY"
    MISSING_BANK_DETAILS = "MISSING_BANK_DETAILS"


@dataclass(frozen=True)
class RunException:
    """Payroll-level flag raised while generating a draft; blocks submission until resolved."""

    employee_id: str
    reason: RunExceptionReason
    resolved: bool = False
    note: Optional[str] = None


@dataclass(frozen=True)
class HistoryEntry:
    event: RunEvent
    actor_id: str
    from_status: PayRollStatus
    to_status: PayRollStatus
    at: datetime
    note: Optional[str] = None


@dataclass(frozen=True)
class PayrollRun:
    run_id: str
    period: PayrollPeriod
    status: PayRollStatus
    payroll_specialist_id: str
    employees: tuple[str, ...] = ()
    lines: tuple[PayrollLine, ...] = ()
    exceptions: tuple[RunException, ...] = ()
    total_net_pay: Decimal = ZERO
    payment_status: PayRollPaymentStatus = PayRollPaymentStatus.PENDING
    payroll_manager_id: Optional[str] = None
    finance_staff_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    unlock_reason: Optional[str] = None
    manager_approval_date: Optional[datetime] = None
    finance_approval_date: Optional[datetime] = None
    frozen: bool = False
    version: int = 1
    history: tuple[HistoryEntry, ...] = ()

    def unresolved_exceptions(self) -> tuple[RunException, ...]:
        return tuple(e for e in self.exceptions if not e.resolved)

    def line_for(self, employee_id: str) -> Optional[PayrollLine]:
        for line in self.lines:
            if line.employee_id == employee_id:
                return line
        return None


@dataclass(frozen=True)
class Payslip:
    """Immutable snapshot of a run line at finalization."""

    payslip_id: str
    run_id: str
    employee_id: str
    period: PayrollPeriod
    earnings: tuple[LineItem, ...]
    deductions: tuple[LineItem, ...]
    gross: Decimal
    net: Decimal
    payment_status: PaySlipPaymentStatus
    created_at: datetime

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller roles as established by the external authentication layer."""

    EMPLOYEE = "employee"
    HR_ADMIN = "hr_admin"
    HR_MANAGER = "hr_manager"
    PAYROLL_SPECIALIST = "payroll_specialist"
    PAYROLL_MANAGER = "payroll_manager"
    FINANCE_STAFF = "finance_staff"
    SYSTEM = "system"


class PunchType(str, Enum):
    IN = "IN"
    OUT = "OUT"


class AttendanceStatus(str, Enum):
    """Normalized day status, one per attendance record."""

    MISSING_PUNCH = "MISSING_PUNCH"
    HOLIDAY = "HOLIDAY"
    REST_DAY = "REST_DAY"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EARLY_LEAVE = "EARLY_LEAVE"
    SHORT_TIME = "SHORT_TIME"
    OVERTIME = "OVERTIME"
    PRESENT = "PRESENT"


class ExceptionType(str, Enum):
    MISSED_PUNCH = "MISSED_PUNCH"
    OVERTIME = "OVERTIME"
    SHORT_TIME = "SHORT_TIME"
    LATE = "LATE"
    EARLY_LEAVE = "EARLY_LEAVE"


class RuleType(str, Enum):
    LATENESS = "LATENESS"
    OVERTIME = "OVERTIME"
    SHORT_TIME = "SHORT_TIME"
    HOLIDAY = "HOLIDAY"
    REST_DAY = "REST_DAY"


class CalculationMethod(str, Enum):
    """How fractional minutes are rounded."""

    FLOOR = "FLOOR"
    NEAREST = "NEAREST"
    CEIL = "CEIL"


class ShiftAssignmentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class PayRollStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_MANAGER_APPROVAL = "PENDING_MANAGER_APPROVAL"
    MANAGER_APPROVED = "MANAGER_APPROVED"
    PENDING_FINANCE_APPROVAL = "PENDING_FINANCE_APPROVAL"
    FINANCE_APPROVED = "FINANCE_APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"


class RunEvent(str, Enum):
    SUBMIT = "submit"
    MANAGER_APPROVE = "manager_approve"
    SEND_TO_FINANCE = "send_to_finance"
    FINANCE_APPROVE = "finance_approve"
    REJECT = "reject"
    EDIT_PERIOD = "edit_period"
    FINALIZE = "finalize"
    FREEZE = "freeze"
    UNFREEZE = "unfreeze"


class PayRollPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class PaySlipPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class ConfigStatus(str, Enum):
    """Lifecycle of a payroll configuration entity (editable only in DRAFT)."""

    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ConfigKind(str, Enum):
    ALLOWANCE = "ALLOWANCE"
    PAY_GRADE = "PAY_GRADE"
    PAY_TYPE = "PAY_TYPE"
    TAX_RULE = "TAX_RULE"
    INSURANCE_BRACKET = "INSURANCE_BRACKET"
    SIGNING_BONUS = "SIGNING_BONUS"
    TERMINATION_BENEFIT = "TERMINATION_BENEFIT"
    PAYROLL_POLICY = "PAYROLL_POLICY"
    PENALTY = "PENALTY"


class EmployeeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    TERMINATED = "TERMINATED"

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Sequence

from ..attendance.ledger import ExceptionLedger
from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..core.constants import PAY_DAYS_PER_MONTH, PAY_HOURS_PER_DAY
from ..core.enums import ConfigKind, ConfigStatus
from ..core.exceptions import MissingPayGrade, NotFoundError
from ..employees.model import Employee
from ..employees.repository import EmployeeDirectory
from ..payroll_config.model import ConfigEntity
from ..payroll_config.service import ConfigService
from .model import LineItem, LineItemKind, PayrollLine, PayrollPeriod, ZERO, money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


class PayrollInputAggregator:
    """Builds one employee's PayrollLine from evaluated attendance and APPROVED configuration.

    gross = base + allowances + bonuses + overtime pay + termination benefits - penalties
    net   = gross - taxes - employee insurance
    """

    def __init__(
        self,
        employees: EmployeeDirectory,
        attendance: AttendanceRepository,
        ledger: ExceptionLedger,
        configs: ConfigService,
    ):
        self._employees = employees
        self._attendance = attendance
        self._ledger = ledger
        self._configs = configs

    def aggregate(self, employee_id: str, period: PayrollPeriod) -> PayrollLine:
        employee = self._employees.get_employee(str(employee_id))
        if not employee:
            raise NotFoundError("Employee not found", employee_id=employee_id)

        self._ledger.ensure_clear(employee.employee_id, period.start, period.end)
        grade = self._pay_grade(employee)

        records = self._attendance.list_for_employee(employee.employee_id, start=period.start, end=period.end)
        worked_minutes = sum(int(r.worked_minutes or 0) for r in records)
        overtime_minutes = sum(int(r.overtime_minutes or 0) for r in records)
        lateness_minutes = self._chargeable_lateness(records)

        items: list[LineItem] = []

        def earning(code: str, label: str, amount: Decimal) -> Decimal:
            amount = money(amount)
            if amount:
                items.append(LineItem(LineItemKind.EARNING, code, label, amount))
            return amount

        def deduction(code: str, label: str, amount: Decimal) -> Decimal:
            amount = money(amount)
            if amount:
                items.append(LineItem(LineItemKind.DEDUCTION, code, label, amount))
            return amount

        base = earning("BASE_SALARY", grade.name, grade.decimal("base_salary"))
        hourly_rate = grade.decimal("base_salary") / PAY_DAYS_PER_MONTH / PAY_HOURS_PER_DAY

        allowances = sum(
            (earning("ALLOWANCE", e.name, e.decimal("amount")) for e in self._approved(ConfigKind.ALLOWANCE, employee)),
            ZERO,
        )
        bonuses = sum(
            (earning("SIGNING_BONUS", e.name, e.decimal("amount")) for e in self._own(ConfigKind.SIGNING_BONUS, employee)),
            ZERO,
        )

        overtime_pay = ZERO
        if overtime_minutes:
            multiplier = self._policy_value("OVERTIME", "multiplier", Decimal("1"))
            overtime_pay = earning(
                "OVERTIME",
                f"Overtime {overtime_minutes} min",
                Decimal(overtime_minutes) / 60 * hourly_rate * multiplier,
            )

        termination = sum(
            (
                earning("TERMINATION_BENEFIT", e.name, e.decimal("amount"))
                for e in self._own(ConfigKind.TERMINATION_BENEFIT, employee)
            ),
            ZERO,
        )

        penalties = sum(
            (deduction("PENALTY", e.name, e.decimal("amount")) for e in self._own(ConfigKind.PENALTY, employee)),
            ZERO,
        )
        if lateness_minutes:
            rate = self._policy_value("LATENESS", "rate_per_minute", ZERO)
            penalties += deduction("LATENESS", f"Lateness {lateness_minutes} min", Decimal(lateness_minutes) * rate)

        gross = money(base + allowances + bonuses + overtime_pay + termination - penalties)

        taxes = ZERO
        if gross > 0:
            for rule in self._approved(ConfigKind.TAX_RULE, employee):
                taxes += deduction("TAX", rule.name, gross * rule.decimal("rate") / HUNDRED)

        insurance = employer_insurance = ZERO
        bracket = self._bracket_for(gross, employee)
        if bracket is not None:
            insurance = deduction("INSURANCE", bracket.name, gross * bracket.decimal("employee_rate") / HUNDRED)
            employer_insurance = money(gross * bracket.decimal("employer_rate") / HUNDRED)

        net = money(gross - taxes - insurance)
        line = PayrollLine(
            employee_id=employee.employee_id,
            worked_hours=money(Decimal(worked_minutes) / 60),
            overtime_minutes=overtime_minutes,
            lateness_minutes=lateness_minutes,
            base_salary=base,
            allowances=money(allowances),
            bonuses=money(bonuses),
            overtime_pay=overtime_pay,
            termination_benefits=money(termination),
            penalties=money(penalties),
            gross=gross,
            taxes=money(taxes),
            insurance=insurance,
            employer_insurance=employer_insurance,
            net=net,
            items=tuple(items),
        )
        logger.debug("Aggregated %s for %s: gross=%s net=%s", employee.employee_id, period.label(), gross, net)
        return line

    def _pay_grade(self, employee: Employee) -> ConfigEntity:
        if employee.pay_grade_id is not None:
            try:
                grade = self._configs.get(employee.pay_grade_id)
            except NotFoundError:
                grade = None
            if grade and grade.kind == ConfigKind.PAY_GRADE and grade.status == ConfigStatus.APPROVED:
                return grade
        else:
            own = self._own(ConfigKind.PAY_GRADE, employee)
            if own:
                return own[-1]

        raise MissingPayGrade(
            f"Employee {employee.employee_id} has no approved pay grade",
            employee_id=employee.employee_id,
            pay_grade_id=employee.pay_grade_id,
        )

    def _approved(self, kind: ConfigKind, employee: Employee) -> list[ConfigEntity]:
        return self._configs.approved(kind, employee.employee_id)

    def _own(self, kind: ConfigKind, employee: Employee) -> list[ConfigEntity]:
        return [e for e in self._configs.approved(kind, employee.employee_id) if e.employee_id == employee.employee_id]

    def _policy_value(self, policy_type: str, field_name: str, default: Decimal) -> Decimal:
        policies = [
            p for p in self._configs.approved(ConfigKind.PAYROLL_POLICY) if p.data.get("policy_type") == policy_type
        ]
        if not policies:
            return default
        # latest approved policy wins
        return policies[-1].decimal(field_name, default)

    def _bracket_for(self, gross: Decimal, employee: Employee) -> Optional[ConfigEntity]:
        for bracket in self._approved(ConfigKind.INSURANCE_BRACKET, employee):
            if bracket.decimal("min_salary") <= gross <= bracket.decimal("max_salary"):
                return bracket
        return None

    @staticmethod
    def _chargeable_lateness(records: Sequence[AttendanceRecord]) -> int:
        return sum(int(r.lateness_minutes or 0) for r in records if not r.penalties_suppressed)

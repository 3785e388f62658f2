from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, time
from typing import Optional

import pytest

from src.timepay.timepay.attendance.corrections import RecordCorrectionService
from src.timepay.timepay.attendance.evaluator import AttendanceRuleEvaluator
from src.timepay.timepay.attendance.ledger import ExceptionLedger
from src.timepay.timepay.attendance.model import AttendanceRecord
from src.timepay.timepay.attendance.service import AttendanceService
from src.timepay.timepay.common.locking import KeyedLock
from src.timepay.timepay.core.capabilities import Actor
from src.timepay.timepay.core.enums import ConfigStatus, Role, RuleType, ShiftAssignmentStatus
from src.timepay.timepay.core.exceptions import ConcurrentModification
from src.timepay.timepay.employees.model import Employee
from src.timepay.timepay.notifications.dispatcher import NotificationDispatcher
from src.timepay.timepay.payroll.aggregator import PayrollInputAggregator
from src.timepay.timepay.payroll.finalizer import PayslipFinalizer
from src.timepay.timepay.payroll.run_service import PayrollRunService
from src.timepay.timepay.payroll_config.service import ConfigService
from src.timepay.timepay.rules.service import RuleConfigService
from src.timepay.timepay.shifts.model import Shift, ShiftAssignment
from src.timepay.timepay.shifts.service import ShiftAssignmentService


# -- in-memory repositories ----------------------------------------------


class InMemoryRules:
    def __init__(self):
        self._rows = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def get_by_id(self, rule_id):
        return self._rows.get(rule_id)

    def list_for_scope(self, scope, *, active_only=False):
        return [r for r in self._rows.values() if r.scope == scope and (r.active or not active_only)]

    def find_active(self, rule_type, scope):
        return [r for r in self._rows.values() if r.rule_type == rule_type and r.scope == scope and r.active]

    def create(self, rule):
        with self._lock:
            rule_id = self._next_id
            self._next_id += 1
            self._rows[rule_id] = replace(rule, rule_id=rule_id)
            return rule_id

    def save(self, rule, *, expected_version):
        with self._lock:
            stored = self._rows.get(rule.rule_id)
            if not stored or stored.version != expected_version:
                return False
            self._rows[rule.rule_id] = rule
            return True


class InMemoryShifts:
    def __init__(self, shifts=()):
        self._rows = {s.shift_id: s for s in shifts}

    def list_all(self):
        return list(self._rows.values())

    def get_by_id(self, shift_id):
        return self._rows.get(shift_id)


class InMemoryAssignments:
    def __init__(self):
        self._rows = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def get_by_id(self, assignment_id):
        return self._rows.get(assignment_id)

    def list_for_employee(self, employee_id, *, on_date=None):
        rows = [a for a in self._rows.values() if a.employee_id == employee_id]
        if on_date is not None:
            rows = [a for a in rows if a.covers(on_date)]
        return sorted(rows, key=lambda a: (a.start_date, a.assignment_id), reverse=True)

    def create(self, assignment):
        with self._lock:
            assignment_id = self._next_id
            self._next_id += 1
            self._rows[assignment_id] = replace(assignment, assignment_id=assignment_id)
            return assignment_id

    def save(self, assignment, *, expected_version):
        with self._lock:
            stored = self._rows.get(assignment.assignment_id)
            if not stored or stored.version != expected_version:
                return False
            self._rows[assignment.assignment_id] = assignment
            return True


class InMemoryAttendance:
    def __init__(self):
        self._rows: dict[int, AttendanceRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self.saves = 0

    def get_by_id(self, record_id):
        return self._rows.get(record_id)

    def get_for_employee_and_date(self, employee_id, work_date):
        for r in self._rows.values():
            if r.employee_id == employee_id and r.work_date == work_date:
                return r
        return None

    def list_for_employee(self, employee_id, *, start, end):
        rows = [r for r in self._rows.values() if r.employee_id == employee_id and start <= r.work_date <= end]
        return sorted(rows, key=lambda r: r.work_date)

    def list_with_unresolved(self, *, start, end, employee_id=None):
        rows = [
            r
            for r in self._rows.values()
            if start <= r.work_date <= end
            and r.has_unresolved()
            and (employee_id is None or r.employee_id == employee_id)
        ]
        return sorted(rows, key=lambda r: (r.employee_id, r.work_date))

    def create(self, record):
        with self._lock:
            if self.get_for_employee_and_date(record.employee_id, record.work_date):
                raise ConcurrentModification("Attendance record already exists", employee_id=record.employee_id)
            record_id = self._next_id
            self._next_id += 1
            self._rows[record_id] = replace(record, record_id=record_id)
            return record_id

    def save(self, record, *, expected_version):
        with self._lock:
            stored = self._rows.get(record.record_id)
            if not stored or stored.version != expected_version:
                return False
            self._rows[record.record_id] = record
            self.saves += 1
            return True

    def put(self, record):
        """Seed a record as if stored by an earlier evaluation."""
        record_id = self.create(record)
        return self._rows[record_id]


class InMemoryEmployees:
    def __init__(self, employees=()):
        self._rows = {e.employee_id: e for e in employees}

    def get_employee(self, employee_id):
        return self._rows.get(employee_id)

    def list_active(self):
        return [e for e in self._rows.values() if e.is_active]

    def add(self, employee):
        self._rows[employee.employee_id] = employee


class InMemoryConfigs:
    def __init__(self):
        self._rows = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def get_by_id(self, entity_id):
        return self._rows.get(entity_id)

    def list(self, *, kind=None, status=None):
        return [
            e
            for e in sorted(self._rows.values(), key=lambda e: e.entity_id)
            if (kind is None or e.kind == kind) and (status is None or e.status == status)
        ]

    def create(self, entity):
        with self._lock:
            entity_id = self._next_id
            self._next_id += 1
            self._rows[entity_id] = replace(entity, entity_id=entity_id)
            return entity_id

    def save(self, entity, *, expected_version):
        with self._lock:
            stored = self._rows.get(entity.entity_id)
            if not stored or stored.version != expected_version:
                return False
            self._rows[entity.entity_id] = entity
            return True

    def delete(self, entity_id, *, expected_version):
        with self._lock:
            stored = self._rows.get(entity_id)
            if not stored or stored.version != expected_version:
                return False
            del self._rows[entity_id]
            return True


class InMemoryRuns:
    def __init__(self):
        self._rows = {}
        self._lock = threading.Lock()

    def get_by_id(self, run_id):
        return self._rows.get(run_id)

    def list(self, *, status=None):
        return [r for r in self._rows.values() if status is None or r.status == status]

    def create(self, run):
        with self._lock:
            if run.run_id in self._rows:
                raise ConcurrentModification("Payroll run already exists", run_id=run.run_id)
            self._rows[run.run_id] = run

    def save(self, run, *, expected_version):
        with self._lock:
            stored = self._rows.get(run.run_id)
            if not stored or stored.version != expected_version:
                return False
            self._rows[run.run_id] = run
            return True


class InMemoryPayslips:
    def __init__(self):
        self._rows = {}

    def get_by_id(self, payslip_id):
        return self._rows.get(payslip_id)

    def list_for_run(self, run_id):
        return sorted((p for p in self._rows.values() if p.run_id == run_id), key=lambda p: p.employee_id)

    def list_for_employee(self, employee_id):
        return [p for p in self._rows.values() if p.employee_id == employee_id]

    def create_many(self, payslips):
        for p in payslips:
            self._rows[p.payslip_id] = p

    def save(self, payslip):
        if payslip.payslip_id not in self._rows:
            return False
        self._rows[payslip.payslip_id] = payslip
        return True


class RecordingNotifier:
    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.sent = []

    def notify(self, recipient_id, title, message, related_entity_id=None):
        if self.fail:
            raise RuntimeError("mail server down")
        self.sent.append((recipient_id, title, message, related_entity_id))


# -- fixtures ------------------------------------------------------------

WORK_DAY = date(2025, 3, 3)  # a Monday


@pytest.fixture
def fixed_now():
    return datetime(2025, 3, 3, 9, 0, 0)


@pytest.fixture
def office_shift():
    return Shift(shift_id=1, shift_name="Office", start_time=time(9, 0), end_time=time(17, 0))


@pytest.fixture
def night_shift():
    return Shift(shift_id=2, shift_name="Night", start_time=time(22, 0), end_time=time(6, 0))


def _actor(employee_id: str, role: Role) -> Actor:
    return Actor.from_role(employee_id, role)


@pytest.fixture
def employee():
    return _actor("E001", Role.EMPLOYEE)


@pytest.fixture
def hr_admin():
    return _actor("H001", Role.HR_ADMIN)


@pytest.fixture
def hr_manager():
    return _actor("H002", Role.HR_MANAGER)


@pytest.fixture
def specialist():
    return _actor("S001", Role.PAYROLL_SPECIALIST)


@pytest.fixture
def other_specialist():
    return _actor("S002", Role.PAYROLL_SPECIALIST)


@pytest.fixture
def manager():
    return _actor("M001", Role.PAYROLL_MANAGER)


@pytest.fixture
def finance():
    return _actor("F001", Role.FINANCE_STAFF)


@pytest.fixture
def system_actor():
    return _actor("system", Role.SYSTEM)


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def rules_repo():
    return InMemoryRules()


@pytest.fixture
def shifts_repo(office_shift, night_shift):
    return InMemoryShifts([office_shift, night_shift])


@pytest.fixture
def assignments_repo():
    return InMemoryAssignments()


@pytest.fixture
def attendance_repo():
    return InMemoryAttendance()


@pytest.fixture
def configs_repo():
    return InMemoryConfigs()


@pytest.fixture
def runs_repo():
    return InMemoryRuns()


@pytest.fixture
def payslips_repo():
    return InMemoryPayslips()


@pytest.fixture
def directory():
    return InMemoryEmployees(
        [
            Employee(employee_id="E001", full_name="Alice", manager_id="M001", bank_account="DE001"),
            Employee(employee_id="E002", full_name="Bob", manager_id="M001", bank_account="DE002"),
            Employee(employee_id="S001", full_name="Sam", manager_id="M001", bank_account="DE003"),
        ]
    )


@pytest.fixture
def rule_service(rules_repo, locks):
    return RuleConfigService(rules_repo, locks=locks)


@pytest.fixture
def shift_service(shifts_repo, assignments_repo, locks):
    return ShiftAssignmentService(shifts_repo, assignments_repo, locks=locks)


@pytest.fixture
def attendance_service(attendance_repo, shift_service, rule_service, locks):
    return AttendanceService(
        attendance_repo,
        shift_service,
        rule_service,
        evaluator=AttendanceRuleEvaluator(),
        locks=locks,
    )


@pytest.fixture
def ledger(attendance_repo, locks):
    return ExceptionLedger(attendance_repo, RecordCorrectionService(attendance_repo), locks=locks)


@pytest.fixture
def config_service(configs_repo, locks, fixed_now):
    return ConfigService(configs_repo, locks=locks, clock=lambda: fixed_now)


@pytest.fixture
def aggregator(directory, attendance_repo, ledger, config_service):
    return PayrollInputAggregator(directory, attendance_repo, ledger, config_service)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier, max_attempts=3)


@pytest.fixture
def finalizer(payslips_repo, fixed_now):
    return PayslipFinalizer(payslips_repo, clock=lambda: fixed_now)


@pytest.fixture
def run_service(runs_repo, aggregator, finalizer, directory, dispatcher, locks, fixed_now):
    return PayrollRunService(
        runs_repo,
        aggregator,
        finalizer,
        employees=directory,
        dispatcher=dispatcher,
        locks=locks,
        clock=lambda: fixed_now,
    )


@pytest.fixture
def assign_office(shift_service, hr_admin, hr_manager, office_shift):
    """Give an employee an APPROVED office-shift assignment."""

    def _assign(employee_id: str = "E001", start: date = date(2025, 1, 1)) -> ShiftAssignment:
        assignment = shift_service.assign(hr_admin, employee_id=employee_id, shift_id=office_shift.shift_id, start_date=start)
        return shift_service.update_status(hr_manager, assignment.assignment_id, ShiftAssignmentStatus.APPROVED)

    return _assign


@pytest.fixture
def active_rule(rule_service, hr_admin):
    def _make(rule_type: RuleType, **kwargs):
        rule = rule_service.create(hr_admin, rule_type=rule_type, **kwargs)
        return rule_service.activate(hr_admin, rule.rule_id)

    return _make


@pytest.fixture
def approved_config(config_service, specialist, manager):
    def _make(kind, name, data, employee_id: Optional[str] = None):
        entity = config_service.create(specialist, kind=kind, name=name, data=data, employee_id=employee_id)
        return config_service.update_status(manager, entity.entity_id, ConfigStatus.APPROVED)

    return _make

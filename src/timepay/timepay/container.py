from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.corrections import RecordCorrectionService
from .attendance.evaluator import AttendanceRuleEvaluator
from .attendance.factory import AttendanceStrategyFactory
from .attendance.ledger import ExceptionLedger
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .common.locking import KeyedLock
from .core.constants import DEFAULT_GRACE_MINUTES, DEFAULT_RULE_SCOPE, NOTIFY_MAX_ATTEMPTS
from .database.connection import DBConfig, DatabaseConnection
from .employees.mysql_employee_directory import MySQLEmployeeDirectory
from .notifications.dispatcher import NotificationDispatcher
from .notifications.notifier import LoggingNotifier, Notifier
from .payroll.aggregator import PayrollInputAggregator
from .payroll.finalizer import PayslipFinalizer
from .payroll.mysql_payroll_repository import MySQLPayrollRunRepository, MySQLPayslipRepository
from .payroll.run_service import PayrollRunService
from .payroll_config.mysql_config_repository import MySQLConfigRepository
from .payroll_config.service import ConfigService
from .rules.mysql_rule_repository import MySQLRuleConfigRepository
from .rules.service import RuleConfigService
from .shifts.mysql_shift_repository import MySQLShiftAssignmentRepository, MySQLShiftRepository
from .shifts.service import ShiftAssignmentService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    rule_scope: str

    rule_service: RuleConfigService
    shift_service: ShiftAssignmentService
    attendance_service: AttendanceService
    exception_ledger: ExceptionLedger
    config_service: ConfigService
    payslip_finalizer: PayslipFinalizer
    payroll_run_service: PayrollRunService
    notifications: NotificationDispatcher


def build_container(
    *,
    db_config: dict,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
    rule_scope: str = DEFAULT_RULE_SCOPE,
    notify_max_attempts: int = NOTIFY_MAX_ATTEMPTS,
    notifier: Optional[Notifier] = None,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))

    # One lock registry: every key space (runs, records, configs, rules) shares it.
    locks = KeyedLock()

    attendance_repo = MySQLAttendanceRepository(conn)
    employees = MySQLEmployeeDirectory(conn)

    rule_service = RuleConfigService(MySQLRuleConfigRepository(conn), locks=locks)
    shift_service = ShiftAssignmentService(MySQLShiftRepository(conn), MySQLShiftAssignmentRepository(conn), locks=locks)
    attendance_service = AttendanceService(
        attendance_repo,
        shift_service,
        rule_service,
        evaluator=AttendanceRuleEvaluator(AttendanceStrategyFactory(), default_grace_minutes=int(grace_minutes)),
        locks=locks,
        rule_scope=rule_scope,
    )
    exception_ledger = ExceptionLedger(attendance_repo, RecordCorrectionService(attendance_repo), locks=locks)
    config_service = ConfigService(MySQLConfigRepository(conn), locks=locks)
    payslip_finalizer = PayslipFinalizer(MySQLPayslipRepository(conn))
    notifications = NotificationDispatcher(notifier or LoggingNotifier(), max_attempts=notify_max_attempts)
    payroll_run_service = PayrollRunService(
        MySQLPayrollRunRepository(conn),
        PayrollInputAggregator(employees, attendance_repo, exception_ledger, config_service),
        payslip_finalizer,
        employees=employees,
        dispatcher=notifications,
        locks=locks,
    )

    return Container(
        conn=conn,
        rule_scope=rule_scope,
        rule_service=rule_service,
        shift_service=shift_service,
        attendance_service=attendance_service,
        exception_ledger=exception_ledger,
        config_service=config_service,
        payslip_finalizer=payslip_finalizer,
        payroll_run_service=payroll_run_service,
        notifications=notifications,
    )

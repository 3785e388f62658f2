from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence

import mysql.connector

from ..core.enums import PayRollPaymentStatus, PayRollStatus, PaySlipPaymentStatus
from ..core.exceptions import ConcurrentModification
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import PayrollPeriod, PayrollRun, Payslip
from .repository import PayrollRunRepository, PayslipRepository
from .serialization import (
    dump_exceptions,
    dump_history,
    dump_items,
    dump_lines,
    load_exceptions,
    load_history,
    load_items,
    load_lines,
)


class MySQLPayrollRunRepository(PayrollRunRepository):
    _COLUMNS = """
        run_id, period_start, period_end, status, employees, run_lines, exceptions, total_net_pay,
        payroll_specialist_id, payment_status, payroll_manager_id, finance_staff_id,
        rejection_reason, unlock_reason, manager_approval_date, finance_approval_date,
        frozen, version, history
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, run_id: str) -> Optional[PayrollRun]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {self._COLUMNS} FROM payroll_runs WHERE run_id=%s", (str(run_id),))
            r = fetchone(cur)
            return self._to_run(r) if r else None

    def list(self, *, status: Optional[PayRollStatus] = None) -> Sequence[PayrollRun]:
        sql = f"SELECT {self._COLUMNS} FROM payroll_runs"
        params: tuple = ()
        if status is not None:
            sql += " WHERE status=%s"
            params = (PayRollStatus(status).value,)
        sql += " ORDER BY period_start DESC, run_id"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [self._to_run(r) for r in fetchall(cur)]

    def create(self, run: PayrollRun) -> None:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO payroll_runs(
                        run_id, period_start, period_end, status, employees, run_lines, exceptions,
                        total_net_pay, payroll_specialist_id, payment_status, payroll_manager_id,
                        finance_staff_id, rejection_reason, unlock_reason, manager_approval_date,
                        finance_approval_date, frozen, version, history
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (run.run_id,) + self._params(run),
                )
        except mysql.connector.IntegrityError:
            raise ConcurrentModification("Payroll run already exists", run_id=run.run_id)

    def save(self, run: PayrollRun, *, expected_version: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE payroll_runs
                SET period_start=%s, period_end=%s, status=%s, employees=%s, run_lines=%s, exceptions=%s,
                    total_net_pay=%s, payroll_specialist_id=%s, payment_status=%s, payroll_manager_id=%s,
                    finance_staff_id=%s, rejection_reason=%s, unlock_reason=%s, manager_approval_date=%s,
                    finance_approval_date=%s, frozen=%s, version=%s, history=%s
                WHERE run_id=%s AND version=%s
                """,
                self._params(run) + (run.run_id, int(expected_version)),
            )
            return cur.rowcount > 0

    @staticmethod
    def _params(run: PayrollRun) -> tuple:
        return (
            run.period.start,
            run.period.end,
            run.status.value,
            dump_json(list(run.employees)),
            dump_lines(run.lines),
            dump_exceptions(run.exceptions),
            str(run.total_net_pay),
            run.payroll_specialist_id,
            run.payment_status.value,
            run.payroll_manager_id,
            run.finance_staff_id,
            run.rejection_reason,
            run.unlock_reason,
            run.manager_approval_date,
            run.finance_approval_date,
            int(run.frozen),
            int(run.version),
            dump_history(run.history),
        )

    @staticmethod
    def _to_run(r: dict) -> PayrollRun:
        return PayrollRun(
            run_id=r["run_id"],
            period=PayrollPeriod(start=r["period_start"], end=r["period_end"]),
            status=PayRollStatus(r["status"]),
            payroll_specialist_id=str(r["payroll_specialist_id"]),
            employees=tuple(str(e) for e in load_json(r.get("employees"), [])),
            lines=load_lines(r.get("run_lines")),
            exceptions=load_exceptions(r.get("exceptions")),
            total_net_pay=Decimal(str(r.get("total_net_pay") or "0.00")),
            payment_status=PayRollPaymentStatus(r.get("payment_status") or PayRollPaymentStatus.PENDING.value),
            payroll_manager_id=r.get("payroll_manager_id"),
            finance_staff_id=r.get("finance_staff_id"),
            rejection_reason=r.get("rejection_reason"),
            unlock_reason=r.get("unlock_reason"),
            manager_approval_date=r.get("manager_approval_date"),
            finance_approval_date=r.get("finance_approval_date"),
            frozen=bool(r.get("frozen")),
            version=int(r.get("version") or 1),
            history=load_history(r.get("history")),
        )


class MySQLPayslipRepository(PayslipRepository):
    _COLUMNS = """
        payslip_id, run_id, employee_id, period_start, period_end, earnings, deductions,
        gross, net, payment_status, created_at
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, payslip_id: str) -> Optional[Payslip]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {self._COLUMNS} FROM payslips WHERE payslip_id=%s", (str(payslip_id),))
            r = fetchone(cur)
            return self._to_payslip(r) if r else None

    def list_for_run(self, run_id: str) -> Sequence[Payslip]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {self._COLUMNS} FROM payslips WHERE run_id=%s ORDER BY employee_id",
                (str(run_id),),
            )
            return [self._to_payslip(r) for r in fetchall(cur)]

    def list_for_employee(self, employee_id: str) -> Sequence[Payslip]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {self._COLUMNS} FROM payslips WHERE employee_id=%s ORDER BY period_start DESC",
                (str(employee_id),),
            )
            return [self._to_payslip(r) for r in fetchall(cur)]

    def create_many(self, payslips: Sequence[Payslip]) -> None:
        if not payslips:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                """
                INSERT INTO payslips(
                    payslip_id, run_id, employee_id, period_start, period_end, earnings, deductions,
                    gross, net, payment_status, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                [
                    (
                        p.payslip_id,
                        p.run_id,
                        p.employee_id,
                        p.period.start,
                        p.period.end,
                        dump_items(p.earnings),
                        dump_items(p.deductions),
                        str(p.gross),
                        str(p.net),
                        p.payment_status.value,
                        p.created_at,
                    )
                    for p in payslips
                ],
            )

    def save(self, payslip: Payslip) -> bool:
        # only the payment status ever changes on a stored payslip
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE payslips SET payment_status=%s WHERE payslip_id=%s",
                (payslip.payment_status.value, payslip.payslip_id),
            )
            return cur.rowcount > 0

    @staticmethod
    def _to_payslip(r: dict) -> Payslip:
        return Payslip(
            payslip_id=r["payslip_id"],
            run_id=r["run_id"],
            employee_id=str(r["employee_id"]),
            period=PayrollPeriod(start=r["period_start"], end=r["period_end"]),
            earnings=load_items(r.get("earnings")),
            deductions=load_items(r.get("deductions")),
            gross=Decimal(str(r["gross"])),
            net=Decimal(str(r["net"])),
            payment_status=PaySlipPaymentStatus(r["payment_status"]),
            created_at=r["created_at"],
        )

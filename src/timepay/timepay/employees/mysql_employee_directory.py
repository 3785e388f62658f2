from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import EmployeeStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Employee
from .repository import EmployeeDirectory


class MySQLEmployeeDirectory(EmployeeDirectory):
    _COLUMNS = "employee_id, full_name, pay_grade_id, manager_id, status, bank_account"

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {self._COLUMNS} FROM employees WHERE employee_id=%s",
                (str(employee_id),),
            )
            row = fetchone(cur)
            return self._to_employee(row) if row else None

    def list_active(self) -> Sequence[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {self._COLUMNS} FROM employees WHERE status=%s ORDER BY employee_id",
                (EmployeeStatus.ACTIVE.value,),
            )
            return [self._to_employee(r) for r in fetchall(cur)]

    @staticmethod
    def _to_employee(row: dict) -> Employee:
        pay_grade_id = row.get("pay_grade_id")
        manager_id = row.get("manager_id")
        return Employee(
            employee_id=str(row["employee_id"]),
            full_name=row["full_name"],
            pay_grade_id=None if pay_grade_id is None else int(pay_grade_id),
            manager_id=None if manager_id is None else str(manager_id),
            status=EmployeeStatus(row.get("status") or EmployeeStatus.ACTIVE.value),
            bank_account=row.get("bank_account") or None,
        )

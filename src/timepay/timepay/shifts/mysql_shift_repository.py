from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import ShiftAssignmentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, normalize_mysql_time
from .model import Shift, ShiftAssignment
from .repository import ShiftAssignmentRepository, ShiftRepository


class MySQLShiftRepository(ShiftRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT shift_id, shift_name, start_time, end_time
                FROM shifts
                ORDER BY shift_id
                """
            )
            return [self._to_shift(r) for r in fetchall(cur)]

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT shift_id, shift_name, start_time, end_time
                FROM shifts
                WHERE shift_id=%s
                """,
                (int(shift_id),),
            )
            r = fetchone(cur)
            return self._to_shift(r) if r else None

    @staticmethod
    def _to_shift(r: dict) -> Shift:
        return Shift(
            shift_id=int(r["shift_id"]),
            shift_name=r["shift_name"],
            start_time=normalize_mysql_time(r["start_time"]),
            end_time=normalize_mysql_time(r["end_time"]),
        )


class MySQLShiftAssignmentRepository(ShiftAssignmentRepository):
    _COLUMNS = "assignment_id, employee_id, shift_id, start_date, end_date, status, assigned_by, version"

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, assignment_id: int) -> Optional[ShiftAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {self._COLUMNS} FROM shift_assignments WHERE assignment_id=%s",
                (int(assignment_id),),
            )
            r = fetchone(cur)
            return self._to_assignment(r) if r else None

    def list_for_employee(self, employee_id: str, *, on_date: Optional[date] = None) -> Sequence[ShiftAssignment]:
        clauses = ["employee_id=%s"]
        params: list[object] = [str(employee_id)]
        if on_date is not None:
            clauses.append("start_date <= %s AND (end_date IS NULL OR end_date >= %s)")
            params.extend([on_date, on_date])

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {self._COLUMNS}
                FROM shift_assignments
                WHERE {where}
                ORDER BY start_date DESC, assignment_id DESC
                """,
                tuple(params),
            )
            return [self._to_assignment(r) for r in fetchall(cur)]

    def create(self, assignment: ShiftAssignment) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO shift_assignments(employee_id, shift_id, start_date, end_date, status, assigned_by, version)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    assignment.employee_id,
                    int(assignment.shift_id),
                    assignment.start_date,
                    assignment.end_date,
                    assignment.status.value,
                    assignment.assigned_by,
                    int(assignment.version),
                ),
            )
            return int(cur.lastrowid)

    def save(self, assignment: ShiftAssignment, *, expected_version: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE shift_assignments
                SET status=%s, assigned_by=%s, end_date=%s, version=%s
                WHERE assignment_id=%s AND version=%s
                """,
                (
                    assignment.status.value,
                    assignment.assigned_by,
                    assignment.end_date,
                    int(assignment.version),
                    int(assignment.assignment_id),
                    int(expected_version),
                ),
            )
            return cur.rowcount > 0

    @staticmethod
    def _to_assignment(r: dict) -> ShiftAssignment:
        return ShiftAssignment(
            assignment_id=int(r["assignment_id"]),
            employee_id=str(r["employee_id"]),
            shift_id=int(r["shift_id"]),
            start_date=r["start_date"],
            end_date=r.get("end_date"),
            status=ShiftAssignmentStatus(r["status"]),
            assigned_by=r.get("assigned_by"),
            version=int(r.get("version") or 1),
        )

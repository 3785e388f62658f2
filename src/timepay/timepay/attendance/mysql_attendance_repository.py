from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

import mysql.connector

from ..core.enums import AttendanceStatus, ExceptionType, PunchType
from ..core.exceptions import ConcurrentModification
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import AttendanceException, AttendanceRecord, Punch
from .repository import AttendanceRepository

_COLUMNS = """
    record_id, employee_id, work_date, punches, shift_id, status, worked_minutes,
    final_calculated_hours, overtime_minutes, lateness_minutes, short_time_minutes,
    early_leave_minutes, penalties_suppressed, corrected, exceptions, has_unresolved, version
"""


def _punches_to_json(punches: Sequence[Punch]) -> str:
    return dump_json(
        [
            {"kind": p.kind.value, "time": p.time.isoformat(), "method": p.method, "location": p.location}
            for p in punches
        ]
    )


def _punches_from_json(raw) -> tuple[Punch, ...]:
    return tuple(
        Punch(
            kind=PunchType(p["kind"]),
            time=datetime.fromisoformat(p["time"]),
            method=p.get("method") or "device",
            location=p.get("location"),
        )
        for p in load_json(raw, [])
    )


def _exceptions_to_json(exceptions: Sequence[AttendanceException]) -> str:
    return dump_json([{"type": e.type.value, "resolved": bool(e.resolved)} for e in exceptions])


def _exceptions_from_json(raw) -> tuple[AttendanceException, ...]:
    return tuple(
        AttendanceException(type=ExceptionType(e["type"]), resolved=bool(e.get("resolved"))) for e in load_json(raw, [])
    )


def _optional_int(value) -> Optional[int]:
    return None if value is None else int(value)


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE record_id=%s", (int(record_id),))
            r = fetchone(cur)
            return self._to_record(r) if r else None

    def get_for_employee_and_date(self, employee_id: str, work_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE employee_id=%s AND work_date=%s",
                (str(employee_id), work_date),
            )
            r = fetchone(cur)
            return self._to_record(r) if r else None

    def list_for_employee(self, employee_id: str, *, start: date, end: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE employee_id=%s AND work_date BETWEEN %s AND %s
                ORDER BY work_date
                """,
                (str(employee_id), start, end),
            )
            return [self._to_record(r) for r in fetchall(cur)]

    def list_with_unresolved(
        self,
        *,
        start: date,
        end: date,
        employee_id: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        clauses = ["work_date BETWEEN %s AND %s", "has_unresolved=1"]
        params: list[object] = [start, end]
        if employee_id is not None:
            clauses.append("employee_id=%s")
            params.append(str(employee_id))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE {where}
                ORDER BY employee_id, work_date
                """,
                tuple(params),
            )
            return [self._to_record(r) for r in fetchall(cur)]

    def create(self, record: AttendanceRecord) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(
                        employee_id, work_date, punches, shift_id, status, worked_minutes,
                        final_calculated_hours, overtime_minutes, lateness_minutes, short_time_minutes,
                        early_leave_minutes, penalties_suppressed, corrected, exceptions, has_unresolved, version
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (record.employee_id, record.work_date) + self._derived_params(record) + (int(record.version),),
                )
                return int(cur.lastrowid)
        except mysql.connector.IntegrityError:
            raise ConcurrentModification(
                "Attendance record already exists",
                employee_id=record.employee_id,
                work_date=record.work_date,
            )

    def save(self, record: AttendanceRecord, *, expected_version: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET punches=%s, shift_id=%s, status=%s, worked_minutes=%s,
                    final_calculated_hours=%s, overtime_minutes=%s, lateness_minutes=%s,
                    short_time_minutes=%s, early_leave_minutes=%s, penalties_suppressed=%s,
                    corrected=%s, exceptions=%s, has_unresolved=%s, version=%s
                WHERE record_id=%s AND version=%s
                """,
                self._derived_params(record) + (int(record.version), int(record.record_id), int(expected_version)),
            )
            return cur.rowcount > 0

    @staticmethod
    def _derived_params(record: AttendanceRecord) -> tuple:
        return (
            _punches_to_json(record.punches),
            record.shift_id,
            record.status.value,
            int(record.worked_minutes),
            record.final_calculated_hours,
            record.overtime_minutes,
            record.lateness_minutes,
            record.short_time_minutes,
            record.early_leave_minutes,
            int(record.penalties_suppressed),
            int(record.corrected),
            _exceptions_to_json(record.exceptions),
            int(record.has_unresolved()),
        )

    @staticmethod
    def _to_record(r: dict) -> AttendanceRecord:
        hours = r.get("final_calculated_hours")
        return AttendanceRecord(
            record_id=int(r["record_id"]),
            employee_id=str(r["employee_id"]),
            work_date=r["work_date"],
            punches=_punches_from_json(r.get("punches")),
            shift_id=_optional_int(r.get("shift_id")),
            status=AttendanceStatus(r["status"]),
            worked_minutes=int(r.get("worked_minutes") or 0),
            final_calculated_hours=None if hours is None else float(hours),
            overtime_minutes=_optional_int(r.get("overtime_minutes")),
            lateness_minutes=_optional_int(r.get("lateness_minutes")),
            short_time_minutes=_optional_int(r.get("short_time_minutes")),
            early_leave_minutes=_optional_int(r.get("early_leave_minutes")),
            penalties_suppressed=bool(r.get("penalties_suppressed")),
            corrected=bool(r.get("corrected")),
            exceptions=_exceptions_from_json(r.get("exceptions")),
            version=int(r.get("version") or 1),
        )

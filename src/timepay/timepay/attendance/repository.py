from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_employee_and_date(self, employee_id: str, work_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_employee(self, employee_id: str, *, start: date, end: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_with_unresolved(
        self,
        *,
        start: date,
        end: date,
        employee_id: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def create(self, record: AttendanceRecord) -> int:
        """Insert a new record and return record_id.

        Raises ConcurrentModification when (employee_id, work_date) already exists.
        """

        raise NotImplementedError

    def save(self, record: AttendanceRecord, *, expected_version: int) -> bool:
        """Compare-and-set write; False when the stored version differs."""

        raise NotImplementedError

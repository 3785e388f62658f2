from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from ..common.locking import KeyedLock
from ..core.capabilities import Actor, Capability
from ..core.enums import ExceptionType
from ..core.exceptions import ConcurrentModification, IncompleteAttendanceData, NotFoundError
from .corrections import CorrectionService
from .model import AttendanceRecord
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEntry:
    record_id: int
    employee_id: str
    work_date: date
    exception_type: ExceptionType


class ExceptionLedger:
    """Read side of unresolved attendance exceptions, plus delegated resolution."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        corrections: CorrectionService,
        *,
        locks: Optional[KeyedLock] = None,
    ):
        self._attendance = attendance
        self._corrections = corrections
        self._locks = locks or KeyedLock()

    def open_entries(self, employee_id: Optional[str], start: date, end: date) -> list[LedgerEntry]:
        records = self._attendance.list_with_unresolved(
            start=start,
            end=end,
            employee_id=None if employee_id is None else str(employee_id),
        )
        return [
            LedgerEntry(
                record_id=r.record_id,
                employee_id=r.employee_id,
                work_date=r.work_date,
                exception_type=e.type,
            )
            for r in records
            for e in r.unresolved()
        ]

    def has_unresolved(self, employee_id: str, start: date, end: date) -> bool:
        return bool(self.open_entries(employee_id, start, end))

    def ensure_clear(self, employee_id: str, start: date, end: date) -> None:
        entries = self.open_entries(employee_id, start, end)
        if entries:
            dates = sorted({e.work_date for e in entries})
            raise IncompleteAttendanceData(
                f"Employee {employee_id} has unresolved attendance exceptions",
                employee_id=employee_id,
                dates=[d.isoformat() for d in dates],
            )

    def resolve(self, actor: Actor, record_id: int, exception_type: ExceptionType) -> AttendanceRecord:
        actor.require(Capability.RESOLVE_EXCEPTIONS)

        current = self._attendance.get_by_id(int(record_id))
        if not current:
            raise NotFoundError("Attendance record not found", record_id=record_id)

        with self._locks.hold((current.employee_id, current.work_date)):
            current = self._attendance.get_by_id(int(record_id))
            corrected = self._corrections.resolve_exception(int(record_id), ExceptionType(exception_type))
            if corrected.exceptions == current.exceptions:
                return current

            updated = replace(current, exceptions=corrected.exceptions, version=current.version + 1)
            if not self._attendance.save(updated, expected_version=current.version):
                raise ConcurrentModification(
                    "Attendance record changed concurrently",
                    record_id=record_id,
                    expected_version=current.version,
                )

        logger.info(
            "Resolved %s on record %s (%s %s) by %s",
            ExceptionType(exception_type).value,
            record_id,
            updated.employee_id,
            updated.work_date,
            actor.employee_id,
        )
        return updated

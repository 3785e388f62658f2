from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from ..core.enums import ExceptionType
from ..core.exceptions import NotFoundError, ValidationError
from .model import AttendanceRecord
from .repository import AttendanceRepository


class CorrectionService(Protocol):
    """The only writer of ``AttendanceException.resolved``."""

    def resolve_exception(self, record_id: int, exception_type: ExceptionType) -> AttendanceRecord:
        raise NotImplementedError


class RecordCorrectionService(CorrectionService):
    """Marks an exception resolved on the stored record; the caller persists the result."""

    def __init__(self, attendance: AttendanceRepository):
        self._attendance = attendance

    def resolve_exception(self, record_id: int, exception_type: ExceptionType) -> AttendanceRecord:
        exception_type = ExceptionType(exception_type)
        record = self._attendance.get_by_id(int(record_id))
        if not record:
            raise NotFoundError("Attendance record not found", record_id=record_id)

        if not any(e.type == exception_type for e in record.exceptions):
            raise ValidationError(
                "Record has no such exception",
                record_id=record_id,
                exception_type=exception_type,
            )

        return replace(
            record,
            exceptions=tuple(replace(e, resolved=True) if e.type == exception_type else e for e in record.exceptions),
        )

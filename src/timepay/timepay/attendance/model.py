from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus, ExceptionType, PunchType


@dataclass(frozen=True)
class Punch:
    kind: PunchType
    time: datetime
    method: str = "device"
    location: Optional[str] = None


@dataclass(frozen=True)
class AttendanceException:
    type: ExceptionType
    resolved: bool = False


@dataclass(frozen=True)
class AttendanceRecord:
    """One record per (employee_id, work_date); derived fields are owned by the evaluator."""

    record_id: int
    employee_id: str
    work_date: date
    punches: tuple[Punch, ...] = ()
    shift_id: Optional[int] = None
    status: AttendanceStatus = AttendanceStatus.ABSENT
    worked_minutes: int = 0
    final_calculated_hours: Optional[float] = None
    overtime_minutes: Optional[int] = None
    lateness_minutes: Optional[int] = None
    short_time_minutes: Optional[int] = None
    early_leave_minutes: Optional[int] = None
    penalties_suppressed: bool = False
    corrected: bool = False
    exceptions: tuple[AttendanceException, ...] = ()
    version: int = 1

    def unresolved(self) -> tuple[AttendanceException, ...]:
        return tuple(e for e in self.exceptions if not e.resolved)

    def has_unresolved(self) -> bool:
        return any(not e.resolved for e in self.exceptions)


@dataclass(frozen=True)
class DayFacts:
    """Intermediate measurements the status strategies decide on."""

    punch_count: int
    has_missed_punch: bool
    day_kind: Optional[AttendanceStatus]
    worked_minutes: int
    lateness_minutes: Optional[int] = None
    early_leave_minutes: Optional[int] = None
    short_time_minutes: Optional[int] = None
    overtime_minutes: Optional[int] = None
    overtime_requires_approval: bool = False
    penalties_suppressed: bool = False


@dataclass(frozen=True)
class EvaluatedFacts:
    status: AttendanceStatus
    worked_minutes: int
    final_calculated_hours: Optional[float]
    lateness_minutes: Optional[int]
    early_leave_minutes: Optional[int]
    short_time_minutes: Optional[int]
    overtime_minutes: Optional[int]
    penalties_suppressed: bool
    exception_types: tuple[ExceptionType, ...]
    shift_id: Optional[int] = None

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from ..core.enums import ShiftAssignmentStatus


@dataclass(frozen=True)
class Shift:
    """Expected work window for a day."""

    shift_id: int
    shift_name: str
    start_time: time
    end_time: time

    @property
    def overnight(self) -> bool:
        return self.end_time <= self.start_time


@dataclass(frozen=True)
class ShiftAssignment:
    assignment_id: int
    employee_id: str
    shift_id: int
    start_date: date
    end_date: Optional[date]
    status: ShiftAssignmentStatus
    assigned_by: Optional[str] = None
    version: int = 1

    def covers(self, work_date: date) -> bool:
        if work_date < self.start_date:
            return False
        return self.end_date is None or work_date <= self.end_date

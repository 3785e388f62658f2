from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import DayFacts
from .base import AttendanceStrategy


class OvertimeStrategy(AttendanceStrategy):
    status = AttendanceStatus.OVERTIME

    def applies(self, facts: DayFacts) -> bool:
        return bool(facts.overtime_minutes)

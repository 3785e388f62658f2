from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import DayFacts
from .base import AttendanceStrategy


class HolidayStrategy(AttendanceStrategy):
    status = AttendanceStatus.HOLIDAY

    def applies(self, facts: DayFacts) -> bool:
        return facts.day_kind == AttendanceStatus.HOLIDAY


class RestDayStrategy(AttendanceStrategy):
    status = AttendanceStatus.REST_DAY

    def applies(self, facts: DayFacts) -> bool:
        return facts.day_kind == AttendanceStatus.REST_DAY

from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import DayFacts
from .base import AttendanceStrategy


class ShortTimeStrategy(AttendanceStrategy):
    status = AttendanceStatus.SHORT_TIME

    def applies(self, facts: DayFacts) -> bool:
        return bool(facts.short_time_minutes)

from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import DayFacts
from .base import AttendanceStrategy


class LateStrategy(AttendanceStrategy):
    """First IN after shift start plus grace."""

    status = AttendanceStatus.LATE

    def applies(self, facts: DayFacts) -> bool:
        return bool(facts.lateness_minutes)

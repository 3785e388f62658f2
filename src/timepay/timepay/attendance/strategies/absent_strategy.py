from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import DayFacts
from .base import AttendanceStrategy


class AbsentStrategy(AttendanceStrategy):
    """No punches on a working day."""

    status = AttendanceStatus.ABSENT

    def applies(self, facts: DayFacts) -> bool:
        return facts.punch_count == 0

from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import DayFacts
from .base import AttendanceStrategy


class NormalStrategy(AttendanceStrategy):
    """Fallback: worked the day as scheduled."""

    status = AttendanceStatus.PRESENT

    def applies(self, facts: DayFacts) -> bool:
        return True

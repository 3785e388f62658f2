from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import DayFacts
from .base import AttendanceStrategy


class MissingPunchStrategy(AttendanceStrategy):
    """An IN without a matching OUT."""

    status = AttendanceStatus.MISSING_PUNCH

    def applies(self, facts: DayFacts) -> bool:
        return facts.has_missed_punch

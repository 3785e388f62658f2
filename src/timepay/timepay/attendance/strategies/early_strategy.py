from __future__ import annotations

from ...core.enums import AttendanceStatus
from ..model import DayFacts
from .base import AttendanceStrategy


class EarlyLeaveStrategy(AttendanceStrategy):
    """Last OUT before shift end minus grace."""

    status = AttendanceStatus.EARLY_LEAVE

    def applies(self, facts: DayFacts) -> bool:
        return bool(facts.early_leave_minutes)

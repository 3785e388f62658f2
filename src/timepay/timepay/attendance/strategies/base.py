from __future__ import annotations

from abc import ABC, abstractmethod

from ...core.enums import AttendanceStatus
from ..model import DayFacts


class AttendanceStrategy(ABC):
    """Strategy Pattern: one status rule, checked in priority order by the factory."""

    status: AttendanceStatus

    @abstractmethod
    def applies(self, facts: DayFacts) -> bool:
        raise NotImplementedError

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .model import DayFacts
from .strategies.absent_strategy import AbsentStrategy
from .strategies.base import AttendanceStrategy
from .strategies.day_off_strategy import HolidayStrategy, RestDayStrategy
from .strategies.early_strategy import EarlyLeaveStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.missing_punch_strategy import MissingPunchStrategy
from .strategies.normal_strategy import NormalStrategy
from .strategies.overtime_strategy import OvertimeStrategy
from .strategies.short_time_strategy import ShortTimeStrategy


def default_strategies() -> list[AttendanceStrategy]:
    # Order is the status priority; first match wins.
    return [
        MissingPunchStrategy(),
        HolidayStrategy(),
        RestDayStrategy(),
        AbsentStrategy(),
        LateStrategy(),
        EarlyLeaveStrategy(),
        ShortTimeStrategy(),
        OvertimeStrategy(),
        NormalStrategy(),
    ]


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose the strategy whose rule matches the day's facts."""

    strategies: Sequence[AttendanceStrategy] = field(default_factory=default_strategies)

    def for_facts(self, facts: DayFacts) -> AttendanceStrategy:
        for strategy in self.strategies:
            if strategy.applies(facts):
                return strategy
        return NormalStrategy()

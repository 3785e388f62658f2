from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import FrozenSet, Optional

from ..core.constants import DEFAULT_RULE_SCOPE
from ..core.enums import CalculationMethod, RuleType


@dataclass(frozen=True)
class RuleConfig:
    """An attendance rule; the evaluator reads the single active config per (rule_type, scope)."""

    rule_id: int
    rule_type: RuleType
    scope: str = DEFAULT_RULE_SCOPE
    grace_period_minutes: int = 0
    calculation_method: CalculationMethod = CalculationMethod.FLOOR
    min_minutes: int = 0
    requires_approval: bool = False
    is_holiday: bool = False
    is_rest_day: bool = False
    holiday_dates: FrozenSet[date] = field(default_factory=frozenset)
    # 0 = Monday ... 6 = Sunday, same as date.weekday()
    rest_weekdays: FrozenSet[int] = field(default_factory=frozenset)
    suppress_lateness: bool = False
    suppress_early_leave: bool = False
    suppress_penalties: bool = False
    active: bool = False
    created_by: Optional[str] = None
    version: int = 1

    def covers(self, work_date: date) -> bool:
        if self.is_holiday and work_date in self.holiday_dates:
            return True
        if self.is_rest_day and work_date.weekday() in self.rest_weekdays:
            return True
        return False


@dataclass(frozen=True)
class RuleSet:
    """Active configs for one scope, keyed by rule type."""

    scope: str
    by_type: dict[RuleType, RuleConfig] = field(default_factory=dict)

    def get(self, rule_type: RuleType) -> Optional[RuleConfig]:
        return self.by_type.get(rule_type)

    def grace_for(self, rule_type: RuleType, fallback: int = 0) -> int:
        rule = self.by_type.get(rule_type)
        return int(rule.grace_period_minutes) if rule else int(fallback)

    def method_for(self, rule_type: RuleType) -> CalculationMethod:
        rule = self.by_type.get(rule_type)
        return rule.calculation_method if rule else CalculationMethod.FLOOR

    def day_rule(self, work_date: date) -> Optional[RuleConfig]:
        """Holiday takes precedence over rest day."""
        for rule_type in (RuleType.HOLIDAY, RuleType.REST_DAY):
            rule = self.by_type.get(rule_type)
            if rule and rule.covers(work_date):
                return rule
        return None

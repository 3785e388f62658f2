from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from ..common.locking import KeyedLock
from ..core.capabilities import Actor, Capability
from ..core.constants import DEFAULT_RULE_SCOPE
from ..core.enums import CalculationMethod, RuleType
from ..core.exceptions import ConcurrentModification, NotFoundError, ValidationError
from .model import RuleConfig, RuleSet
from .repository import RuleConfigRepository

logger = logging.getLogger(__name__)


class RuleConfigService:
    """Rule Config Store: at most one active config per (rule_type, scope), enforced here."""

    def __init__(self, rules: RuleConfigRepository, *, locks: Optional[KeyedLock] = None):
        self._rules = rules
        self._locks = locks or KeyedLock()

    def create(
        self,
        actor: Actor,
        *,
        rule_type: RuleType,
        scope: str = DEFAULT_RULE_SCOPE,
        grace_period_minutes: int = 0,
        calculation_method: CalculationMethod = CalculationMethod.FLOOR,
        min_minutes: int = 0,
        requires_approval: bool = False,
        holiday_dates: Iterable[date] = (),
        rest_weekdays: Iterable[int] = (),
        suppress_lateness: bool = False,
        suppress_early_leave: bool = False,
        suppress_penalties: bool = False,
    ) -> RuleConfig:
        actor.require(Capability.MANAGE_RULES)

        rule_type = RuleType(rule_type)
        if int(grace_period_minutes) < 0 or int(min_minutes) < 0:
            raise ValidationError("Minutes must not be negative", rule_type=rule_type)
        weekdays = frozenset(int(d) for d in rest_weekdays)
        if any(d < 0 or d > 6 for d in weekdays):
            raise ValidationError("Rest weekdays must be 0..6", rest_weekdays=sorted(weekdays))

        rule = RuleConfig(
            rule_id=0,
            rule_type=rule_type,
            scope=(scope or DEFAULT_RULE_SCOPE).strip(),
            grace_period_minutes=int(grace_period_minutes),
            calculation_method=CalculationMethod(calculation_method),
            min_minutes=int(min_minutes),
            requires_approval=bool(requires_approval),
            is_holiday=rule_type == RuleType.HOLIDAY,
            is_rest_day=rule_type == RuleType.REST_DAY,
            holiday_dates=frozenset(holiday_dates),
            rest_weekdays=weekdays,
            suppress_lateness=bool(suppress_lateness),
            suppress_early_leave=bool(suppress_early_leave),
            suppress_penalties=bool(suppress_penalties),
            active=False,
            created_by=actor.employee_id,
        )
        rule_id = self._rules.create(rule)
        logger.info("Created %s rule %s for scope %s", rule_type.value, rule_id, rule.scope)
        return replace(rule, rule_id=rule_id)

    def activate(self, actor: Actor, rule_id: int) -> RuleConfig:
        actor.require(Capability.MANAGE_RULES)
        rule = self._get(rule_id)

        with self._locks.hold((rule.rule_type, rule.scope)):
            rule = self._get(rule_id)
            superseded = [o for o in self._rules.find_active(rule.rule_type, rule.scope) if o.rule_id != rule.rule_id]
            if rule.active and not superseded:
                return rule

            # switch on before switching off: the scope always keeps an active rule
            if not rule.active:
                activated = replace(rule, active=True, version=rule.version + 1)
                self._write(activated, rule.version)
                rule = activated
                logger.info("Activated %s rule %s for scope %s", rule.rule_type.value, rule_id, rule.scope)

            for other in superseded:
                self._write(replace(other, active=False, version=other.version + 1), other.version)
                logger.info("Deactivated %s rule %s (superseded by %s)", other.rule_type.value, other.rule_id, rule_id)
            return rule

    def deactivate(self, actor: Actor, rule_id: int) -> RuleConfig:
        actor.require(Capability.MANAGE_RULES)
        rule = self._get(rule_id)
        with self._locks.hold((rule.rule_type, rule.scope)):
            rule = self._get(rule_id)
            if not rule.active:
                return rule
            deactivated = replace(rule, active=False, version=rule.version + 1)
            self._write(deactivated, rule.version)
            return deactivated

    def active_rules(self, scope: str = DEFAULT_RULE_SCOPE) -> RuleSet:
        by_type: dict[RuleType, RuleConfig] = {}
        for rule in self._rules.list_for_scope(scope, active_only=True):
            current = by_type.get(rule.rule_type)
            # Guard against legacy rows; the newest activation wins.
            if current is None or rule.rule_id > current.rule_id:
                by_type[rule.rule_type] = rule
        return RuleSet(scope=scope, by_type=by_type)

    def _get(self, rule_id: int) -> RuleConfig:
        rule = self._rules.get_by_id(int(rule_id))
        if not rule:
            raise NotFoundError("Rule config not found", rule_id=rule_id)
        return rule

    def _write(self, rule: RuleConfig, expected_version: int) -> None:
        if not self._rules.save(rule, expected_version=expected_version):
            raise ConcurrentModification(
                "Rule config changed concurrently",
                rule_id=rule.rule_id,
                expected_version=expected_version,
            )

from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import CalculationMethod, RuleType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import RuleConfig
from .repository import RuleConfigRepository


class MySQLRuleConfigRepository(RuleConfigRepository):
    _COLUMNS = """
        rule_id, rule_type, scope, grace_period_minutes, calculation_method, min_minutes,
        requires_approval, holiday_dates, rest_weekdays, suppress_lateness, suppress_early_leave,
        suppress_penalties, active, created_by, version
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, rule_id: int) -> Optional[RuleConfig]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {self._COLUMNS} FROM rule_configs WHERE rule_id=%s", (int(rule_id),))
            r = fetchone(cur)
            return self._to_rule(r) if r else None

    def list_for_scope(self, scope: str, *, active_only: bool = False) -> Sequence[RuleConfig]:
        sql = f"SELECT {self._COLUMNS} FROM rule_configs WHERE scope=%s"
        if active_only:
            sql += " AND active=1"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " ORDER BY rule_id", (scope,))
            return [self._to_rule(r) for r in fetchall(cur)]

    def find_active(self, rule_type: RuleType, scope: str) -> Sequence[RuleConfig]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {self._COLUMNS}
                FROM rule_configs
                WHERE rule_type=%s AND scope=%s AND active=1
                ORDER BY rule_id
                """,
                (RuleType(rule_type).value, scope),
            )
            return [self._to_rule(r) for r in fetchall(cur)]

    def create(self, rule: RuleConfig) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO rule_configs(
                    rule_type, scope, grace_period_minutes, calculation_method, min_minutes,
                    requires_approval, holiday_dates, rest_weekdays, suppress_lateness,
                    suppress_early_leave, suppress_penalties, active, created_by, version
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (rule.rule_type.value, rule.scope) + self._params(rule) + (rule.created_by, int(rule.version)),
            )
            return int(cur.lastrowid)

    def save(self, rule: RuleConfig, *, expected_version: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE rule_configs
                SET grace_period_minutes=%s, calculation_method=%s, min_minutes=%s,
                    requires_approval=%s, holiday_dates=%s, rest_weekdays=%s, suppress_lateness=%s,
                    suppress_early_leave=%s, suppress_penalties=%s, active=%s, version=%s
                WHERE rule_id=%s AND version=%s
                """,
                self._params(rule) + (int(rule.version), int(rule.rule_id), int(expected_version)),
            )
            return cur.rowcount > 0

    @staticmethod
    def _params(rule: RuleConfig) -> tuple:
        return (
            int(rule.grace_period_minutes),
            rule.calculation_method.value,
            int(rule.min_minutes),
            int(rule.requires_approval),
            dump_json(sorted(d.isoformat() for d in rule.holiday_dates)),
            dump_json(sorted(rule.rest_weekdays)),
            int(rule.suppress_lateness),
            int(rule.suppress_early_leave),
            int(rule.suppress_penalties),
            int(rule.active),
        )

    @staticmethod
    def _to_rule(r: dict) -> RuleConfig:
        rule_type = RuleType(r["rule_type"])
        return RuleConfig(
            rule_id=int(r["rule_id"]),
            rule_type=rule_type,
            scope=r["scope"],
            grace_period_minutes=int(r.get("grace_period_minutes") or 0),
            calculation_method=CalculationMethod(r.get("calculation_method") or CalculationMethod.FLOOR.value),
            min_minutes=int(r.get("min_minutes") or 0),
            requires_approval=bool(r.get("requires_approval")),
            is_holiday=rule_type == RuleType.HOLIDAY,
            is_rest_day=rule_type == RuleType.REST_DAY,
            holiday_dates=frozenset(date.fromisoformat(d) for d in load_json(r.get("holiday_dates"), [])),
            rest_weekdays=frozenset(int(d) for d in load_json(r.get("rest_weekdays"), [])),
            suppress_lateness=bool(r.get("suppress_lateness")),
            suppress_early_leave=bool(r.get("suppress_early_leave")),
            suppress_penalties=bool(r.get("suppress_penalties")),
            active=bool(r.get("active")),
            created_by=r.get("created_by"),
            version=int(r.get("version") or 1),
        )

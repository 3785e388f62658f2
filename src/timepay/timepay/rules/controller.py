from __future__ import annotations

from flask import Flask, request

from ..common.http import current_actor, date_arg, enum_arg, json_body, ok, optional_int
from ..container import Container
from ..core.enums import CalculationMethod, RuleType


def register(app: Flask, container: Container) -> None:
    @app.post("/api/rules")
    def create_rule():
        body = json_body()
        rule = container.rule_service.create(
            current_actor(),
            rule_type=enum_arg(RuleType, body.get("rule_type"), "rule_type"),
            scope=body.get("scope") or container.rule_scope,
            grace_period_minutes=optional_int(body.get("grace_period_minutes"), "grace_period_minutes") or 0,
            calculation_method=enum_arg(CalculationMethod, body.get("calculation_method") or "FLOOR", "calculation_method"),
            min_minutes=optional_int(body.get("min_minutes"), "min_minutes") or 0,
            requires_approval=bool(body.get("requires_approval")),
            holiday_dates=[date_arg(d, "holiday_dates") for d in body.get("holiday_dates") or []],
            rest_weekdays=[optional_int(d, "rest_weekdays") for d in body.get("rest_weekdays") or []],
            suppress_lateness=bool(body.get("suppress_lateness")),
            suppress_early_leave=bool(body.get("suppress_early_leave")),
            suppress_penalties=bool(body.get("suppress_penalties")),
        )
        return ok(rule, 201)

    @app.post("/api/rules/<int:rule_id>/activate")
    def activate_rule(rule_id: int):
        return ok(container.rule_service.activate(current_actor(), rule_id))

    @app.post("/api/rules/<int:rule_id>/deactivate")
    def deactivate_rule(rule_id: int):
        return ok(container.rule_service.deactivate(current_actor(), rule_id))

    @app.get("/api/rules/active")
    def active_rules():
        current_actor()
        rules = container.rule_service.active_rules(request.args.get("scope") or container.rule_scope)
        return ok(list(rules.by_type.values()))

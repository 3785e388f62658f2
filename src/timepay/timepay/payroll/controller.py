from __future__ import annotations

from flask import Flask, request

from ..common.http import current_actor, date_arg, enum_arg, json_body, ok, optional_int
from ..container import Container
from ..core.capabilities import Capability
from ..core.enums import PayRollStatus
from ..core.exceptions import NotFoundError
from .model import PayrollPeriod, RunExceptionReason


def _period(body: dict) -> PayrollPeriod:
    return PayrollPeriod(start=date_arg(body.get("start"), "start"), end=date_arg(body.get("end"), "end"))


def register(app: Flask, container: Container) -> None:
    runs = container.payroll_run_service

    @app.post("/api/payroll/runs")
    def generate_draft():
        body = json_body()
        employee_ids = body.get("employee_ids")
        run = runs.generate_draft(current_actor(), _period(body), employee_ids)
        return ok(run, 201)

    @app.get("/api/payroll/runs")
    def list_runs():
        current_actor()
        status = request.args.get("status")
        return ok(runs.list_runs(enum_arg(PayRollStatus, status, "status") if status else None))

    @app.get("/api/payroll/runs/<run_id>")
    def get_run(run_id: str):
        current_actor()
        return ok(runs.get(run_id))

    @app.post("/api/payroll/runs/<run_id>/recalculate")
    def recalculate_run(run_id: str):
        version = optional_int(json_body().get("expected_version"), "expected_version")
        return ok(runs.recalculate(current_actor(), run_id, expected_version=version))

    @app.post("/api/payroll/runs/<run_id>/exceptions/<employee_id>/resolve")
    def resolve_run_exception(run_id: str, employee_id: str):
        body = json_body()
        reason = body.get("reason")
        run = runs.resolve_run_exception(
            current_actor(),
            run_id,
            employee_id,
            body.get("note") or "",
            reason=enum_arg(RunExceptionReason, reason, "reason") if reason else None,
            expected_version=optional_int(body.get("expected_version"), "expected_version"),
        )
        return ok(run)

    @app.post("/api/payroll/runs/<run_id>/<action>")
    def transition_run(run_id: str, action: str):
        actor = current_actor()
        body = json_body()
        version = optional_int(body.get("expected_version"), "expected_version")

        if action == "submit":
            return ok(runs.submit(actor, run_id, expected_version=version))
        if action == "approve-manager":
            return ok(runs.approve_by_manager(actor, run_id, expected_version=version))
        if action == "send-to-finance":
            return ok(runs.send_to_finance(actor, run_id, expected_version=version))
        if action == "approve-finance":
            return ok(runs.approve_by_finance(actor, run_id, expected_version=version))
        if action == "reject":
            return ok(runs.reject(actor, run_id, body.get("reason") or "", expected_version=version))
        if action == "edit-period":
            return ok(runs.edit_period(actor, run_id, _period(body), expected_version=version))
        if action == "freeze":
            return ok(runs.freeze(actor, run_id, reason=body.get("reason"), expected_version=version))
        if action == "unfreeze":
            return ok(runs.unfreeze(actor, run_id, body.get("unlock_reason") or "", expected_version=version))
        if action == "finalize":
            return ok(runs.finalize(actor, run_id, expected_version=version))
        raise NotFoundError("Unknown payroll run action", action=action)

    @app.get("/api/payroll/runs/<run_id>/payslips")
    def run_payslips(run_id: str):
        current_actor()
        return ok(runs.payslips(run_id))

    @app.post("/api/payroll/payslips/<payslip_id>/paid")
    def mark_payslip_paid(payslip_id: str):
        current_actor().require(Capability.FINALIZE_PAYROLL)
        return ok(container.payslip_finalizer.mark_paid(payslip_id))

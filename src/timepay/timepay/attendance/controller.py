from __future__ import annotations

from flask import Flask, request

from ..common.http import current_actor, date_arg, datetime_arg, enum_arg, json_body, ok
from ..container import Container
from ..core.enums import ExceptionType, PunchType


def register(app: Flask, container: Container) -> None:
    @app.post("/api/attendance/punch")
    def record_punch():
        actor = current_actor()
        body = json_body()
        record = container.attendance_service.record_punch(
            actor,
            str(body.get("employee_id") or actor.employee_id),
            enum_arg(PunchType, body.get("kind"), "kind"),
            at=datetime_arg(body.get("at"), "at"),
            method=body.get("method") or "device",
            location=body.get("location"),
            work_date=date_arg(body["work_date"], "work_date") if body.get("work_date") else None,
        )
        return ok(record, 201)

    @app.get("/api/attendance/<employee_id>")
    def list_attendance(employee_id: str):
        current_actor()
        start = date_arg(request.args.get("start"), "start")
        end = date_arg(request.args.get("end"), "end")
        return ok(container.attendance_service.list_records(employee_id, start, end))

    @app.get("/api/attendance/<employee_id>/<work_date>")
    def get_attendance(employee_id: str, work_date: str):
        current_actor()
        return ok(container.attendance_service.get_record(employee_id, date_arg(work_date, "work_date")))

    @app.post("/api/attendance/<employee_id>/<work_date>/ensure")
    def ensure_record(employee_id: str, work_date: str):
        record = container.attendance_service.ensure_record(current_actor(), employee_id, date_arg(work_date, "work_date"))
        return ok(record)

    @app.post("/api/attendance/<employee_id>/<work_date>/evaluate")
    def evaluate_attendance(employee_id: str, work_date: str):
        record = container.attendance_service.evaluate(current_actor(), employee_id, date_arg(work_date, "work_date"))
        return ok(record)

    @app.post("/api/attendance/<employee_id>/<work_date>/corrected")
    def mark_corrected(employee_id: str, work_date: str):
        record = container.attendance_service.mark_corrected(
            current_actor(),
            employee_id,
            date_arg(work_date, "work_date"),
        )
        return ok(record)

    @app.post("/api/attendance/<employee_id>/ensure")
    def ensure_period(employee_id: str):
        body = json_body()
        records = container.attendance_service.ensure_period(
            current_actor(),
            employee_id,
            date_arg(body.get("start"), "start"),
            date_arg(body.get("end"), "end"),
        )
        return ok(records)

    @app.post("/api/attendance/<employee_id>/recompute")
    def recompute_period(employee_id: str):
        body = json_body()
        records = container.attendance_service.recompute_period(
            current_actor(),
            employee_id,
            date_arg(body.get("start"), "start"),
            date_arg(body.get("end"), "end"),
        )
        return ok(records)

    @app.get("/api/attendance-exceptions")
    def open_exceptions():
        current_actor()
        entries = container.exception_ledger.open_entries(
            request.args.get("employee_id") or None,
            date_arg(request.args.get("start"), "start"),
            date_arg(request.args.get("end"), "end"),
        )
        return ok(entries)

    @app.post("/api/attendance-exceptions/<int:record_id>/<exception_type>/resolve")
    def resolve_exception(record_id: int, exception_type: str):
        record = container.exception_ledger.resolve(
            current_actor(),
            record_id,
            enum_arg(ExceptionType, exception_type, "exception_type"),
        )
        return ok(record)

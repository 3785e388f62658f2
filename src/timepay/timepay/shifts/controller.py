from __future__ import annotations

from flask import Flask

from ..common.http import current_actor, date_arg, enum_arg, json_body, ok, optional_int
from ..common.validators import require_non_empty
from ..container import Container
from ..core.enums import ShiftAssignmentStatus


def register(app: Flask, container: Container) -> None:
    @app.post("/api/shift-assignments")
    def assign_shift():
        body = json_body()
        end_date = body.get("end_date")
        assignment = container.shift_service.assign(
            current_actor(),
            employee_id=require_non_empty(str(body.get("employee_id") or ""), "employee_id"),
            shift_id=optional_int(body.get("shift_id"), "shift_id") or 0,
            start_date=date_arg(body.get("start_date"), "start_date"),
            end_date=date_arg(end_date, "end_date") if end_date else None,
        )
        return ok(assignment, 201)

    @app.post("/api/shift-assignments/<int:assignment_id>/status")
    def update_assignment_status(assignment_id: int):
        status = enum_arg(ShiftAssignmentStatus, json_body().get("status"), "status")
        return ok(container.shift_service.update_status(current_actor(), assignment_id, status))

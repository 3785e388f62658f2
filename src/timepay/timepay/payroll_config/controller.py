from __future__ import annotations

from flask import Flask, request

from ..common.http import current_actor, enum_arg, json_body, ok
from ..container import Container
from ..core.enums import ConfigKind, ConfigStatus


def register(app: Flask, container: Container) -> None:
    configs = container.config_service

    @app.post("/api/payroll/config")
    def create_config():
        body = json_body()
        entity = configs.create(
            current_actor(),
            kind=enum_arg(ConfigKind, body.get("kind"), "kind"),
            name=body.get("name") or "",
            data=body.get("data") or {},
            employee_id=body.get("employee_id"),
        )
        return ok(entity, 201)

    @app.get("/api/payroll/config")
    def list_configs():
        current_actor()
        kind = request.args.get("kind")
        status = request.args.get("status")
        return ok(
            configs.list(
                enum_arg(ConfigKind, kind, "kind") if kind else None,
                enum_arg(ConfigStatus, status, "status") if status else None,
            )
        )

    @app.get("/api/payroll/config/<int:entity_id>")
    def get_config(entity_id: int):
        current_actor()
        return ok(configs.get(entity_id))

    @app.patch("/api/payroll/config/<int:entity_id>")
    def update_config(entity_id: int):
        body = json_body()
        return ok(configs.update(current_actor(), entity_id, name=body.get("name"), data=body.get("data")))

    @app.post("/api/payroll/config/<int:entity_id>/status")
    def update_config_status(entity_id: int):
        status = enum_arg(ConfigStatus, json_body().get("status"), "status")
        return ok(configs.update_status(current_actor(), entity_id, status))

    @app.delete("/api/payroll/config/<int:entity_id>")
    def delete_config(entity_id: int):
        configs.delete(current_actor(), entity_id)
        return ok({"entity_id": entity_id})

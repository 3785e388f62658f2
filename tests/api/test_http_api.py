from __future__ import annotations

import pytest

from src.timepay.timepay.container import Container
from src.timepay.timepay.core.enums import ConfigKind
from src.timepay.timepay.main import create_app


@pytest.fixture
def container(
    rule_service,
    shift_service,
    attendance_service,
    ledger,
    config_service,
    finalizer,
    run_service,
    dispatcher,
):
    return Container(
        conn=None,
        rule_scope="global",
        rule_service=rule_service,
        shift_service=shift_service,
        attendance_service=attendance_service,
        exception_ledger=ledger,
        config_service=config_service,
        payslip_finalizer=finalizer,
        payroll_run_service=run_service,
        notifications=dispatcher,
    )


@pytest.fixture
def client(monkeypatch, container):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app(container=container)
    return app.test_client()


def login(client, employee_id: str, role: str) -> None:
    with client.session_transaction() as sess:
        sess["employee_id"] = employee_id
        sess["role"] = role


def test_requests_without_session_are_forbidden(client):
    res = client.get("/api/payroll/runs")

    assert res.status_code == 403
    assert res.get_json()["success"] is False
    assert res.get_json()["error"] == "ForbiddenError"


def test_punch_and_read_back(client, assign_office):
    assign_office("E001")
    login(client, "E001", "employee")

    res = client.post("/api/attendance/punch", json={"kind": "in", "at": "2025-03-03T09:20:00"})
    assert res.status_code == 201
    client.post("/api/attendance/punch", json={"kind": "OUT", "at": "2025-03-03T17:00:00"})

    body = client.get("/api/attendance/E001/2025-03-03").get_json()
    assert body["success"] is True
    assert body["data"]["status"] == "LATE"
    assert body["data"]["lateness_minutes"] == 20
    assert body["data"]["exceptions"] == [{"type": "LATE", "resolved": False}]


def test_invalid_punch_sequence_is_a_bad_request(client):
    login(client, "E001", "employee")

    res = client.post("/api/attendance/punch", json={"kind": "OUT", "at": "2025-03-03T17:00:00"})

    assert res.status_code == 400
    assert res.get_json()["error"] == "InvalidPunchSequence"


def test_punch_accepts_explicit_work_date(client):
    login(client, "E001", "employee")
    client.post("/api/attendance/punch", json={"kind": "IN", "at": "2025-03-03T23:00:00"})

    res = client.post(
        "/api/attendance/punch",
        json={"kind": "OUT", "at": "2025-03-04T02:00:00", "work_date": "2025-03-03"},
    )

    assert res.status_code == 201
    assert res.get_json()["data"]["work_date"] == "2025-03-03"
    assert res.get_json()["data"]["worked_minutes"] == 180


def test_unknown_enum_value_is_a_bad_request(client):
    login(client, "E001", "employee")

    res = client.post("/api/attendance/punch", json={"kind": "SIDEWAYS"})

    assert res.status_code == 400
    assert res.get_json()["context"]["expected"] == ["IN", "OUT"]


def test_resolve_exception_through_ledger(client, assign_office):
    assign_office("E001")
    login(client, "E001", "employee")
    client.post("/api/attendance/punch", json={"kind": "IN", "at": "2025-03-03T09:20:00"})
    record = client.post("/api/attendance/punch", json={"kind": "OUT", "at": "2025-03-03T17:00:00"}).get_json()["data"]

    login(client, "H002", "hr_manager")
    open_before = client.get("/api/attendance-exceptions?start=2025-03-01&end=2025-03-31").get_json()["data"]
    res = client.post(f"/api/attendance-exceptions/{record['record_id']}/late/resolve")
    open_after = client.get("/api/attendance-exceptions?start=2025-03-01&end=2025-03-31").get_json()["data"]

    assert res.status_code == 200
    assert [e["exception_type"] for e in open_before] == ["LATE"]
    assert open_after == []


def test_config_approval_flow(client):
    login(client, "S001", "payroll_specialist")
    created = client.post(
        "/api/payroll/config",
        json={"kind": "pay_grade", "name": "Grade A", "data": {"base_salary": 4800}, "employee_id": "E001"},
    )
    entity_id = created.get_json()["data"]["entity_id"]
    assert created.status_code == 201

    login(client, "M001", "payroll_manager")
    approved = client.post(f"/api/payroll/config/{entity_id}/status", json={"status": "APPROVED"})
    assert approved.get_json()["data"]["status"] == "APPROVED"

    login(client, "S001", "payroll_specialist")
    locked = client.patch(f"/api/payroll/config/{entity_id}", json={"name": "Grade A+"})
    assert locked.status_code == 403


def test_payroll_run_lifecycle_over_http(client, approved_config):
    approved_config(ConfigKind.PAY_GRADE, "Grade A", {"base_salary": "4800"}, employee_id="E001")

    login(client, "S001", "payroll_specialist")
    created = client.post("/api/payroll/runs", json={"start": "2025-03-01", "end": "2025-03-31", "employee_ids": ["E001"]})
    run = created.get_json()["data"]
    run_id = run["run_id"]
    assert created.status_code == 201
    assert run["total_net_pay"] == "4800.00"
    assert client.post(f"/api/payroll/runs/{run_id}/submit", json={"expected_version": 1}).status_code == 200

    login(client, "S001", "payroll_manager")
    assert client.post(f"/api/payroll/runs/{run_id}/approve-manager").status_code == 403

    login(client, "M001", "payroll_manager")
    stale = client.post(f"/api/payroll/runs/{run_id}/approve-manager", json={"expected_version": 1})
    assert stale.status_code == 409
    assert client.post(f"/api/payroll/runs/{run_id}/approve-manager").status_code == 200

    login(client, "F001", "finance_staff")
    assert client.post(f"/api/payroll/runs/{run_id}/approve-finance").status_code == 200

    login(client, "system", "system")
    payslips = client.post(f"/api/payroll/runs/{run_id}/finalize").get_json()["data"]
    assert [p["payslip_id"] for p in payslips] == [f"{run_id}-E001"]
    paid = client.post(f"/api/payroll/payslips/{run_id}-E001/paid").get_json()["data"]
    assert paid["payment_status"] == "PAID"

    final = client.get(f"/api/payroll/runs/{run_id}").get_json()["data"]
    assert final["status"] == "PAID"
    assert len(final["history"]) == 4


def test_invalid_transition_is_a_conflict(client, approved_config):
    approved_config(ConfigKind.PAY_GRADE, "Grade A", {"base_salary": "4800"}, employee_id="E001")
    login(client, "S001", "payroll_specialist")
    run_id = client.post(
        "/api/payroll/runs",
        json={"start": "2025-03-01", "end": "2025-03-31", "employee_ids": ["E001"]},
    ).get_json()["data"]["run_id"]

    login(client, "system", "system")
    res = client.post(f"/api/payroll/runs/{run_id}/finalize")

    assert res.status_code == 409
    assert res.get_json()["error"] == "InvalidTransition"


def test_unknown_run_action_is_not_found(client):
    login(client, "S001", "payroll_specialist")

    assert client.post("/api/payroll/runs/PR-1/teleport").status_code == 404


def test_rules_endpoints(client):
    login(client, "H001", "hr_admin")
    rule = client.post("/api/rules", json={"rule_type": "lateness", "grace_period_minutes": 5}).get_json()["data"]

    client.post(f"/api/rules/{rule['rule_id']}/activate")
    active = client.get("/api/rules/active").get_json()["data"]

    assert [(r["rule_type"], r["grace_period_minutes"], r["active"]) for r in active] == [("LATENESS", 5, True)]

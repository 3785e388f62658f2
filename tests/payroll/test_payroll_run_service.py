from __future__ import annotations

import re
import threading
from datetime import date
from decimal import Decimal

import pytest

from src.timepay.timepay.core.capabilities import Actor
from src.timepay.timepay.core.enums import (
    ConfigKind,
    PayRollPaymentStatus,
    PayRollStatus,
    PaySlipPaymentStatus,
    Role,
    RunEvent,
)
from src.timepay.timepay.core.exceptions import (
    ConcurrentModification,
    DomainError,
    ForbiddenError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from src.timepay.timepay.employees.model import Employee
from src.timepay.timepay.payroll.model import PayrollPeriod, RunExceptionReason

MARCH = PayrollPeriod(date(2025, 3, 1), date(2025, 3, 31))
APRIL = PayrollPeriod(date(2025, 4, 1), date(2025, 4, 30))


@pytest.fixture
def payable(approved_config):
    approved_config(ConfigKind.PAY_GRADE, "Grade A", {"base_salary": "4800"}, employee_id="E001")
    approved_config(ConfigKind.PAY_GRADE, "Grade B", {"base_salary": "3600"}, employee_id="E002")


@pytest.fixture
def draft(run_service, specialist, payable):
    return run_service.generate_draft(specialist, MARCH, ["E001", "E002"])


def _to_finance_approved(run_service, run, specialist, manager, finance):
    run_service.submit(specialist, run.run_id)
    run_service.approve_by_manager(manager, run.run_id)
    run_service.send_to_finance(manager, run.run_id)
    return run_service.approve_by_finance(finance, run.run_id)


def test_draft_has_one_line_per_employee(draft):
    assert re.fullmatch(r"PR-202503-[0-9a-f]{8}", draft.run_id)
    assert draft.status == PayRollStatus.DRAFT
    assert draft.payroll_specialist_id == "S001"
    assert [line.employee_id for line in draft.lines] == ["E001", "E002"]
    assert draft.total_net_pay == Decimal("8400.00")
    assert draft.exceptions == ()


def test_full_approval_path_issues_payslips(run_service, draft, specialist, manager, finance, system_actor, fixed_now):
    approved = _to_finance_approved(run_service, draft, specialist, manager, finance)

    assert approved.status == PayRollStatus.FINANCE_APPROVED
    assert approved.payroll_manager_id == "M001"
    assert approved.finance_staff_id == "F001"
    assert approved.manager_approval_date == fixed_now
    assert approved.finance_approval_date == fixed_now

    payslips = run_service.finalize(system_actor, draft.run_id)
    run = run_service.get(draft.run_id)

    assert run.status == PayRollStatus.PAID
    assert run.payment_status == PayRollPaymentStatus.PAID
    assert [p.payslip_id for p in payslips] == [f"{draft.run_id}-E001", f"{draft.run_id}-E002"]
    assert payslips[0].net == Decimal("4800.00")
    assert payslips[0].payment_status == PaySlipPaymentStatus.PENDING
    assert [h.event for h in run.history] == [
        RunEvent.SUBMIT,
        RunEvent.MANAGER_APPROVE,
        RunEvent.SEND_TO_FINANCE,
        RunEvent.FINANCE_APPROVE,
        RunEvent.FINALIZE,
    ]
    with pytest.raises(InvalidTransition):
        run_service.finalize(system_actor, draft.run_id)


def test_finance_may_approve_straight_from_manager_approved(run_service, draft, specialist, manager, finance):
    run_service.submit(specialist, draft.run_id)
    run_service.approve_by_manager(manager, draft.run_id)

    run = run_service.approve_by_finance(finance, draft.run_id)

    assert run.status == PayRollStatus.FINANCE_APPROVED


def test_specialist_cannot_approve_own_run(run_service, draft, specialist):
    run_service.submit(specialist, draft.run_id)
    same_person = Actor.from_role("S001", Role.PAYROLL_MANAGER)

    with pytest.raises(ForbiddenError):
        run_service.approve_by_manager(same_person, draft.run_id)
    assert run_service.get(draft.run_id).status == PayRollStatus.PENDING_MANAGER_APPROVAL


def test_manager_approver_cannot_approve_as_finance(run_service, draft, specialist, manager):
    run_service.submit(specialist, draft.run_id)
    run_service.approve_by_manager(manager, draft.run_id)
    same_person = Actor.from_role("M001", Role.FINANCE_STAFF)

    with pytest.raises(ForbiddenError):
        run_service.approve_by_finance(same_person, draft.run_id)
    with pytest.raises(ForbiddenError):
        run_service.reject(same_person, draft.run_id, "numbers look off")


def test_wrong_role_and_wrong_state(run_service, draft, specialist, finance):
    with pytest.raises(ForbiddenError):
        run_service.submit(finance, draft.run_id)

    run_service.submit(specialist, draft.run_id)

    with pytest.raises(ForbiddenError):
        run_service.approve_by_manager(finance, draft.run_id)
    with pytest.raises(InvalidTransition):
        run_service.approve_by_finance(finance, draft.run_id)
    with pytest.raises(NotFoundError):
        run_service.submit(specialist, "PR-000000-missing")


def test_run_exceptions_block_submission_until_resolved(run_service, specialist, payable):
    run = run_service.generate_draft(specialist, MARCH, ["E001", "E404"])

    assert [(e.employee_id, e.reason) for e in run.unresolved_exceptions()] == [
        ("E404", RunExceptionReason.UNKNOWN_EMPLOYEE)
    ]
    with pytest.raises(ValidationError):
        run_service.submit(specialist, run.run_id)

    run_service.resolve_run_exception(specialist, run.run_id, "E404", "left the company")
    submitted = run_service.submit(specialist, run.run_id)

    assert submitted.status == PayRollStatus.PENDING_MANAGER_APPROVAL
    assert submitted.exceptions[0].note == "left the company"


def test_recalculate_picks_up_new_configuration(run_service, specialist, approved_config, directory):
    directory.add(Employee(employee_id="E003", full_name="Carol"))
    run = run_service.generate_draft(specialist, MARCH, ["E003"])
    assert {e.reason for e in run.exceptions} == {RunExceptionReason.MISSING_PAY_GRADE}

    approved_config(ConfigKind.PAY_GRADE, "Grade C", {"base_salary": "3000"}, employee_id="E003")
    recalculated = run_service.recalculate(specialist, run.run_id, expected_version=run.version)

    assert recalculated.version == run.version + 1
    assert recalculated.line_for("E003").net == Decimal("3000.00")
    assert [(e.reason, e.resolved) for e in recalculated.exceptions] == [
        (RunExceptionReason.MISSING_BANK_DETAILS, False)
    ]


def test_recalculate_keeps_resolved_flags(run_service, specialist, approved_config, directory):
    directory.add(Employee(employee_id="E003", full_name="Carol"))
    approved_config(ConfigKind.PAY_GRADE, "Grade C", {"base_salary": "3000"}, employee_id="E003")
    run = run_service.generate_draft(specialist, MARCH, ["E003"])
    run = run_service.resolve_run_exception(
        specialist,
        run.run_id,
        "E003",
        "paid by cheque",
        reason=RunExceptionReason.MISSING_BANK_DETAILS,
    )

    recalculated = run_service.recalculate(specialist, run.run_id)

    assert recalculated.unresolved_exceptions() == ()


def test_reject_then_edit_period_starts_a_new_cycle(run_service, draft, specialist, manager):
    run_service.submit(specialist, draft.run_id)
    run_service.approve_by_manager(manager, draft.run_id)
    run_service.send_to_finance(manager, draft.run_id)
    other_finance = Actor.from_role("F002", Role.FINANCE_STAFF)

    with pytest.raises(ValidationError):
        run_service.reject(other_finance, draft.run_id, "  ")
    rejected = run_service.reject(other_finance, draft.run_id, "wrong bank file")
    assert rejected.status == PayRollStatus.REJECTED
    assert rejected.rejection_reason == "wrong bank file"

    edited = run_service.edit_period(specialist, draft.run_id, APRIL)

    assert edited.status == PayRollStatus.DRAFT
    assert edited.period == APRIL
    assert edited.payroll_manager_id is None
    assert edited.manager_approval_date is None
    assert edited.rejection_reason is None
    assert [h.actor_id for h in edited.history if h.event == RunEvent.MANAGER_APPROVE] == ["M001"]
    assert run_service.submit(specialist, draft.run_id).status == PayRollStatus.PENDING_MANAGER_APPROVAL


def test_manager_can_reject_pending_run(run_service, draft, specialist, manager):
    run_service.submit(specialist, draft.run_id)

    assert run_service.reject(manager, draft.run_id, "missing staff").status == PayRollStatus.REJECTED


def test_frozen_run_accepts_only_unfreeze(run_service, draft, specialist, manager):
    run_service.submit(specialist, draft.run_id)
    frozen = run_service.freeze(manager, draft.run_id, reason="audit")

    assert frozen.frozen is True
    assert frozen.status == PayRollStatus.PENDING_MANAGER_APPROVAL
    with pytest.raises(InvalidTransition):
        run_service.approve_by_manager(manager, draft.run_id)
    with pytest.raises(ValidationError):
        run_service.unfreeze(manager, draft.run_id, "")

    unfrozen = run_service.unfreeze(manager, draft.run_id, "audit done")
    assert unfrozen.frozen is False
    assert unfrozen.unlock_reason == "audit done"
    assert run_service.approve_by_manager(manager, draft.run_id).status == PayRollStatus.MANAGER_APPROVED


def test_frozen_draft_cannot_be_recalculated(run_service, draft, specialist, manager):
    run_service.freeze(manager, draft.run_id)

    with pytest.raises(ForbiddenError):
        run_service.recalculate(specialist, draft.run_id)


def test_stale_expected_version_is_rejected(run_service, draft, specialist):
    with pytest.raises(ConcurrentModification):
        run_service.submit(specialist, draft.run_id, expected_version=draft.version + 3)

    assert run_service.submit(specialist, draft.run_id, expected_version=draft.version).version == draft.version + 1


def test_concurrent_manager_approvals_let_exactly_one_through(run_service, draft, specialist):
    submitted = run_service.submit(specialist, draft.run_id)
    approvers = [Actor.from_role(f"M00{i}", Role.PAYROLL_MANAGER) for i in (1, 2)]
    barrier = threading.Barrier(len(approvers))
    outcomes = []

    def approve(actor):
        barrier.wait()
        try:
            outcomes.append(run_service.approve_by_manager(actor, draft.run_id, expected_version=submitted.version))
        except DomainError as e:
            outcomes.append(e)

    threads = [threading.Thread(target=approve, args=(a,)) for a in approvers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [o for o in outcomes if not isinstance(o, DomainError)]
    losers = [o for o in outcomes if isinstance(o, DomainError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], (ConcurrentModification, InvalidTransition))
    assert run_service.get(draft.run_id).payroll_manager_id == winners[0].payroll_manager_id


def test_submit_notifies_specialists_manager(run_service, draft, specialist, notifier):
    run_service.submit(specialist, draft.run_id)

    assert [(to, entity) for to, _, _, entity in notifier.sent] == [("M001", draft.run_id)]


def test_failing_notifier_does_not_undo_transition(run_service, draft, specialist, notifier, dispatcher):
    notifier.fail = True

    submitted = run_service.submit(specialist, draft.run_id)

    assert submitted.status == PayRollStatus.PENDING_MANAGER_APPROVAL
    assert run_service.get(draft.run_id).status == PayRollStatus.PENDING_MANAGER_APPROVAL
    assert [p.recipient_id for p in dispatcher.pending()] == ["M001"]


def test_generate_draft_defaults_to_active_employees(run_service, specialist, payable):
    run = run_service.generate_draft(specialist, MARCH)

    assert run.employees == ("E001", "E002", "S001")
    assert {(e.employee_id, e.reason) for e in run.exceptions} == {("S001", RunExceptionReason.MISSING_PAY_GRADE)}


def test_generate_draft_needs_capability(run_service, manager):
    with pytest.raises(ForbiddenError):
        run_service.generate_draft(manager, MARCH, ["E001"])


def test_failed_payslip_write_leaves_run_finance_approved(
    run_service, draft, specialist, manager, finance, system_actor, payslips_repo, monkeypatch
):
    _to_finance_approved(run_service, draft, specialist, manager, finance)

    def broken(payslips):
        raise RuntimeError("payslip table unavailable")

    with monkeypatch.context() as m:
        m.setattr(payslips_repo, "create_many", broken)
        with pytest.raises(RuntimeError):
            run_service.finalize(system_actor, draft.run_id)

    run = run_service.get(draft.run_id)
    assert run.status == PayRollStatus.FINANCE_APPROVED
    assert run.payment_status != PayRollPaymentStatus.PAID
    assert run_service.payslips(draft.run_id) == []

    payslips = run_service.finalize(system_actor, draft.run_id)

    assert run_service.get(draft.run_id).status == PayRollStatus.PAID
    assert len(payslips) == 2


def test_wrong_role_is_forbidden_whatever_the_state(run_service, draft, employee, finance):
    with pytest.raises(ForbiddenError):
        run_service.approve_by_manager(employee, draft.run_id)
    with pytest.raises(ForbiddenError):
        run_service.finalize(finance, draft.run_id)
    with pytest.raises(ForbiddenError):
        run_service.reject(employee, draft.run_id, "no")
    assert run_service.get(draft.run_id).status == PayRollStatus.DRAFT

import pytest

from src.timepay.timepay.core.capabilities import Capability
from src.timepay.timepay.core.enums import PayRollStatus, RunEvent
from src.timepay.timepay.core.exceptions import InvalidTransition
from src.timepay.timepay.payroll.state_machine import allowed_events, event_capabilities, next_transition


@pytest.mark.parametrize(
    "status, event, target, capability",
    [
        (PayRollStatus.DRAFT, RunEvent.SUBMIT, PayRollStatus.PENDING_MANAGER_APPROVAL, Capability.PREPARE_PAYROLL),
        (PayRollStatus.PENDING_MANAGER_APPROVAL, RunEvent.MANAGER_APPROVE, PayRollStatus.MANAGER_APPROVED, Capability.APPROVE_PAYROLL_MANAGER),
        (PayRollStatus.PENDING_MANAGER_APPROVAL, RunEvent.REJECT, PayRollStatus.REJECTED, Capability.APPROVE_PAYROLL_MANAGER),
        (PayRollStatus.MANAGER_APPROVED, RunEvent.FINANCE_APPROVE, PayRollStatus.FINANCE_APPROVED, Capability.APPROVE_PAYROLL_FINANCE),
        (PayRollStatus.PENDING_FINANCE_APPROVAL, RunEvent.REJECT, PayRollStatus.REJECTED, Capability.APPROVE_PAYROLL_FINANCE),
        (PayRollStatus.REJECTED, RunEvent.EDIT_PERIOD, PayRollStatus.DRAFT, Capability.PREPARE_PAYROLL),
        (PayRollStatus.FINANCE_APPROVED, RunEvent.FINALIZE, PayRollStatus.PAID, Capability.FINALIZE_PAYROLL),
    ],
)
def test_known_transitions(status, event, target, capability):
    rule = next_transition(status, event)

    assert rule.target == target
    assert rule.capability == capability


def test_unknown_transition_lists_allowed_events():
    with pytest.raises(InvalidTransition) as exc:
        next_transition(PayRollStatus.DRAFT, RunEvent.FINALIZE, run_id="PR-1")

    assert exc.value.context["run_id"] == "PR-1"
    assert exc.value.context["status"] == PayRollStatus.DRAFT
    assert RunEvent.SUBMIT in exc.value.context["allowed"]


def test_paid_is_terminal():
    assert allowed_events(PayRollStatus.PAID) == []
    with pytest.raises(InvalidTransition):
        next_transition(PayRollStatus.PAID, RunEvent.FREEZE)


def test_freeze_keeps_status_and_blocks_everything_but_unfreeze():
    assert next_transition(PayRollStatus.MANAGER_APPROVED, RunEvent.FREEZE).target == PayRollStatus.MANAGER_APPROVED

    with pytest.raises(InvalidTransition):
        next_transition(PayRollStatus.MANAGER_APPROVED, RunEvent.FINANCE_APPROVE, frozen=True)
    assert next_transition(PayRollStatus.MANAGER_APPROVED, RunEvent.UNFREEZE, frozen=True).target == PayRollStatus.MANAGER_APPROVED
    assert allowed_events(PayRollStatus.MANAGER_APPROVED, frozen=True) == [RunEvent.UNFREEZE]


def test_unfreeze_requires_frozen_run():
    with pytest.raises(InvalidTransition):
        next_transition(PayRollStatus.DRAFT, RunEvent.UNFREEZE)


def test_event_capabilities_cover_every_state():
    assert event_capabilities(RunEvent.REJECT) == {
        Capability.APPROVE_PAYROLL_MANAGER,
        Capability.APPROVE_PAYROLL_FINANCE,
    }
    assert event_capabilities(RunEvent.FINALIZE) == {Capability.FINALIZE_PAYROLL}

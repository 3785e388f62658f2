"""Payroll run lifecycle as a table.

    DRAFT -> PENDING_MANAGER_APPROVAL -> MANAGER_APPROVED -> PENDING_FINANCE_APPROVAL
          -> FINANCE_APPROVED -> PAID

Rejection is possible at either approval stage and ``edit_period`` brings a
REJECTED run back to DRAFT. Freezing is an overlay: while frozen, only
``unfreeze`` is accepted and the status itself never changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.capabilities import Capability
from ..core.enums import PayRollStatus, RunEvent
from ..core.exceptions import InvalidTransition


@dataclass(frozen=True)
class TransitionRule:
    target: PayRollStatus
    capability: Capability


S = PayRollStatus
E = RunEvent

TERMINAL = frozenset({S.PAID})

TRANSITIONS: dict[tuple[PayRollStatus, RunEvent], TransitionRule] = {
    (S.DRAFT, E.SUBMIT): TransitionRule(S.PENDING_MANAGER_APPROVAL, Capability.PREPARE_PAYROLL),
    (S.PENDING_MANAGER_APPROVAL, E.MANAGER_APPROVE): TransitionRule(S.MANAGER_APPROVED, Capability.APPROVE_PAYROLL_MANAGER),
    (S.PENDING_MANAGER_APPROVAL, E.REJECT): TransitionRule(S.REJECTED, Capability.APPROVE_PAYROLL_MANAGER),
    (S.MANAGER_APPROVED, E.SEND_TO_FINANCE): TransitionRule(S.PENDING_FINANCE_APPROVAL, Capability.APPROVE_PAYROLL_MANAGER),
    (S.MANAGER_APPROVED, E.FINANCE_APPROVE): TransitionRule(S.FINANCE_APPROVED, Capability.APPROVE_PAYROLL_FINANCE),
    (S.PENDING_FINANCE_APPROVAL, E.FINANCE_APPROVE): TransitionRule(S.FINANCE_APPROVED, Capability.APPROVE_PAYROLL_FINANCE),
    (S.MANAGER_APPROVED, E.REJECT): TransitionRule(S.REJECTED, Capability.APPROVE_PAYROLL_FINANCE),
    (S.PENDING_FINANCE_APPROVAL, E.REJECT): TransitionRule(S.REJECTED, Capability.APPROVE_PAYROLL_FINANCE),
    (S.REJECTED, E.EDIT_PERIOD): TransitionRule(S.DRAFT, Capability.PREPARE_PAYROLL),
    (S.FINANCE_APPROVED, E.FINALIZE): TransitionRule(S.PAID, Capability.FINALIZE_PAYROLL),
}

# freeze / unfreeze keep the status
for _status in S:
    if _status not in TERMINAL:
        TRANSITIONS[(_status, E.FREEZE)] = TransitionRule(_status, Capability.FREEZE_PAYROLL)
        TRANSITIONS[(_status, E.UNFREEZE)] = TransitionRule(_status, Capability.FREEZE_PAYROLL)


def next_transition(
    status: PayRollStatus,
    event: RunEvent,
    *,
    frozen: bool = False,
    run_id: Optional[str] = None,
) -> TransitionRule:
    status = PayRollStatus(status)
    event = RunEvent(event)

    if frozen and event != E.UNFREEZE:
        raise InvalidTransition("Run is frozen", run_id=run_id, status=status, event=event)
    if not frozen and event == E.UNFREEZE:
        raise InvalidTransition("Run is not frozen", run_id=run_id, status=status, event=event)

    rule = TRANSITIONS.get((status, event))
    if rule is None:
        raise InvalidTransition(
            f"Cannot {event.value} a run in {status.value}",
            run_id=run_id,
            status=status,
            event=event,
            allowed=allowed_events(status, frozen=frozen),
        )
    return rule


def event_capabilities(event: RunEvent) -> frozenset[Capability]:
    """Every capability that can authorize ``event`` from some state."""
    event = RunEvent(event)
    return frozenset(rule.capability for (_, e), rule in TRANSITIONS.items() if e == event)


def allowed_events(status: PayRollStatus, *, frozen: bool = False) -> list[RunEvent]:
    if frozen:
        return [E.UNFREEZE]
    return [event for (source, event) in TRANSITIONS if source == status and event != E.UNFREEZE]

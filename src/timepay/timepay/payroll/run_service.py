from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from ..common.datetime_utils import now_local
from ..common.locking import KeyedLock
from ..common.validators import require_non_empty
from ..core.capabilities import Actor, Capability
from ..core.enums import PayRollPaymentStatus, PayRollStatus, RunEvent
from ..core.exceptions import (
    ConcurrentModification,
    ForbiddenError,
    IncompleteAttendanceData,
    MissingPayGrade,
    NotFoundError,
    ValidationError,
)
from ..employees.repository import EmployeeDirectory
from ..notifications.dispatcher import NotificationDispatcher
from .aggregator import PayrollInputAggregator
from .finalizer import PayslipFinalizer
from .model import (
    HistoryEntry,
    PayrollLine,
    PayrollPeriod,
    PayrollRun,
    Payslip,
    RunException,
    RunExceptionReason,
    ZERO,
    money,
)
from .repository import PayrollRunRepository
from .state_machine import event_capabilities, next_transition

logger = logging.getLogger(__name__)

_MESSAGES = {
    RunEvent.SUBMIT: "Payroll run submitted for manager approval",
    RunEvent.MANAGER_APPROVE: "Payroll run approved by payroll manager",
    RunEvent.SEND_TO_FINANCE: "Payroll run sent to finance",
    RunEvent.FINANCE_APPROVE: "Payroll run approved by finance",
    RunEvent.REJECT: "Payroll run rejected",
    RunEvent.EDIT_PERIOD: "Payroll run period edited, back to draft",
    RunEvent.FINALIZE: "Payroll run finalized, payslips issued",
    RunEvent.FREEZE: "Payroll run frozen",
    RunEvent.UNFREEZE: "Payroll run unfrozen",
}


class PayrollRunService:
    """Sole writer of payroll runs.

    Every transition runs under a per-run lock, checks the optional
    ``expected_version`` and persists with a version check. Notifications go
    out after the write and never undo it.
    """

    def __init__(
        self,
        runs: PayrollRunRepository,
        aggregator: PayrollInputAggregator,
        finalizer: PayslipFinalizer,
        *,
        employees: EmployeeDirectory,
        dispatcher: Optional[NotificationDispatcher] = None,
        locks: Optional[KeyedLock] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._runs = runs
        self._aggregator = aggregator
        self._finalizer = finalizer
        self._employees = employees
        self._dispatcher = dispatcher
        self._locks = locks or KeyedLock()
        self._clock = clock

    # -- drafting -------------------------------------------------------

    def generate_draft(
        self,
        actor: Actor,
        period: PayrollPeriod,
        employee_ids: Optional[Iterable[str]] = None,
    ) -> PayrollRun:
        actor.require(Capability.PREPARE_PAYROLL)

        if employee_ids is None:
            ids = [e.employee_id for e in self._employees.list_active()]
        else:
            ids = list(dict.fromkeys(str(e) for e in employee_ids))
        if not ids:
            raise ValidationError("A payroll run needs at least one employee", period=period.label())

        lines, exceptions = self._build(period, ids, previous=())
        run = PayrollRun(
            run_id=f"PR-{period.start:%Y%m}-{uuid.uuid4().hex[:8]}",
            period=period,
            status=PayRollStatus.DRAFT,
            payroll_specialist_id=actor.employee_id,
            employees=tuple(ids),
            lines=lines,
            exceptions=exceptions,
            total_net_pay=self._total(lines),
        )
        self._runs.create(run)
        logger.info(
            "Draft %s for %s: %s lines, %s exceptions",
            run.run_id,
            period.label(),
            len(lines),
            len(exceptions),
        )
        return run

    def recalculate(self, actor: Actor, run_id: str, *, expected_version: Optional[int] = None) -> PayrollRun:
        actor.require(Capability.PREPARE_PAYROLL)

        with self._locks.hold(run_id):
            current = self._load(run_id, expected_version)
            self._require_editable_draft(current)
            lines, exceptions = self._build(current.period, current.employees, previous=current.exceptions)
            updated = replace(
                current,
                lines=lines,
                exceptions=exceptions,
                total_net_pay=self._total(lines),
                version=current.version + 1,
            )
            self._write(updated, current.version)
        return updated

    def resolve_run_exception(
        self,
        actor: Actor,
        run_id: str,
        employee_id: str,
        note: str,
        *,
        reason: Optional[RunExceptionReason] = None,
        expected_version: Optional[int] = None,
    ) -> PayrollRun:
        actor.require(Capability.PREPARE_PAYROLL)
        note = require_non_empty(note, "note")
        reason = None if reason is None else RunExceptionReason(reason)

        with self._locks.hold(run_id):
            current = self._load(run_id, expected_version)
            self._require_editable_draft(current)

            def matches(e: RunException) -> bool:
                return not e.resolved and e.employee_id == str(employee_id) and (reason is None or e.reason == reason)

            if not any(matches(e) for e in current.exceptions):
                raise NotFoundError(
                    "No open run exception for employee",
                    run_id=run_id,
                    employee_id=employee_id,
                    reason=reason,
                )

            updated = replace(
                current,
                exceptions=tuple(replace(e, resolved=True, note=note) if matches(e) else e for e in current.exceptions),
                version=current.version + 1,
            )
            self._write(updated, current.version)

        logger.info("Run %s: exception for %s resolved by %s", run_id, employee_id, actor.employee_id)
        return updated

    # -- transitions ----------------------------------------------------

    def submit(self, actor: Actor, run_id: str, *, expected_version: Optional[int] = None) -> PayrollRun:
        def check(run: PayrollRun) -> None:
            open_exceptions = run.unresolved_exceptions()
            if open_exceptions:
                raise ValidationError(
                    "Resolve run exceptions before submitting",
                    run_id=run.run_id,
                    employees=sorted({e.employee_id for e in open_exceptions}),
                )

        return self._transition(actor, run_id, RunEvent.SUBMIT, expected_version=expected_version, check=check)

    def approve_by_manager(self, actor: Actor, run_id: str, *, expected_version: Optional[int] = None) -> PayrollRun:
        def check(run: PayrollRun) -> None:
            self._require_not_specialist(actor, run)

        def apply(run: PayrollRun, at: datetime) -> PayrollRun:
            return replace(
                run,
                payroll_manager_id=actor.employee_id,
                manager_approval_date=run.manager_approval_date or at,
            )

        return self._transition(
            actor,
            run_id,
            RunEvent.MANAGER_APPROVE,
            expected_version=expected_version,
            check=check,
            apply=apply,
        )

    def send_to_finance(self, actor: Actor, run_id: str, *, expected_version: Optional[int] = None) -> PayrollRun:
        return self._transition(actor, run_id, RunEvent.SEND_TO_FINANCE, expected_version=expected_version)

    def approve_by_finance(self, actor: Actor, run_id: str, *, expected_version: Optional[int] = None) -> PayrollRun:
        def check(run: PayrollRun) -> None:
            self._require_not_specialist(actor, run)
            self._require_not_manager_approver(actor, run)

        def apply(run: PayrollRun, at: datetime) -> PayrollRun:
            return replace(
                run,
                finance_staff_id=actor.employee_id,
                finance_approval_date=run.finance_approval_date or at,
            )

        return self._transition(
            actor,
            run_id,
            RunEvent.FINANCE_APPROVE,
            expected_version=expected_version,
            check=check,
            apply=apply,
        )

    def reject(
        self,
        actor: Actor,
        run_id: str,
        reason: str,
        *,
        expected_version: Optional[int] = None,
    ) -> PayrollRun:
        reason = require_non_empty(reason, "rejection_reason")

        def check(run: PayrollRun) -> None:
            self._require_not_specialist(actor, run)
            if run.status != PayRollStatus.PENDING_MANAGER_APPROVAL:
                self._require_not_manager_approver(actor, run)

        def apply(run: PayrollRun, at: datetime) -> PayrollRun:
            return replace(run, rejection_reason=reason)

        return self._transition(
            actor,
            run_id,
            RunEvent.REJECT,
            expected_version=expected_version,
            check=check,
            apply=apply,
            note=reason,
        )

    def edit_period(
        self,
        actor: Actor,
        run_id: str,
        period: PayrollPeriod,
        *,
        expected_version: Optional[int] = None,
    ) -> PayrollRun:
        """Start a new approval cycle; the previous cycle's stamps stay in history."""

        def apply(run: PayrollRun, at: datetime) -> PayrollRun:
            lines, exceptions = self._build(period, run.employees, previous=())
            return replace(
                run,
                period=period,
                lines=lines,
                exceptions=exceptions,
                total_net_pay=self._total(lines),
                payroll_manager_id=None,
                finance_staff_id=None,
                manager_approval_date=None,
                finance_approval_date=None,
                rejection_reason=None,
            )

        return self._transition(
            actor,
            run_id,
            RunEvent.EDIT_PERIOD,
            expected_version=expected_version,
            apply=apply,
            note=period.label(),
        )

    def freeze(
        self,
        actor: Actor,
        run_id: str,
        *,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> PayrollRun:
        def apply(run: PayrollRun, at: datetime) -> PayrollRun:
            return replace(run, frozen=True)

        return self._transition(
            actor,
            run_id,
            RunEvent.FREEZE,
            expected_version=expected_version,
            apply=apply,
            note=reason,
        )

    def unfreeze(
        self,
        actor: Actor,
        run_id: str,
        unlock_reason: str,
        *,
        expected_version: Optional[int] = None,
    ) -> PayrollRun:
        unlock_reason = require_non_empty(unlock_reason, "unlock_reason")

        def apply(run: PayrollRun, at: datetime) -> PayrollRun:
            return replace(run, frozen=False, unlock_reason=unlock_reason)

        return self._transition(
            actor,
            run_id,
            RunEvent.UNFREEZE,
            expected_version=expected_version,
            apply=apply,
            note=unlock_reason,
        )

    def finalize(
        self,
        actor: Actor,
        run_id: str,
        *,
        expected_version: Optional[int] = None,
    ) -> list[Payslip]:
        """Issue payslips, then move FINANCE_APPROVED -> PAID.

        Payslips are written before the run is saved as PAID, so a failed
        write leaves the run FINANCE_APPROVED and the call can be retried.
        """

        def apply(run: PayrollRun, at: datetime) -> PayrollRun:
            return replace(run, payment_status=PayRollPaymentStatus.PAID)

        paid = self._transition(
            actor,
            run_id,
            RunEvent.FINALIZE,
            expected_version=expected_version,
            apply=apply,
            before_write=self._finalizer.finalize,
        )
        return self._finalizer.payslips_for_run(paid.run_id)

    # -- queries --------------------------------------------------------

    def get(self, run_id: str) -> PayrollRun:
        run = self._runs.get_by_id(str(run_id))
        if not run:
            raise NotFoundError("Payroll run not found", run_id=run_id)
        return run

    def list_runs(self, status: Optional[PayRollStatus] = None) -> list[PayrollRun]:
        return list(self._runs.list(status=None if status is None else PayRollStatus(status)))

    def payslips(self, run_id: str) -> list[Payslip]:
        return self._finalizer.payslips_for_run(run_id)

    # -- internals ------------------------------------------------------

    def _transition(
        self,
        actor: Actor,
        run_id: str,
        event: RunEvent,
        *,
        expected_version: Optional[int] = None,
        check: Optional[Callable[[PayrollRun], None]] = None,
        apply: Optional[Callable[[PayrollRun, datetime], PayrollRun]] = None,
        note: Optional[str] = None,
        before_write: Optional[Callable[[PayrollRun], object]] = None,
    ) -> PayrollRun:
        # capability before state
        actor.require_any(event_capabilities(event))
        with self._locks.hold(run_id):
            current = self._load(run_id, expected_version)
            rule = next_transition(current.status, event, frozen=current.frozen, run_id=run_id)
            actor.require(rule.capability)
            if check:
                check(current)

            at = self._clock()
            updated = apply(current, at) if apply else current
            updated = replace(
                updated,
                status=rule.target,
                version=current.version + 1,
                history=current.history
                + (
                    HistoryEntry(
                        event=event,
                        actor_id=actor.employee_id,
                        from_status=current.status,
                        to_status=rule.target,
                        at=at,
                        note=note,
                    ),
                ),
            )
            if before_write:
                before_write(updated)
            self._write(updated, current.version)

        logger.info(
            "Run %s: %s %s -> %s by %s (v%s)",
            run_id,
            event.value,
            current.status.value,
            updated.status.value,
            actor.employee_id,
            updated.version,
        )
        self._notify(updated, event, actor)
        return updated

    def _load(self, run_id: str, expected_version: Optional[int]) -> PayrollRun:
        current = self.get(run_id)
        if expected_version is not None and current.version != int(expected_version):
            raise ConcurrentModification(
                "Payroll run changed since it was read",
                run_id=run_id,
                expected=expected_version,
                actual=current.version,
            )
        return current

    def _write(self, run: PayrollRun, expected_version: int) -> None:
        if not self._runs.save(run, expected_version=expected_version):
            raise ConcurrentModification(
                "Payroll run changed concurrently",
                run_id=run.run_id,
                expected=expected_version,
            )

    def _build(
        self,
        period: PayrollPeriod,
        employee_ids: Iterable[str],
        *,
        previous: Iterable[RunException],
    ) -> tuple[tuple[PayrollLine, ...], tuple[RunException, ...]]:
        """Aggregate every employee; blockers become run exceptions instead of failing the draft."""

        resolved = {(e.employee_id, e.reason): e for e in previous if e.resolved}
        lines: list[PayrollLine] = []
        flags: list[RunException] = []

        def flag(employee_id: str, reason: RunExceptionReason, note: Optional[str] = None) -> None:
            prior = resolved.get((employee_id, reason))
            flags.append(prior or RunException(employee_id=employee_id, reason=reason, note=note))

        for employee_id in employee_ids:
            try:
                line = self._aggregator.aggregate(employee_id, period)
            except IncompleteAttendanceData as e:
                flag(employee_id, RunExceptionReason.INCOMPLETE_ATTENDANCE, e.message)
                continue
            except MissingPayGrade as e:
                flag(employee_id, RunExceptionReason.MISSING_PAY_GRADE, e.message)
                continue
            except NotFoundError as e:
                flag(employee_id, RunExceptionReason.UNKNOWN_EMPLOYEE, e.message)
                continue

            lines.append(line)
            if line.net < 0:
                flag(employee_id, RunExceptionReason.NEGATIVE_NET_PAY)
            employee = self._employees.get_employee(employee_id)
            if employee is not None and not employee.bank_account:
                flag(employee_id, RunExceptionReason.MISSING_BANK_DETAILS)

        return tuple(lines), tuple(flags)

    @staticmethod
    def _total(lines: Iterable[PayrollLine]) -> Decimal:
        return money(sum((line.net for line in lines), ZERO))

    @staticmethod
    def _require_editable_draft(run: PayrollRun) -> None:
        if run.status != PayRollStatus.DRAFT or run.frozen:
            raise ForbiddenError(
                "Only an unfrozen DRAFT run can be edited",
                run_id=run.run_id,
                expected=PayRollStatus.DRAFT,
                actual=run.status,
                frozen=run.frozen,
            )

    @staticmethod
    def _require_not_specialist(actor: Actor, run: PayrollRun) -> None:
        if actor.employee_id == run.payroll_specialist_id:
            raise ForbiddenError(
                "The payroll specialist cannot approve or reject their own run",
                run_id=run.run_id,
                actor=actor.employee_id,
            )

    @staticmethod
    def _require_not_manager_approver(actor: Actor, run: PayrollRun) -> None:
        if run.payroll_manager_id and actor.employee_id == run.payroll_manager_id:
            raise ForbiddenError(
                "The manager approver cannot also act as finance approver",
                run_id=run.run_id,
                actor=actor.employee_id,
            )

    def _notify(self, run: PayrollRun, event: RunEvent, actor: Actor) -> None:
        if self._dispatcher is None:
            return

        recipients = [run.payroll_specialist_id, run.payroll_manager_id, run.finance_staff_id]
        if event == RunEvent.SUBMIT:
            specialist = self._employees.get_employee(run.payroll_specialist_id)
            if specialist is not None:
                recipients.append(specialist.manager_id)

        message = f"{_MESSAGES[event]} ({run.period.label()}, status {run.status.value})"
        for recipient in dict.fromkeys(r for r in recipients if r and r != actor.employee_id):
            self._dispatcher.dispatch(recipient, f"Payroll run {run.run_id}", message, related_entity_id=run.run_id)

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional

from ..common.locking import KeyedLock
from ..core.capabilities import Actor, Capability
from ..core.enums import ShiftAssignmentStatus
from ..core.exceptions import ConcurrentModification, ForbiddenError, NotFoundError, ValidationError
from .model import Shift, ShiftAssignment
from .repository import ShiftAssignmentRepository, ShiftRepository

logger = logging.getLogger(__name__)

_ALLOWED = {
    ShiftAssignmentStatus.PENDING: {ShiftAssignmentStatus.APPROVED, ShiftAssignmentStatus.REJECTED},
    ShiftAssignmentStatus.APPROVED: {ShiftAssignmentStatus.CANCELLED, ShiftAssignmentStatus.EXPIRED},
}


class ShiftAssignmentService:
    def __init__(
        self,
        shifts: ShiftRepository,
        assignments: ShiftAssignmentRepository,
        *,
        locks: Optional[KeyedLock] = None,
    ):
        self._shifts = shifts
        self._assignments = assignments
        self._locks = locks or KeyedLock()

    def assign(
        self,
        actor: Actor,
        *,
        employee_id: str,
        shift_id: int,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> ShiftAssignment:
        actor.require(Capability.ASSIGN_SHIFTS)

        if not self._shifts.get_by_id(int(shift_id)):
            raise NotFoundError("Shift not found", shift_id=shift_id)
        if end_date is not None and end_date < start_date:
            raise ValidationError("End date must be >= start date", start_date=start_date, end_date=end_date)

        assignment = ShiftAssignment(
            assignment_id=0,
            employee_id=str(employee_id),
            shift_id=int(shift_id),
            start_date=start_date,
            end_date=end_date,
            status=ShiftAssignmentStatus.PENDING,
            assigned_by=actor.employee_id,
        )
        assignment_id = self._assignments.create(assignment)
        return replace(assignment, assignment_id=assignment_id)

    def update_status(self, actor: Actor, assignment_id: int, status: ShiftAssignmentStatus) -> ShiftAssignment:
        """Status is the only thing that changes once an assignment exists."""
        actor.require(Capability.ASSIGN_SHIFTS)
        status = ShiftAssignmentStatus(status)

        with self._locks.hold(("assignment", int(assignment_id))):
            current = self._assignments.get_by_id(int(assignment_id))
            if not current:
                raise NotFoundError("Shift assignment not found", assignment_id=assignment_id)
            if status not in _ALLOWED.get(current.status, set()):
                raise ForbiddenError(
                    f"Cannot move assignment from {current.status.value} to {status.value}",
                    assignment_id=assignment_id,
                    expected=sorted(s.value for s in _ALLOWED.get(current.status, set())),
                    actual=current.status,
                )

            updated = replace(current, status=status, version=current.version + 1)
            if not self._assignments.save(updated, expected_version=current.version):
                raise ConcurrentModification("Shift assignment changed concurrently", assignment_id=assignment_id)

        logger.info("Shift assignment %s -> %s by %s", assignment_id, status.value, actor.employee_id)
        return updated

    def effective_shift(self, employee_id: str, work_date: date) -> Optional[Shift]:
        for assignment in self._assignments.list_for_employee(str(employee_id), on_date=work_date):
            if assignment.status == ShiftAssignmentStatus.APPROVED and assignment.covers(work_date):
                return self._shifts.get_by_id(assignment.shift_id)
        return None

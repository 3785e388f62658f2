from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import iter_days, now_local
from ..common.locking import KeyedLock
from ..core.capabilities import Actor, Capability
from ..core.constants import DEFAULT_RULE_SCOPE
from ..core.enums import PunchType
from ..core.exceptions import ConcurrentModification, NotFoundError, ValidationError
from ..rules.service import RuleConfigService
from ..shifts.service import ShiftAssignmentService
from .evaluator import AttendanceRuleEvaluator
from .model import AttendanceRecord, Punch
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    """Owns attendance records: punches go in, the evaluator's facts come out.

    Every write for an (employee_id, work_date) happens under the same keyed
    lock and is persisted with a version check.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        shifts: ShiftAssignmentService,
        rules: RuleConfigService,
        *,
        evaluator: Optional[AttendanceRuleEvaluator] = None,
        locks: Optional[KeyedLock] = None,
        rule_scope: str = DEFAULT_RULE_SCOPE,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._shifts = shifts
        self._rules = rules
        self._evaluator = evaluator or AttendanceRuleEvaluator()
        self._locks = locks or KeyedLock()
        self._rule_scope = rule_scope
        self._clock = clock

    def record_punch(
        self,
        actor: Actor,
        employee_id: str,
        kind: PunchType,
        *,
        at: Optional[datetime] = None,
        method: str = "device",
        location: Optional[str] = None,
        work_date: Optional[date] = None,
    ) -> AttendanceRecord:
        actor.require(Capability.RECORD_PUNCH)
        employee_id = str(employee_id)
        if employee_id != actor.employee_id:
            # punching on someone else's behalf
            actor.require(Capability.EVALUATE_ATTENDANCE)

        at = at or self._clock()
        kind = PunchType(kind)
        work_date = work_date or self._work_date_for(employee_id, kind, at)
        punch = Punch(kind=kind, time=at, method=method or "device", location=location)

        with self._locks.hold((employee_id, work_date)):
            current = self._attendance.get_for_employee_and_date(employee_id, work_date)
            if current is None:
                draft = AttendanceRecord(record_id=0, employee_id=employee_id, work_date=work_date, punches=(punch,))
                # Raises InvalidPunchSequence before anything is stored.
                evaluated = self._evaluate_record(draft)
                record_id = self._attendance.create(evaluated)
                saved = replace(evaluated, record_id=record_id)
            else:
                candidate = replace(current, punches=current.punches + (punch,))
                saved = self._persist(current, self._evaluate_record(candidate))

        logger.info(
            "Punch %s for %s on %s -> %s",
            punch.kind.value,
            employee_id,
            work_date,
            saved.status.value,
        )
        return saved

    def ensure_record(self, actor: Actor, employee_id: str, work_date: date) -> AttendanceRecord:
        """Create the day's record when no punch did (absent days)."""
        actor.require(Capability.EVALUATE_ATTENDANCE)
        employee_id = str(employee_id)

        with self._locks.hold((employee_id, work_date)):
            current = self._attendance.get_for_employee_and_date(employee_id, work_date)
            if current is not None:
                return current
            evaluated = self._evaluate_record(
                AttendanceRecord(record_id=0, employee_id=employee_id, work_date=work_date)
            )
            record_id = self._attendance.create(evaluated)

        logger.info("Created %s record for %s on %s", evaluated.status.value, employee_id, work_date)
        return replace(evaluated, record_id=record_id)

    def ensure_period(self, actor: Actor, employee_id: str, start: date, end: date) -> list[AttendanceRecord]:
        """Nightly job: one record per day of the range, punched or not."""
        if end < start:
            raise ValidationError("End date must be >= start date", start=start, end=end)
        return [self.ensure_record(actor, employee_id, day) for day in iter_days(start, end)]

    def evaluate(self, actor: Actor, employee_id: str, work_date: date) -> AttendanceRecord:
        actor.require(Capability.EVALUATE_ATTENDANCE)
        employee_id = str(employee_id)

        with self._locks.hold((employee_id, work_date)):
            current = self._get(employee_id, work_date)
            return self._persist(current, self._evaluate_record(current))

    def recompute_period(self, actor: Actor, employee_id: str, start: date, end: date) -> list[AttendanceRecord]:
        actor.require(Capability.EVALUATE_ATTENDANCE)
        if end < start:
            raise ValidationError("End date must be >= start date", start=start, end=end)

        out: list[AttendanceRecord] = []
        for record in self._attendance.list_for_employee(str(employee_id), start=start, end=end):
            out.append(self.evaluate(actor, record.employee_id, record.work_date))
        return out

    def mark_corrected(self, actor: Actor, employee_id: str, work_date: date) -> AttendanceRecord:
        """Flag the record as corrected so malformed punches are skipped while pairing."""
        actor.require(Capability.RESOLVE_EXCEPTIONS)
        employee_id = str(employee_id)

        with self._locks.hold((employee_id, work_date)):
            current = self._get(employee_id, work_date)
            updated = self._persist(current, self._evaluate_record(replace(current, corrected=True)))

        logger.info("Record %s marked corrected by %s", updated.record_id, actor.employee_id)
        return updated

    def get_record(self, employee_id: str, work_date: date) -> AttendanceRecord:
        return self._get(str(employee_id), work_date)

    def list_records(self, employee_id: str, start: date, end: date) -> list[AttendanceRecord]:
        return list(self._attendance.list_for_employee(str(employee_id), start=start, end=end))

    def _work_date_for(self, employee_id: str, kind: PunchType, at: datetime) -> date:
        """An OUT after midnight closes the previous day's overnight shift when that day has an open IN."""
        if kind != PunchType.OUT:
            return at.date()
        previous = at.date() - timedelta(days=1)
        shift = self._shifts.effective_shift(employee_id, previous)
        if shift is None or not shift.overnight:
            return at.date()
        record = self._attendance.get_for_employee_and_date(employee_id, previous)
        if record is None or not record.punches:
            return at.date()
        last = max(record.punches, key=lambda p: p.time)
        return previous if last.kind == PunchType.IN and last.time < at else at.date()

    def _get(self, employee_id: str, work_date: date) -> AttendanceRecord:
        record = self._attendance.get_for_employee_and_date(employee_id, work_date)
        if not record:
            raise NotFoundError("Attendance record not found", employee_id=employee_id, work_date=work_date)
        return record

    def _evaluate_record(self, record: AttendanceRecord) -> AttendanceRecord:
        shift = self._shifts.effective_shift(record.employee_id, record.work_date)
        rules = self._rules.active_rules(self._rule_scope)
        facts = self._evaluator.evaluate(record, shift, rules)
        return self._evaluator.apply(record, facts)

    def _persist(self, current: AttendanceRecord, updated: AttendanceRecord) -> AttendanceRecord:
        if updated == current:
            return current

        updated = replace(updated, version=current.version + 1)
        if not self._attendance.save(updated, expected_version=current.version):
            raise ConcurrentModification(
                "Attendance record changed concurrently",
                record_id=current.record_id,
                expected_version=current.version,
            )
        return updated

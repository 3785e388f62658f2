from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Optional, Sequence

from ..common.datetime_utils import minutes_between, round_minutes
from ..core.enums import AttendanceStatus, ExceptionType, PunchType, RuleType
from ..core.exceptions import InvalidPunchSequence
from ..rules.model import RuleSet
from ..shifts.model import Shift
from .factory import AttendanceStrategyFactory
from .model import AttendanceException, AttendanceRecord, DayFacts, EvaluatedFacts, Punch


@dataclass(frozen=True)
class PunchPairs:
    pairs: tuple[tuple[Punch, Punch], ...]
    first_in: Optional[Punch]
    dangling_in: Optional[Punch]

    @property
    def last_out(self) -> Optional[Punch]:
        return self.pairs[-1][1] if self.pairs else None

    @property
    def worked_minutes(self) -> int:
        seconds = sum((out.time - in_.time).total_seconds() for in_, out in self.pairs)
        return int(seconds // 60)


def pair_punches(record: AttendanceRecord) -> PunchPairs:
    """Pair consecutive IN/OUT punches.

    A trailing IN is allowed (missed punch). Two punches of the same kind in a
    row, or an OUT with no open IN, is an invalid sequence unless the record
    went through a correction, in which case the stray punch is skipped.
    """

    ordered = sorted(record.punches, key=lambda p: p.time)
    pairs: list[tuple[Punch, Punch]] = []
    first_in: Optional[Punch] = None
    open_in: Optional[Punch] = None

    for punch in ordered:
        if punch.kind == PunchType.IN:
            if open_in is not None:
                if not record.corrected:
                    raise InvalidPunchSequence(
                        "Two consecutive IN punches",
                        employee_id=record.employee_id,
                        work_date=record.work_date,
                        at=punch.time.isoformat(),
                    )
                continue
            open_in = punch
            if first_in is None:
                first_in = punch
        else:
            if open_in is None:
                if not record.corrected:
                    raise InvalidPunchSequence(
                        "OUT punch without a preceding IN",
                        employee_id=record.employee_id,
                        work_date=record.work_date,
                        at=punch.time.isoformat(),
                    )
                continue
            pairs.append((open_in, punch))
            open_in = None

    return PunchPairs(pairs=tuple(pairs), first_in=first_in, dangling_in=open_in)


def shift_window(shift: Shift, record: AttendanceRecord) -> tuple[datetime, datetime]:
    start = datetime.combine(record.work_date, shift.start_time)
    end = datetime.combine(record.work_date, shift.end_time)
    if shift.overnight:
        end += timedelta(days=1)
    return start, end


@dataclass
class AttendanceRuleEvaluator:
    """Turns a day's punches, shift and active rules into normalized work-time facts."""

    factory: AttendanceStrategyFactory = field(default_factory=AttendanceStrategyFactory)
    default_grace_minutes: int = 0

    def evaluate(self, record: AttendanceRecord, shift: Optional[Shift], rules: RuleSet) -> EvaluatedFacts:
        facts = self.measure(record, shift, rules)
        strategy = self.factory.for_facts(facts)

        no_punches = facts.punch_count == 0
        return EvaluatedFacts(
            status=strategy.status,
            worked_minutes=facts.worked_minutes,
            final_calculated_hours=None if no_punches else round(facts.worked_minutes / 60, 2),
            lateness_minutes=facts.lateness_minutes,
            early_leave_minutes=facts.early_leave_minutes,
            short_time_minutes=facts.short_time_minutes,
            overtime_minutes=facts.overtime_minutes,
            penalties_suppressed=facts.penalties_suppressed,
            exception_types=self.detect_exceptions(facts),
            shift_id=shift.shift_id if shift else None,
        )

    def measure(self, record: AttendanceRecord, shift: Optional[Shift], rules: RuleSet) -> DayFacts:
        paired = pair_punches(record)
        worked = paired.worked_minutes
        missed = paired.dangling_in is not None

        day_rule = rules.day_rule(record.work_date)
        day_kind: Optional[AttendanceStatus] = None
        if day_rule is not None:
            day_kind = AttendanceStatus.HOLIDAY if day_rule.rule_type == RuleType.HOLIDAY else AttendanceStatus.REST_DAY

        lateness = early_leave = short_time = overtime = None
        overtime_rule = rules.get(RuleType.OVERTIME)

        if shift is not None and paired.first_in is not None:
            start, end = shift_window(shift, record)
            late_grace = rules.grace_for(RuleType.LATENESS, self.default_grace_minutes)
            lateness = round_minutes(
                minutes_between(start + timedelta(minutes=late_grace), paired.first_in.time),
                rules.method_for(RuleType.LATENESS),
            )

            last_out = paired.last_out
            if not missed and last_out is not None:
                short_type = RuleType.SHORT_TIME if rules.get(RuleType.SHORT_TIME) else RuleType.LATENESS
                leave_grace = rules.grace_for(short_type, self.default_grace_minutes)
                method = rules.method_for(short_type)

                early_leave = round_minutes(
                    minutes_between(last_out.time, end - timedelta(minutes=leave_grace)),
                    method,
                )

                scheduled = minutes_between(start, end)
                # Time missing inside the day that lateness and early leave don't explain.
                gap = scheduled - worked - (lateness or 0) - (early_leave or 0)
                short_time = round_minutes(gap, method) if gap > leave_grace else 0

                excess = minutes_between(end, last_out.time)
                threshold = overtime_rule.min_minutes if overtime_rule else 0
                overtime = round_minutes(excess, rules.method_for(RuleType.OVERTIME)) if excess > 0 and excess >= threshold else 0

        penalties_suppressed = False
        if day_rule is not None:
            if day_rule.suppress_lateness and lateness is not None:
                lateness = 0
            if day_rule.suppress_early_leave:
                if early_leave is not None:
                    early_leave = 0
                if short_time is not None:
                    short_time = 0
            penalties_suppressed = day_rule.suppress_penalties

        return DayFacts(
            punch_count=len(record.punches),
            has_missed_punch=missed,
            day_kind=day_kind,
            worked_minutes=worked,
            lateness_minutes=lateness,
            early_leave_minutes=early_leave,
            short_time_minutes=short_time,
            overtime_minutes=overtime,
            overtime_requires_approval=bool(overtime_rule and overtime_rule.requires_approval),
            penalties_suppressed=penalties_suppressed,
        )

    @staticmethod
    def detect_exceptions(facts: DayFacts) -> tuple[ExceptionType, ...]:
        found: list[ExceptionType] = []
        if facts.has_missed_punch:
            found.append(ExceptionType.MISSED_PUNCH)
        if facts.lateness_minutes:
            found.append(ExceptionType.LATE)
        if facts.early_leave_minutes:
            found.append(ExceptionType.EARLY_LEAVE)
        if facts.short_time_minutes:
            found.append(ExceptionType.SHORT_TIME)
        if facts.overtime_minutes and facts.overtime_requires_approval:
            found.append(ExceptionType.OVERTIME)
        return tuple(found)

    def apply(self, record: AttendanceRecord, facts: EvaluatedFacts) -> AttendanceRecord:
        """Copy derived fields onto the record and merge exceptions."""
        return replace(
            record,
            shift_id=facts.shift_id,
            status=facts.status,
            worked_minutes=facts.worked_minutes,
            final_calculated_hours=facts.final_calculated_hours,
            lateness_minutes=facts.lateness_minutes,
            early_leave_minutes=facts.early_leave_minutes,
            short_time_minutes=facts.short_time_minutes,
            overtime_minutes=facts.overtime_minutes,
            penalties_suppressed=facts.penalties_suppressed,
            exceptions=merge_exceptions(record.exceptions, facts.exception_types),
        )


def merge_exceptions(
    existing: Sequence[AttendanceException],
    detected: Sequence[ExceptionType],
) -> tuple[AttendanceException, ...]:
    """Deduplicate by type.

    Resolved exceptions are kept as history and suppress re-raising the same
    type. Unresolved ones survive only while still detected.
    """

    detected_set = set(detected)
    merged: list[AttendanceException] = []
    seen: set[ExceptionType] = set()

    for exc in existing:
        if exc.resolved:
            merged.append(exc)
            seen.add(exc.type)

    for exc in existing:
        if not exc.resolved and exc.type in detected_set and exc.type not in seen:
            merged.append(exc)
            seen.add(exc.type)

    for exc_type in detected:
        if exc_type not in seen:
            merged.append(AttendanceException(type=exc_type))
            seen.add(exc_type)

    return tuple(merged)

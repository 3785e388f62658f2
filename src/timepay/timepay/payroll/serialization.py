"""JSON shapes for the payroll columns stored as documents (lines, exceptions, history, payslip items)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence

from ..core.enums import PayRollStatus, RunEvent
from ..database.mysql_base import dump_json, load_json
from .model import HistoryEntry, LineItem, LineItemKind, PayrollLine, RunException, RunExceptionReason

_MONEY_FIELDS = (
    "worked_hours",
    "base_salary",
    "allowances",
    "bonuses",
    "overtime_pay",
    "termination_benefits",
    "penalties",
    "gross",
    "taxes",
    "insurance",
    "employer_insurance",
    "net",
)


def item_to_dict(item: LineItem) -> dict[str, Any]:
    return {"kind": item.kind.value, "code": item.code, "label": item.label, "amount": str(item.amount)}


def item_from_dict(d: dict) -> LineItem:
    return LineItem(
        kind=LineItemKind(d["kind"]),
        code=d["code"],
        label=d.get("label") or d["code"],
        amount=Decimal(str(d["amount"])),
    )


def line_to_dict(line: PayrollLine) -> dict[str, Any]:
    out: dict[str, Any] = {
        "employee_id": line.employee_id,
        "overtime_minutes": line.overtime_minutes,
        "lateness_minutes": line.lateness_minutes,
        "items": [item_to_dict(i) for i in line.items],
    }
    for name in _MONEY_FIELDS:
        out[name] = str(getattr(line, name))
    return out


def line_from_dict(d: dict) -> PayrollLine:
    return PayrollLine(
        employee_id=str(d["employee_id"]),
        overtime_minutes=int(d.get("overtime_minutes") or 0),
        lateness_minutes=int(d.get("lateness_minutes") or 0),
        items=tuple(item_from_dict(i) for i in d.get("items") or []),
        **{name: Decimal(str(d.get(name, "0.00"))) for name in _MONEY_FIELDS},
    )


def exception_to_dict(exc: RunException) -> dict[str, Any]:
    return {"employee_id": exc.employee_id, "reason": exc.reason.value, "resolved": exc.resolved, "note": exc.note}


def exception_from_dict(d: dict) -> RunException:
    return RunException(
        employee_id=str(d["employee_id"]),
        reason=RunExceptionReason(d["reason"]),
        resolved=bool(d.get("resolved")),
        note=d.get("note"),
    )


def history_to_dict(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "event": entry.event.value,
        "actor_id": entry.actor_id,
        "from": entry.from_status.value,
        "to": entry.to_status.value,
        "at": entry.at.isoformat(),
        "note": entry.note,
    }


def history_from_dict(d: dict) -> HistoryEntry:
    return HistoryEntry(
        event=RunEvent(d["event"]),
        actor_id=str(d["actor_id"]),
        from_status=PayRollStatus(d["from"]),
        to_status=PayRollStatus(d["to"]),
        at=datetime.fromisoformat(d["at"]),
        note=d.get("note"),
    )


def dump_lines(lines: Sequence[PayrollLine]) -> str:
    return dump_json([line_to_dict(line) for line in lines])


def load_lines(raw) -> tuple[PayrollLine, ...]:
    return tuple(line_from_dict(d) for d in load_json(raw, []))


def dump_exceptions(exceptions: Sequence[RunException]) -> str:
    return dump_json([exception_to_dict(e) for e in exceptions])


def load_exceptions(raw) -> tuple[RunException, ...]:
    return tuple(exception_from_dict(d) for d in load_json(raw, []))


def dump_history(history: Sequence[HistoryEntry]) -> str:
    return dump_json([history_to_dict(h) for h in history])


def load_history(raw) -> tuple[HistoryEntry, ...]:
    return tuple(history_from_dict(d) for d in load_json(raw, []))


def dump_items(items: Sequence[LineItem]) -> str:
    return dump_json([item_to_dict(i) for i in items])


def load_items(raw) -> tuple[LineItem, ...]:
    return tuple(item_from_dict(d) for d in load_json(raw, []))

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import Shift, ShiftAssignment


class ShiftRepository(Protocol):
    def list_all(self) -> Sequence[Shift]:
        raise NotImplementedError

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        raise NotImplementedError


class ShiftAssignmentRepository(Protocol):
    def get_by_id(self, assignment_id: int) -> Optional[ShiftAssignment]:
        raise NotImplementedError

    def list_for_employee(self, employee_id: str, *, on_date: Optional[date] = None) -> Sequence[ShiftAssignment]:
        raise NotImplementedError

    def create(self, assignment: ShiftAssignment) -> int:
        raise NotImplementedError

    def save(self, assignment: ShiftAssignment, *, expected_version: int) -> bool:
        """Compare-and-set write; False when the stored version differs."""

        raise NotImplementedError

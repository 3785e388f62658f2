from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import PayRollStatus
from .model import PayrollRun, Payslip


class PayrollRunRepository(Protocol):
    def get_by_id(self, run_id: str) -> Optional[PayrollRun]:
        raise NotImplementedError

    def list(self, *, status: Optional[PayRollStatus] = None) -> Sequence[PayrollRun]:
        raise NotImplementedError

    def create(self, run: PayrollRun) -> None:
        raise NotImplementedError

    def save(self, run: PayrollRun, *, expected_version: int) -> bool:
        """Compare-and-set write; False when the stored version differs."""

        raise NotImplementedError


class PayslipRepository(Protocol):
    def get_by_id(self, payslip_id: str) -> Optional[Payslip]:
        raise NotImplementedError

    def list_for_run(self, run_id: str) -> Sequence[Payslip]:
        raise NotImplementedError

    def list_for_employee(self, employee_id: str) -> Sequence[Payslip]:
        raise NotImplementedError

    def create_many(self, payslips: Sequence[Payslip]) -> None:
        raise NotImplementedError

    def save(self, payslip: Payslip) -> bool:
        raise NotImplementedError

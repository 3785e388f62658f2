from __future__ import annotations

import copy
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable

from ..common.datetime_utils import now_local
from ..core.enums import PayRollStatus, PaySlipPaymentStatus
from ..core.exceptions import InvalidTransition, NotFoundError
from .model import PayrollRun, Payslip
from .repository import PayslipRepository

logger = logging.getLogger(__name__)

_FINALIZABLE = frozenset({PayRollStatus.FINANCE_APPROVED, PayRollStatus.PAID})


def payslip_id_for(run_id: str, employee_id: str) -> str:
    return f"{run_id}-{employee_id}"


class PayslipFinalizer:
    """Snapshots each run line into an immutable payslip.

    Finalizing the same run twice returns the payslips stored the first time.
    """

    def __init__(self, payslips: PayslipRepository, *, clock: Callable[[], datetime] = now_local):
        self._payslips = payslips
        self._clock = clock

    def finalize(self, run: PayrollRun) -> list[Payslip]:
        if run.status not in _FINALIZABLE:
            raise InvalidTransition(
                "Only finance-approved runs produce payslips",
                run_id=run.run_id,
                status=run.status,
            )

        stored = list(self._payslips.list_for_run(run.run_id))
        if stored:
            return stored

        created_at = self._clock()
        payslips = [
            Payslip(
                payslip_id=payslip_id_for(run.run_id, line.employee_id),
                run_id=run.run_id,
                employee_id=line.employee_id,
                period=run.period,
                earnings=copy.deepcopy(line.earnings()),
                deductions=copy.deepcopy(line.deductions()),
                gross=line.gross,
                net=line.net,
                payment_status=PaySlipPaymentStatus.PENDING,
                created_at=created_at,
            )
            for line in run.lines
        ]
        self._payslips.create_many(payslips)
        logger.info("Finalized run %s: %s payslips", run.run_id, len(payslips))
        return payslips

    def mark_paid(self, payslip_id: str) -> Payslip:
        payslip = self._payslips.get_by_id(str(payslip_id))
        if not payslip:
            raise NotFoundError("Payslip not found", payslip_id=payslip_id)
        if payslip.payment_status == PaySlipPaymentStatus.PAID:
            return payslip

        paid = replace(payslip, payment_status=PaySlipPaymentStatus.PAID)
        self._payslips.save(paid)
        logger.info("Payslip %s marked paid", payslip_id)
        return paid

    def payslips_for_run(self, run_id: str) -> list[Payslip]:
        return list(self._payslips.list_for_run(str(run_id)))

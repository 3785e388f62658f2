from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from src.timepay.timepay.core.enums import PayRollStatus, PaySlipPaymentStatus
from src.timepay.timepay.core.exceptions import InvalidTransition, NotFoundError
from src.timepay.timepay.payroll.model import LineItem, LineItemKind, PayrollLine, PayrollPeriod, PayrollRun


def _run(status=PayRollStatus.FINANCE_APPROVED) -> PayrollRun:
    line = PayrollLine(
        employee_id="E001",
        base_salary=Decimal("3000.00"),
        gross=Decimal("3000.00"),
        taxes=Decimal("300.00"),
        net=Decimal("2700.00"),
        items=(
            LineItem(LineItemKind.EARNING, "BASE_SALARY", "Grade A", Decimal("3000.00")),
            LineItem(LineItemKind.DEDUCTION, "TAX", "Income tax", Decimal("300.00")),
        ),
    )
    return PayrollRun(
        run_id="PR-202503-abcd1234",
        period=PayrollPeriod(date(2025, 3, 1), date(2025, 3, 31)),
        status=status,
        payroll_specialist_id="S001",
        employees=("E001",),
        lines=(line,),
    )


def test_finalize_snapshots_lines(finalizer, fixed_now):
    (payslip,) = finalizer.finalize(_run())

    assert payslip.payslip_id == "PR-202503-abcd1234-E001"
    assert [i.code for i in payslip.earnings] == ["BASE_SALARY"]
    assert [i.code for i in payslip.deductions] == ["TAX"]
    assert payslip.gross == Decimal("3000.00")
    assert payslip.net == Decimal("2700.00")
    assert payslip.created_at == fixed_now
    assert payslip.payment_status == PaySlipPaymentStatus.PENDING


def test_finalize_twice_returns_the_stored_payslips(finalizer, payslips_repo):
    first = finalizer.finalize(_run())
    payslips_repo.save(replace(first[0], created_at=datetime(2030, 1, 1)))

    second = finalizer.finalize(_run(PayRollStatus.PAID))

    assert [p.payslip_id for p in second] == [p.payslip_id for p in first]
    assert second[0].created_at == datetime(2030, 1, 1)


def test_finalize_requires_finance_approval(finalizer, payslips_repo):
    with pytest.raises(InvalidTransition):
        finalizer.finalize(_run(PayRollStatus.MANAGER_APPROVED))

    assert payslips_repo.list_for_run("PR-202503-abcd1234") == []


def test_mark_paid(finalizer):
    (payslip,) = finalizer.finalize(_run())

    paid = finalizer.mark_paid(payslip.payslip_id)

    assert paid.payment_status == PaySlipPaymentStatus.PAID
    assert finalizer.mark_paid(payslip.payslip_id) == paid
    assert finalizer.payslips_for_run("PR-202503-abcd1234")[0].payment_status == PaySlipPaymentStatus.PAID
    with pytest.raises(NotFoundError):
        finalizer.mark_paid("nope")

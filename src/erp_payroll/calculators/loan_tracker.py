"""Loan installment tracking."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from erp_payroll.calculators.types import DiscountSource, DueInstallment
from erp_payroll.repositories import LoanRepository, PayrollItemRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from erp_payroll.models import LoanAdvance, PayrollItem


FRACTION_PRECISION = Decimal("0.0001")


class LoanInstallmentTracker:
    """Determines which loans are due in a period and their next installment.

    Numbering is derived from the active loan items already recorded, so
    regenerating a run (which first removes its generated items) never
    skips or repeats an installment number.
    """

    def __init__(
        self,
        session: AsyncSession,
        loans: LoanRepository | None = None,
        items: PayrollItemRepository | None = None,
    ):
        self.loans = loans or LoanRepository(session)
        self.items = items or PayrollItemRepository(session)

    async def pending_loans(self, employee_id: int, period_end: date) -> list[LoanAdvance]:
        return await self.loans.pending_loans(employee_id, period_end)

    async def next_installment_number(self, loan_id: int) -> int:
        return await self.items.next_installment_number(loan_id)

    async def due_installments(
        self,
        employee_id: int,
        period_end: date,
        exclude_loan_ids: Iterable[int] = (),
    ) -> list[DueInstallment]:
        """Installments to discount from a regular salary run.

        Loans discounted only from the thirteenth salary or vacation are left
        to those operations. Exhausted loans are skipped silently.
        """
        excluded = set(exclude_loan_ids)
        due: list[DueInstallment] = []
        for loan in await self.pending_loans(employee_id, period_end):
            if loan.loan_id in excluded:
                continue
            if DiscountSource(loan.discount_source) not in DiscountSource.regular():
                continue
            number = await self.next_installment_number(loan.loan_id)
            if number > loan.installments:
                continue
            due.append(
                DueInstallment(
                    loan_id=loan.loan_id,
                    description=loan.description,
                    number=number,
                    total=loan.installments,
                    amount=self.installment_amount(loan.amount, loan.installments, number),
                )
            )
        return due

    async def vacation_installments(self, employee_id: int, period_end: date) -> list[DueInstallment]:
        """Next installment of every loan discounted only from vacation pay.

        Numbering follows the installments already settled, since a vacation
        is applied to at most one open run at a time.
        """
        due: list[DueInstallment] = []
        for loan in await self.pending_loans(employee_id, period_end):
            if DiscountSource(loan.discount_source) not in DiscountSource.vacation():
                continue
            number = int(Decimal(loan.installments_paid or 0)) + 1
            if number > loan.installments:
                continue
            due.append(
                DueInstallment(
                    loan_id=loan.loan_id,
                    description=loan.description,
                    number=number,
                    total=loan.installments,
                    amount=self.installment_amount(loan.amount, loan.installments, number),
                )
            )
        return due

    @staticmethod
    def installment_amount(amount: int, installments: int, number: int) -> int:
        """Amount of installment ``number`` (1-based).

        Installments are ``amount // installments``; the last one absorbs the
        remainder so a loan is always repaid in full.
        """
        base = amount // installments
        if number >= installments:
            return amount - base * (installments - 1)
        return base

    @classmethod
    def settled_fraction(cls, loan: LoanAdvance, item: PayrollItem) -> Decimal:
        """How many installments a discounted item settles.

        A full installment settles exactly one; partial amounts (a
        thirteenth salary applied at 50%) settle the matching fraction.
        """
        number = item.installment_number or 1
        scheduled = cls.installment_amount(loan.amount, loan.installments, number)
        if scheduled <= 0 or item.amount == scheduled:
            return Decimal("1")
        return (Decimal(item.amount) / Decimal(scheduled)).quantize(FRACTION_PRECISION)

    @classmethod
    def settle(cls, loan: LoanAdvance, item: PayrollItem) -> Decimal:
        """Apply a closed run's loan item to the loan balance."""
        fraction = cls.settled_fraction(loan, item)
        remaining = loan.remaining_amount if loan.remaining_amount is not None else loan.amount
        loan.installments_paid = Decimal(loan.installments_paid or 0) + fraction
        loan.remaining_amount = max(0, remaining - item.amount)
        loan.is_fully_paid = (
            loan.installments_paid >= loan.installments or loan.remaining_amount == 0
        )
        return fraction

    @staticmethod
    def unsettle(loan: LoanAdvance, fraction: Decimal, amount: int) -> None:
        """Reverse a settlement recorded at close time when the run is reopened."""
        remaining = loan.remaining_amount if loan.remaining_amount is not None else 0
        loan.installments_paid = max(
            Decimal("0"), Decimal(loan.installments_paid or 0) - Decimal(fraction)
        )
        loan.remaining_amount = min(loan.amount, remaining + amount)
        loan.is_fully_paid = False

"""Financial transactions booked when a payroll run is closed or reopened."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_payroll.calculators.cost_centers import split_amount
from erp_payroll.models import FinancialTransaction, TransactionCostCenter

if TYPE_CHECKING:
    from erp_payroll.models import Payroll

logger = logging.getLogger(__name__)


@dataclass
class EmployeePayment:
    """Net pay owed to one payroll employee."""

    payroll_employee_id: int
    employee_id: int
    employee_name: str
    net_pay: int
    cost_centers: list[tuple[int, Decimal]] = field(default_factory=list)


@dataclass
class ClosingStatement:
    """Everything the ledger needs to book a payroll close."""

    payroll: Payroll
    payment_date: date
    account_id: int | None
    payments: list[EmployeePayment]
    inss_amount: int
    fgts_amount: int
    tax_cost_centers: list[tuple[int, Decimal]] = field(default_factory=list)
    user_id: int | None = None


@runtime_checkable
class FinancialTransactionService(Protocol):
    """Accounting-side collaborator invoked at close and reopen time."""

    async def post_net_pay_and_tax_transactions(self, statement: ClosingStatement) -> list[int]:
        """Book net pay, INSS and FGTS; return the created transaction ids."""
        ...

    async def reverse_transactions(self, payroll: Payroll) -> None:
        """Remove the transactions recorded on ``payroll``."""
        ...


class LedgerTransactionService:
    """Writes closing transactions to the local ledger tables.

    One outflow per positive employee net pay, split by that employee's
    contract cost centers; one INSS and one FGTS outflow, split by the
    gross-weighted average distribution of the whole run.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def post_net_pay_and_tax_transactions(self, statement: ClosingStatement) -> list[int]:
        payroll = statement.payroll
        label = payroll.period_start.strftime("%m/%Y")
        created: list[FinancialTransaction] = []

        for payment in statement.payments:
            if payment.net_pay <= 0:
                continue
            created.append(
                self._transaction(
                    statement,
                    category="net_pay",
                    description=f"Payroll {label} - {payment.employee_name}",
                    amount=payment.net_pay,
                    employee_id=payment.employee_id,
                    shares=payment.cost_centers,
                )
            )

        if statement.inss_amount > 0:
            created.append(
                self._transaction(
                    statement,
                    category="inss",
                    description=f"INSS payroll {label}",
                    amount=statement.inss_amount,
                    shares=statement.tax_cost_centers,
                )
            )
        if statement.fgts_amount > 0:
            created.append(
                self._transaction(
                    statement,
                    category="fgts",
                    description=f"FGTS payroll {label}",
                    amount=statement.fgts_amount,
                    shares=statement.tax_cost_centers,
                )
            )

        self.session.add_all(created)
        await self.session.flush()
        ids = [t.transaction_id for t in created]
        logger.info("Booked %d transaction(s) for payroll %s", len(ids), payroll.payroll_id)
        return ids

    async def reverse_transactions(self, payroll: Payroll) -> None:
        ids = list(payroll.generated_transaction_ids or [])
        if not ids:
            return
        await self.session.execute(
            delete(TransactionCostCenter).where(TransactionCostCenter.transaction_id.in_(ids))
        )
        await self.session.execute(
            delete(FinancialTransaction)
            .where(FinancialTransaction.transaction_id.in_(ids))
            .execution_options(synchronize_session="fetch")
        )
        logger.info("Reversed %d transaction(s) of payroll %s", len(ids), payroll.payroll_id)

    async def list_for_payroll(self, payroll_id: int) -> list[FinancialTransaction]:
        result = await self.session.execute(
            select(FinancialTransaction)
            .where(FinancialTransaction.payroll_id == payroll_id)
            .order_by(FinancialTransaction.transaction_id)
        )
        return list(result.scalars().all())

    def _transaction(
        self,
        statement: ClosingStatement,
        category: str,
        description: str,
        amount: int,
        shares: list[tuple[int, Decimal]],
        employee_id: int | None = None,
    ) -> FinancialTransaction:
        transaction = FinancialTransaction(
            company_id=statement.payroll.company_id,
            payroll_id=statement.payroll.payroll_id,
            employee_id=employee_id,
            account_id=statement.account_id,
            category=category,
            direction="outflow",
            description=description,
            amount=amount,
            transaction_date=statement.payment_date,
            created_by=statement.user_id,
        )
        transaction.cost_centers = [
            TransactionCostCenter(
                cost_center_id=cost_center_id,
                percentage=percentage,
                amount=part,
                created_by=statement.user_id,
            )
            for cost_center_id, percentage, part in split_amount(amount, shares)
        ]
        return transaction

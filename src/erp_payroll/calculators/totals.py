"""Two-level totals roll-up: items -> payroll employee -> payroll run."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import TYPE_CHECKING

from erp_payroll.calculators.item_generator import round_amount
from erp_payroll.calculators.types import ItemCategory, ItemType, Totals
from erp_payroll.config import get_settings
from erp_payroll.exceptions import NotFoundError
from erp_payroll.repositories import (
    ContractRepository,
    PayrollEmployeeRepository,
    PayrollItemRepository,
    PayrollRunRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from erp_payroll.models import Payroll, PayrollEmployee, PayrollItem

logger = logging.getLogger(__name__)

INSS_PREFIX = "INSS"


class TotalsAggregator:
    """Keeps employee and run totals consistent with the active items.

    Both recalculations are idempotent and must run bottom-up: every
    affected employee first, then the run.
    """

    def __init__(self, session: AsyncSession, fgts_rate: Decimal | None = None):
        self.items = PayrollItemRepository(session)
        self.employees = PayrollEmployeeRepository(session)
        self.runs = PayrollRunRepository(session)
        self.contracts = ContractRepository(session)
        self.fgts_rate = fgts_rate if fgts_rate is not None else get_settings().fgts_rate

    # ===== Pure sums =====

    @staticmethod
    def employee_totals(items: Iterable[PayrollItem]) -> Totals:
        totals = Totals()
        for item in items:
            if not item.is_active:
                continue
            if item.item_type == ItemType.CREDIT:
                totals.gross_pay += item.amount
            elif item.item_type == ItemType.DEBIT:
                totals.deductions += item.amount
        totals.net_pay = totals.gross_pay - totals.deductions
        return totals

    @staticmethod
    def payroll_totals(employees: Iterable[PayrollEmployee]) -> Totals:
        totals = Totals()
        for pe in employees:
            totals.add(Totals(pe.total_gross_pay, pe.total_deductions, pe.total_net_pay))
        return totals

    @staticmethod
    def inss_amount(items: Iterable[PayrollItem]) -> int:
        """Pre-computed INSS withholdings recorded as tax debits."""
        return sum(
            i.amount
            for i in items
            if i.is_active
            and i.item_type == ItemType.DEBIT
            and i.category == ItemCategory.TAX
            and i.description.strip().upper().startswith(INSS_PREFIX)
        )

    @staticmethod
    def fgts_base(items: Iterable[PayrollItem]) -> int:
        """Salary credits plus taxable benefit credits."""
        return sum(
            i.amount
            for i in items
            if i.is_active
            and i.item_type == ItemType.CREDIT
            and (
                i.category == ItemCategory.SALARY
                or (i.category == ItemCategory.BENEFIT and i.has_taxes)
            )
        )

    # ===== Persistent roll-up =====

    async def recalculate_employee_totals(self, payroll_employee_id: int) -> PayrollEmployee:
        pe = await self.employees.get(payroll_employee_id)
        if pe is None:
            raise NotFoundError("PayrollEmployee", payroll_employee_id)

        items = await self.items.list_active_items_for_employee(payroll_employee_id)
        totals = self.employee_totals(items)
        pe.total_gross_pay = totals.gross_pay
        pe.total_deductions = totals.deductions
        pe.total_net_pay = totals.net_pay
        await self.employees.update(pe)
        logger.debug(
            "Payroll employee %s totals: gross=%d deductions=%d net=%d",
            payroll_employee_id,
            totals.gross_pay,
            totals.deductions,
            totals.net_pay,
        )
        return pe

    async def recalculate_payroll_totals(self, payroll_id: int) -> Payroll:
        payroll = await self.runs.get(payroll_id)
        if payroll is None:
            raise NotFoundError("Payroll", payroll_id)

        employees = await self.employees.list_for_run(payroll_id)
        totals = self.payroll_totals(employees)
        contracts = await self.contracts.get_many(pe.contract_id for pe in employees)

        inss = 0
        fgts = 0
        for pe in employees:
            items = await self.items.list_active_items_for_employee(pe.payroll_employee_id)
            inss += self.inss_amount(items)
            contract = contracts.get(pe.contract_id)
            if contract is not None and contract.has_fgts:
                fgts += round_amount(Decimal(self.fgts_base(items)) * self.fgts_rate)

        payroll.total_gross_pay = totals.gross_pay
        payroll.total_deductions = totals.deductions
        payroll.total_net_pay = totals.net_pay
        payroll.inss_amount = inss
        payroll.fgts_amount = fgts
        await self.runs.update(payroll)
        logger.debug(
            "Payroll %s totals: gross=%d deductions=%d net=%d inss=%d fgts=%d",
            payroll_id,
            totals.gross_pay,
            totals.deductions,
            totals.net_pay,
            inss,
            fgts,
        )
        return payroll

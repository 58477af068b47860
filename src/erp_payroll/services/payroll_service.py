"""Payroll service - main orchestrator for payroll runs."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_payroll.calculators.cost_centers import (
    validate_cost_center_distribution,
    weighted_distribution,
)
from erp_payroll.calculators.eligibility import ContractEligibilityFilter
from erp_payroll.calculators.item_generator import PayrollItemGenerator
from erp_payroll.calculators.loan_tracker import LoanInstallmentTracker
from erp_payroll.calculators.totals import TotalsAggregator
from erp_payroll.calculators.types import (
    LOAN_SOURCES,
    REGULAR_SOURCES,
    THIRTEENTH_SOURCES,
    VACATION_SOURCES,
    ContractType,
    DiscountSource,
    ItemCandidate,
    ItemCategory,
    ItemType,
    SourceType,
    ThirteenthTaxOption,
)
from erp_payroll.clock import Clock, SystemClock
from erp_payroll.database import acquire_company_payroll_lock
from erp_payroll.exceptions import BusinessRuleError, NotFoundError, ValidationError
from erp_payroll.models import LoanAdvance, Payroll, PayrollEmployee, PayrollItem
from erp_payroll.repositories import (
    ContractRepository,
    LoanRepository,
    PayrollEmployeeRepository,
    PayrollItemRepository,
    PayrollRunRepository,
)
from erp_payroll.services.financial_service import (
    ClosingStatement,
    EmployeePayment,
    FinancialTransactionService,
    LedgerTransactionService,
)
from erp_payroll.services.state_machine import PayrollStateMachine, PayrollStatus

if TYPE_CHECKING:
    from erp_payroll.models import Contract

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayrollSuggestion:
    """Period suggested for the next payroll run of a company."""

    year: int
    month: int
    period_start: date
    period_end: date
    has_open_payroll: bool
    open_payroll_id: int | None = None
    open_payroll_period: str | None = None


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _next_month(day: date) -> tuple[int, int]:
    if day.month == 12:
        return day.year + 1, 1
    return day.year, day.month + 1


class PayrollService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_payroll: build a run from the eligible contracts of a company
    - recalculate_payroll / recalculate_employee: regenerate generated items
    - add_item / update_item / remove_item: manual edits on an open run
    - apply/remove thirteenth salary and vacation
    - close_payroll / reopen_payroll: book and reverse financial transactions

    Every operation only flushes; the caller owns the transaction and must
    roll back when an error propagates.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        financial_service: FinancialTransactionService | None = None,
        fgts_rate: Decimal | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.financial_service = financial_service or LedgerTransactionService(session)

        self.runs = PayrollRunRepository(session)
        self.employees = PayrollEmployeeRepository(session)
        self.items = PayrollItemRepository(session)
        self.contracts = ContractRepository(session)
        self.loans = LoanRepository(session)

        self.eligibility = ContractEligibilityFilter(session, self.contracts)
        self.loan_tracker = LoanInstallmentTracker(session, self.loans, self.items)
        self.totals = TotalsAggregator(session, fgts_rate=fgts_rate)

    # ========================================================================
    # Lookups
    # ========================================================================

    async def get_payroll(self, payroll_id: int) -> Payroll:
        payroll = await self.runs.get(payroll_id)
        if payroll is None:
            raise NotFoundError("Payroll", payroll_id)
        return payroll

    async def get_payroll_detail(self, payroll_id: int) -> Payroll:
        """Load a run with its employees and all of their items."""
        payroll = await self.runs.get_detailed(payroll_id)
        if payroll is None:
            raise NotFoundError("Payroll", payroll_id)
        return payroll

    async def list_payrolls(self, company_id: int) -> list[Payroll]:
        return await self.runs.list_for_company(company_id)

    async def get_payroll_employee(self, payroll_employee_id: int) -> PayrollEmployee:
        pe = await self.employees.get(payroll_employee_id)
        if pe is None:
            raise NotFoundError("PayrollEmployee", payroll_employee_id)
        return pe

    async def get_item(self, payroll_item_id: int) -> PayrollItem:
        item = await self.items.get(payroll_item_id)
        if item is None:
            raise NotFoundError("PayrollItem", payroll_item_id)
        return item

    async def _editable_payroll(self, payroll_id: int, action: str) -> Payroll:
        payroll = await self.get_payroll(payroll_id)
        if not PayrollStateMachine.can_modify(PayrollStateMachine.status_of(payroll)):
            raise ValidationError(f"Cannot {action} a closed payroll", field="payroll")
        return payroll

    async def _contract_for(self, pe: PayrollEmployee) -> Contract:
        if pe.contract_id is None:
            raise NotFoundError("Contract", None)
        contract = await self.contracts.get(pe.contract_id)
        if contract is None:
            raise NotFoundError("Contract", pe.contract_id)
        return contract

    # ========================================================================
    # Creation
    # ========================================================================

    async def create_payroll(
        self,
        company_id: int,
        period_start: date,
        period_end: date,
        user_id: int | None = None,
        notes: str | None = None,
    ) -> Payroll:
        """Create a run and generate items for every eligible contract."""
        if period_end < period_start:
            raise ValidationError("Period end must not be before period start", field="period_end")

        await acquire_company_payroll_lock(self.session, company_id)

        if await self.runs.find_by_period(company_id, period_start, period_end) is not None:
            raise ValidationError(
                f"A payroll already exists for {period_start} - {period_end}",
                field="period",
            )
        open_run = await self.runs.find_open(company_id)
        if open_run is not None:
            raise BusinessRuleError(
                f"Payroll {open_run.payroll_id} is still open; close it before creating another",
                rule="single_open_payroll",
            )

        contracts = await self.eligibility.eligible_contracts(company_id)
        if not contracts:
            raise BusinessRuleError(
                "No active payroll contracts found for this company",
                rule="empty_payroll",
            )

        payroll = Payroll(
            company_id=company_id,
            period_start=period_start,
            period_end=period_end,
            is_closed=False,
            notes=notes,
            created_by=user_id,
        )
        try:
            await self.runs.create(payroll)
        except IntegrityError as exc:
            raise BusinessRuleError(
                "Another payroll was created concurrently for this company",
                rule="single_open_payroll",
            ) from exc

        for contract in contracts:
            await self._add_contract(payroll, contract, user_id)
        await self.totals.recalculate_payroll_totals(payroll.payroll_id)

        logger.info(
            "Created payroll %s for company %s (%s - %s) with %d employee(s)",
            payroll.payroll_id,
            company_id,
            period_start,
            period_end,
            len(contracts),
        )
        return payroll

    async def _add_contract(
        self, payroll: Payroll, contract: Contract, user_id: int | None
    ) -> PayrollEmployee:
        pe = PayrollEmployee(
            payroll_id=payroll.payroll_id,
            employee_id=contract.employee_id,
            contract_id=contract.contract_id,
            base_salary=contract.value,
            worked_units=PayrollItemGenerator.default_worked_units(
                contract, payroll.period_start, payroll.period_end
            ),
            is_on_vacation=False,
            created_by=user_id,
        )
        await self.employees.create(pe)
        await self._generate_regular_items(payroll, pe, contract, user_id)
        await self.totals.recalculate_employee_totals(pe.payroll_employee_id)
        return pe

    async def _generate_regular_items(
        self,
        payroll: Payroll,
        pe: PayrollEmployee,
        contract: Contract,
        user_id: int | None,
    ) -> list[PayrollItem]:
        """Generate and persist salary, benefit, discount and loan items.

        Items matching a manually edited item (same category, source and
        reference) are not emitted again.
        """
        billed_elsewhere = await self.items.active_loan_ids_in_payroll(
            payroll.payroll_id, exclude_payroll_employee_id=pe.payroll_employee_id
        )
        due = await self.loan_tracker.due_installments(
            contract.employee_id, payroll.period_end, exclude_loan_ids=billed_elsewhere
        )
        candidates = PayrollItemGenerator.generate_items(
            contract,
            payroll.period_start,
            payroll.period_end,
            due,
            worked_units=pe.worked_units,
        )

        manual = await self.items.list_manual_items(pe.payroll_employee_id, REGULAR_SOURCES)
        manual_keys = {(m.category, m.source_type, m.reference_id) for m in manual}

        created = []
        for candidate in candidates:
            if candidate.identity in manual_keys:
                logger.debug("Keeping manual item for %s on employee %s", candidate.identity, pe.payroll_employee_id)
                continue
            created.append(await self.items.create_item(pe.payroll_employee_id, candidate, user_id))
        return created

    # ========================================================================
    # Run maintenance
    # ========================================================================

    async def update_payroll(
        self,
        payroll_id: int,
        notes: str | None,
        user_id: int | None = None,
    ) -> Payroll:
        payroll = await self._editable_payroll(payroll_id, "update")
        payroll.notes = notes
        payroll.updated_by = user_id
        return await self.runs.update(payroll)

    async def delete_payroll(self, payroll_id: int) -> None:
        """Hard-delete the most recently created run of a company, if open."""
        payroll = await self.get_payroll(payroll_id)
        if payroll.is_closed:
            raise BusinessRuleError("A closed payroll cannot be deleted", rule="delete_closed_payroll")
        latest = await self.runs.latest(payroll.company_id)
        if latest is None or latest.payroll_id != payroll_id:
            raise BusinessRuleError(
                "Only the most recent payroll can be deleted", rule="delete_last_payroll"
            )

        employees = await self.employees.list_for_run(payroll_id)
        pe_ids = [pe.payroll_employee_id for pe in employees]
        await self.items.delete_for_employees(pe_ids)
        await self.employees.delete_many(pe_ids)
        await self.runs.delete(payroll_id)
        logger.info("Deleted payroll %s", payroll_id)

    async def recalculate_payroll(self, payroll_id: int, user_id: int | None = None) -> Payroll:
        """Regenerate every employee of an open run against current contracts.

        Employees whose contract is no longer eligible are dropped, newly
        eligible contracts are added. An empty eligible set zeroes the run.
        """
        payroll = await self._editable_payroll(payroll_id, "recalculate")

        contracts = await self.eligibility.eligible_contracts(payroll.company_id)
        eligible_ids = {c.contract_id for c in contracts}
        existing = await self.employees.list_for_run(payroll_id)
        by_contract = {pe.contract_id: pe for pe in existing}

        dropped = [pe.payroll_employee_id for pe in existing if pe.contract_id not in eligible_ids]
        if dropped:
            await self.items.delete_for_employees(dropped)
            await self.employees.delete_many(dropped)

        for contract in contracts:
            pe = by_contract.get(contract.contract_id)
            if pe is None:
                await self._add_contract(payroll, contract, user_id)
            else:
                await self._regenerate(payroll, pe, contract, user_id)

        payroll.updated_by = user_id
        await self.totals.recalculate_payroll_totals(payroll_id)
        logger.info(
            "Recalculated payroll %s: %d employee(s), %d dropped",
            payroll_id,
            len(contracts),
            len(dropped),
        )
        return payroll

    async def recalculate_employee(
        self, payroll_employee_id: int, user_id: int | None = None
    ) -> PayrollEmployee:
        pe = await self.get_payroll_employee(payroll_employee_id)
        payroll = await self._editable_payroll(pe.payroll_id, "recalculate")
        contract = await self._contract_for(pe)

        await self._regenerate(payroll, pe, contract, user_id)
        await self.totals.recalculate_payroll_totals(payroll.payroll_id)
        logger.info("Recalculated payroll employee %s", payroll_employee_id)
        return pe

    async def _regenerate(
        self,
        payroll: Payroll,
        pe: PayrollEmployee,
        contract: Contract,
        user_id: int | None,
    ) -> None:
        # Generated items must be gone before numbering loans again
        await self.items.delete_generated_items(pe.payroll_employee_id, REGULAR_SOURCES)
        pe.employee_id = contract.employee_id
        pe.base_salary = contract.value
        if ContractType(contract.contract_type) == ContractType.MONTHLY:
            pe.worked_units = None
        elif pe.worked_units is None:
            pe.worked_units = PayrollItemGenerator.default_worked_units(
                contract, payroll.period_start, payroll.period_end
            )
        pe.updated_by = user_id
        await self.employees.update(pe)
        await self._generate_regular_items(payroll, pe, contract, user_id)
        await self.totals.recalculate_employee_totals(pe.payroll_employee_id)

    async def _refresh_totals(self, pe: PayrollEmployee) -> None:
        await self.totals.recalculate_employee_totals(pe.payroll_employee_id)
        await self.totals.recalculate_payroll_totals(pe.payroll_id)

    # ========================================================================
    # Items
    # ========================================================================

    async def add_item(
        self,
        payroll_employee_id: int,
        description: str,
        amount: int,
        item_type: str,
        category: str = ItemCategory.MANUAL,
        has_taxes: bool = False,
        user_id: int | None = None,
    ) -> PayrollItem:
        """Add a manual item; manual items survive recalculation."""
        pe = await self.get_payroll_employee(payroll_employee_id)
        await self._editable_payroll(pe.payroll_id, "add items to")

        errors: dict[str, str] = {}
        if not description or not description.strip():
            errors["description"] = "Description is required"
        if amount is None or amount <= 0:
            errors["amount"] = "Amount must be greater than zero"
        try:
            parsed_type = ItemType(item_type)
        except ValueError:
            errors["item_type"] = f"Unknown item type '{item_type}'"
        try:
            parsed_category = ItemCategory(category)
        except ValueError:
            errors["category"] = f"Unknown category '{category}'"
        if errors:
            raise ValidationError("Invalid payroll item", errors=errors)

        item = await self.items.create_item(
            payroll_employee_id,
            ItemCandidate(
                description=description.strip(),
                item_type=parsed_type,
                category=parsed_category,
                amount=amount,
                source_type=SourceType.MANUAL,
                has_taxes=has_taxes,
                is_manual=True,
            ),
            user_id,
        )
        await self._refresh_totals(pe)
        logger.info("Added manual item %s to payroll employee %s", item.payroll_item_id, payroll_employee_id)
        return item

    async def update_item(
        self,
        payroll_item_id: int,
        description: str | None = None,
        amount: int | None = None,
        user_id: int | None = None,
    ) -> PayrollItem:
        """Edit an item; the edit marks it manual so recalculation keeps it."""
        item = await self.get_item(payroll_item_id)
        pe = await self.get_payroll_employee(item.payroll_employee_id)
        await self._editable_payroll(pe.payroll_id, "edit items of")

        if description is not None:
            if not description.strip():
                raise ValidationError("Description is required", field="description")
            item.description = description.strip()
        if amount is not None:
            if amount <= 0:
                raise ValidationError("Amount must be greater than zero", field="amount")
            item.amount = amount
        item.is_manual = True
        item.updated_by = user_id
        await self.session.flush()

        await self._refresh_totals(pe)
        return item

    async def remove_item(self, payroll_item_id: int, user_id: int | None = None) -> PayrollItem:
        """Soft-delete an item (it stops counting towards totals).

        The removal is a manual edit: recalculation will not generate the
        item again.
        """
        item = await self.get_item(payroll_item_id)
        pe = await self.get_payroll_employee(item.payroll_employee_id)
        await self._editable_payroll(pe.payroll_id, "remove items from")

        item.is_active = False
        item.is_manual = True
        item.updated_by = user_id
        await self.session.flush()

        await self._refresh_totals(pe)
        return item

    async def update_worked_units(
        self,
        payroll_employee_id: int,
        worked_units: Decimal,
        user_id: int | None = None,
    ) -> PayrollEmployee:
        """Set hours/days worked for an hourly or daily contract and regenerate."""
        pe = await self.get_payroll_employee(payroll_employee_id)
        payroll = await self._editable_payroll(pe.payroll_id, "update")
        contract = await self._contract_for(pe)

        if ContractType(contract.contract_type) == ContractType.MONTHLY:
            raise ValidationError(
                "Worked units only apply to hourly or daily contracts", field="worked_units"
            )
        units = Decimal(str(worked_units))
        if units < 0:
            raise ValidationError("Worked units cannot be negative", field="worked_units")

        pe.worked_units = units
        await self._regenerate(payroll, pe, contract, user_id)
        await self.totals.recalculate_payroll_totals(payroll.payroll_id)
        return pe

    # ========================================================================
    # Thirteenth salary
    # ========================================================================

    async def apply_thirteenth_salary(
        self,
        payroll_id: int,
        percentage: Decimal,
        tax_option: str = ThirteenthTaxOption.NONE,
        user_id: int | None = None,
    ) -> Payroll:
        """Add thirteenth-salary items for contracts entitled to it.

        Applying again replaces the previous application. The tax option is
        recorded only; statutory taxes are not computed here.
        """
        payroll = await self._editable_payroll(payroll_id, "apply thirteenth salary to")
        try:
            pct = Decimal(str(percentage))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError("Invalid percentage", field="percentage") from exc
        if pct < 0 or pct > 100:
            raise ValidationError(
                "Thirteenth salary percentage must be between 0 and 100", field="percentage"
            )
        try:
            option = ThirteenthTaxOption(tax_option)
        except ValueError as exc:
            raise ValidationError(f"Unknown tax option '{tax_option}'", field="tax_option") from exc

        employees = await self.employees.list_for_run(payroll_id)
        if payroll.thirteenth_percentage is not None:
            await self.items.delete_items_by_source(
                [pe.payroll_employee_id for pe in employees], THIRTEENTH_SOURCES
            )

        contracts = await self.contracts.get_many(pe.contract_id for pe in employees)
        for pe in employees:
            contract = contracts.get(pe.contract_id)
            if contract is not None and contract.has_thirteenth_salary:
                items = await self.items.list_active_items_for_employee(pe.payroll_employee_id)
                loans = await self.loan_tracker.pending_loans(pe.employee_id, payroll.period_end)
                candidates = PayrollItemGenerator.thirteenth_items(
                    contract, PayrollItemRepository.salary_base(items), pct, loans
                )
                for candidate in candidates:
                    await self.items.create_item(pe.payroll_employee_id, candidate, user_id)
            await self.totals.recalculate_employee_totals(pe.payroll_employee_id)

        payroll.thirteenth_percentage = pct
        payroll.thirteenth_tax_option = option.value
        payroll.updated_by = user_id
        await self.totals.recalculate_payroll_totals(payroll_id)
        logger.info("Applied %s%% thirteenth salary to payroll %s", pct, payroll_id)
        return payroll

    async def remove_thirteenth_salary(self, payroll_id: int, user_id: int | None = None) -> Payroll:
        payroll = await self._editable_payroll(payroll_id, "remove thirteenth salary from")
        if payroll.thirteenth_percentage is None:
            raise ValidationError(
                "This payroll has no thirteenth salary applied", field="thirteenth_percentage"
            )

        employees = await self.employees.list_for_run(payroll_id)
        await self.items.delete_items_by_source(
            [pe.payroll_employee_id for pe in employees], THIRTEENTH_SOURCES
        )
        for pe in employees:
            await self.totals.recalculate_employee_totals(pe.payroll_employee_id)

        payroll.thirteenth_percentage = None
        payroll.thirteenth_tax_option = None
        payroll.updated_by = user_id
        await self.totals.recalculate_payroll_totals(payroll_id)
        return payroll

    # ========================================================================
    # Vacation
    # ========================================================================

    async def apply_vacation(
        self,
        payroll_id: int,
        payroll_employee_id: int,
        vacation_days: int,
        start_date: date | None = None,
        end_date: date | None = None,
        notes: str | None = None,
        user_id: int | None = None,
    ) -> PayrollEmployee:
        """Add the vacation bonus, vacation benefits and vacation-only loan installments."""
        payroll = await self._editable_payroll(payroll_id, "apply vacation to")
        if vacation_days is None or vacation_days < 1 or vacation_days > 30:
            raise ValidationError("Vacation days must be between 1 and 30", field="vacation_days")
        if start_date and end_date and end_date < start_date:
            raise ValidationError("Vacation end must not be before its start", field="end_date")

        pe = await self.get_payroll_employee(payroll_employee_id)
        if pe.payroll_id != payroll.payroll_id:
            raise NotFoundError("PayrollEmployee", payroll_employee_id)
        if pe.contract_id is None:
            raise ValidationError("Employee has no active contract", field="contract")
        contract = await self._contract_for(pe)

        if pe.is_on_vacation:
            await self.items.delete_items_by_source([payroll_employee_id], VACATION_SOURCES)

        items = await self.items.list_active_items_for_employee(payroll_employee_id)
        candidates = PayrollItemGenerator.vacation_items(
            contract,
            PayrollItemRepository.salary_base(items),
            vacation_days,
            loan_installments=await self.loan_tracker.vacation_installments(
                pe.employee_id, payroll.period_end
            ),
        )
        for candidate in candidates:
            await self.items.create_item(payroll_employee_id, candidate, user_id)

        pe.is_on_vacation = True
        pe.vacation_days = vacation_days
        pe.vacation_start_date = start_date
        pe.vacation_end_date = end_date
        pe.vacation_notes = notes
        pe.updated_by = user_id
        await self.employees.update(pe)

        await self._refresh_totals(pe)
        logger.info("Applied %d vacation day(s) to payroll employee %s", vacation_days, payroll_employee_id)
        return pe

    async def remove_vacation(
        self,
        payroll_id: int,
        payroll_employee_id: int,
        user_id: int | None = None,
    ) -> PayrollEmployee:
        payroll = await self._editable_payroll(payroll_id, "remove vacation from")
        pe = await self.get_payroll_employee(payroll_employee_id)
        if pe.payroll_id != payroll.payroll_id:
            raise NotFoundError("PayrollEmployee", payroll_employee_id)

        await self.items.delete_items_by_source([payroll_employee_id], VACATION_SOURCES)
        pe.is_on_vacation = False
        pe.vacation_days = None
        pe.vacation_start_date = None
        pe.vacation_end_date = None
        pe.vacation_notes = None
        pe.updated_by = user_id
        await self.employees.update(pe)

        await self._refresh_totals(pe)
        return pe

    # ========================================================================
    # Close / reopen
    # ========================================================================

    async def close_payroll(
        self,
        payroll_id: int,
        payment_date: date,
        account_id: int | None = None,
        inss_amount: int | None = None,
        fgts_amount: int | None = None,
        user_id: int | None = None,
    ) -> Payroll:
        """Freeze a run and book its financial transactions.

        Negative net pay becomes a single-installment advance discounted in
        the following month. Loan items settle their installments.
        """
        payroll = await self.get_payroll(payroll_id)
        PayrollStateMachine.validate_transition(
            PayrollStateMachine.status_of(payroll),
            PayrollStatus.CLOSED,
            reason="payroll is already closed" if payroll.is_closed else None,
        )

        employees = await self.employees.list_for_run(payroll_id)
        contracts = await self.contracts.get_many(pe.contract_id for pe in employees)
        for contract in contracts.values():
            validate_cost_center_distribution(
                (cc.percentage for cc in contract.cost_centers),
                field=f"contract[{contract.contract_id}].cost_centers",
            )

        year, month = _next_month(payroll.period_end)
        advance_start = date(year, month, 1)

        generated_loan_ids: list[int] = []
        loan_settlements: list[dict[str, Any]] = []
        payments: list[EmployeePayment] = []
        weights: list[tuple[int, list[tuple[int, Decimal]]]] = []

        for pe in employees:
            contract = contracts.get(pe.contract_id)
            shares = (
                [(cc.cost_center_id, Decimal(cc.percentage)) for cc in contract.cost_centers]
                if contract is not None
                else []
            )
            weights.append((pe.total_gross_pay, shares))

            net_pay = pe.total_net_pay
            if net_pay < 0:
                loan = await self.loans.create(
                    LoanAdvance(
                        employee_id=pe.employee_id,
                        description=(
                            f"Automatic advance - payroll {payroll.period_start:%m/%Y}"
                        ),
                        amount=-net_pay,
                        installments=1,
                        discount_source=DiscountSource.SALARY.value,
                        start_date=advance_start,
                        loan_date=payment_date,
                        is_approved=True,
                        is_fully_paid=False,
                        installments_paid=Decimal("0"),
                        remaining_amount=-net_pay,
                        is_auto_generated=True,
                        created_by=user_id,
                    )
                )
                generated_loan_ids.append(loan.loan_id)
                logger.info(
                    "Payroll employee %s has negative net pay %d; created advance %s",
                    pe.payroll_employee_id,
                    net_pay,
                    loan.loan_id,
                )
                net_pay = 0

            employee_name = (
                contract.employee.display_name if contract is not None else f"Employee #{pe.employee_id}"
            )
            payments.append(
                EmployeePayment(
                    payroll_employee_id=pe.payroll_employee_id,
                    employee_id=pe.employee_id,
                    employee_name=employee_name,
                    net_pay=net_pay,
                    cost_centers=shares,
                )
            )

            loan_settlements.extend(await self._settle_loans(pe))

        statement = ClosingStatement(
            payroll=payroll,
            payment_date=payment_date,
            account_id=account_id,
            payments=payments,
            inss_amount=payroll.inss_amount if inss_amount is None else inss_amount,
            fgts_amount=payroll.fgts_amount if fgts_amount is None else fgts_amount,
            tax_cost_centers=weighted_distribution(weights),
            user_id=user_id,
        )
        transaction_ids = await self.financial_service.post_net_pay_and_tax_transactions(statement)

        payroll.is_closed = True
        payroll.closed_at = self.clock.now()
        payroll.closed_by = user_id
        payroll.payment_date = payment_date
        payroll.account_id = account_id
        payroll.inss_amount = statement.inss_amount
        payroll.fgts_amount = statement.fgts_amount
        payroll.generated_transaction_ids = list(transaction_ids)
        payroll.generated_loan_ids = generated_loan_ids
        payroll.loan_settlements = loan_settlements
        payroll.updated_by = user_id
        await self.runs.update(payroll)

        logger.info(
            "Closed payroll %s: %d transaction(s), %d advance(s)",
            payroll_id,
            len(transaction_ids),
            len(generated_loan_ids),
        )
        return payroll

    async def reopen_payroll(self, payroll_id: int, user_id: int | None = None) -> Payroll:
        """Return a closed run to open, reversing everything the close booked.

        Items are left intact.
        """
        payroll = await self.get_payroll(payroll_id)
        PayrollStateMachine.validate_transition(
            PayrollStateMachine.status_of(payroll),
            PayrollStatus.OPEN,
            reason="payroll is already open" if not payroll.is_closed else None,
        )
        open_run = await self.runs.find_open(payroll.company_id)
        if open_run is not None and open_run.payroll_id != payroll_id:
            raise BusinessRuleError(
                f"Payroll {open_run.payroll_id} is open; close it before reopening another",
                rule="single_open_payroll",
            )

        await self.financial_service.reverse_transactions(payroll)
        await self.loans.delete_many(payroll.generated_loan_ids or [])

        await self._reverse_settlements(payroll)

        payroll.is_closed = False
        payroll.closed_at = None
        payroll.closed_by = None
        payroll.payment_date = None
        payroll.account_id = None
        payroll.generated_transaction_ids = None
        payroll.generated_loan_ids = None
        payroll.loan_settlements = None
        payroll.updated_by = user_id
        await self.runs.update(payroll)
        await self.totals.recalculate_payroll_totals(payroll_id)

        logger.info("Reopened payroll %s", payroll_id)
        return payroll

    async def _settle_loans(self, pe: PayrollEmployee) -> list[dict[str, Any]]:
        """Apply an employee's loan items to their loans; return what was applied."""
        settlements: list[dict[str, Any]] = []
        items = await self.items.list_active_items_for_employee(pe.payroll_employee_id)
        for item in items:
            if item.item_type != ItemType.DEBIT or item.reference_id is None:
                continue
            if SourceType(item.source_type) not in LOAN_SOURCES:
                continue
            loan = await self.loans.get(item.reference_id)
            if loan is None or loan.is_fully_paid:
                continue
            before = loan.remaining_amount if loan.remaining_amount is not None else loan.amount
            fraction = LoanInstallmentTracker.settle(loan, item)
            settlements.append(
                {
                    "loan_id": loan.loan_id,
                    "payroll_item_id": item.payroll_item_id,
                    "fraction": str(fraction),
                    "amount": before - loan.remaining_amount,
                }
            )
        await self.session.flush()
        return settlements

    async def _reverse_settlements(self, payroll: Payroll) -> None:
        # Newest first, so a loan settled twice in one run unwinds in order.
        for entry in reversed(payroll.loan_settlements or []):
            loan = await self.loans.get(entry["loan_id"])
            if loan is None:
                continue
            LoanInstallmentTracker.unsettle(loan, Decimal(entry["fraction"]), entry["amount"])
        await self.session.flush()

    # ========================================================================
    # Suggestion
    # ========================================================================

    async def get_suggestion(self, company_id: int) -> PayrollSuggestion:
        """Month after the last closed run, or the current month."""
        last_closed = await self.runs.last_closed(company_id)
        if last_closed is not None:
            year, month = _next_month(last_closed.period_end)
        else:
            today = self.clock.today()
            year, month = today.year, today.month

        period_start, period_end = _month_bounds(year, month)
        open_run = await self.runs.find_open(company_id)
        return PayrollSuggestion(
            year=year,
            month=month,
            period_start=period_start,
            period_end=period_end,
            has_open_payroll=open_run is not None,
            open_payroll_id=open_run.payroll_id if open_run else None,
            open_payroll_period=(
                f"{open_run.period_start:%d/%m/%Y} - {open_run.period_end:%d/%m/%Y}"
                if open_run
                else None
            ),
        )

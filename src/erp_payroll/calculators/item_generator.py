"""Payroll item generation for a single contract.

Everything here is a pure function of its inputs: no session, no clock.
The orchestrator fetches contracts and due installments and persists what
comes back.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from erp_payroll.calculators.types import (
    BenefitApplication,
    ContractType,
    DiscountSource,
    DueInstallment,
    ItemCandidate,
    ItemCategory,
    ItemType,
    PeriodFactors,
    SourceType,
)

if TYPE_CHECKING:
    from erp_payroll.models import Contract, ContractBenefitDiscount, LoanAdvance


HOURS_PER_BUSINESS_DAY = 8
VACATION_MONTH_DAYS = 30


def round_amount(value: Any) -> int:
    """Round a Decimal-compatible value to whole minor units (half up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def business_days(start: date, end: date) -> int:
    """Count Monday-Friday days in ``[start, end]``."""
    if end < start:
        return 0
    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


class PayrollItemGenerator:
    """Builds the ordered item set of one contract for one period.

    Emission order is fixed:
    1. base salary
    2. contract benefits (credits)
    3. contract discounts (debits)
    4. due loan installments
    """

    # ===== Proration =====

    @staticmethod
    def monthly_factor(contract_start: date, period_start: date, period_end: date) -> Decimal:
        """Share of the period covered by a contract that may start inside it."""
        if contract_start <= period_start:
            return Decimal("1")
        if contract_start > period_end:
            return Decimal("0")
        total_days = (period_end - period_start).days + 1
        worked_days = (period_end - contract_start).days + 1
        return Decimal(worked_days) / Decimal(total_days)

    @staticmethod
    def annual_factor(contract_start: date, reference: date) -> Decimal:
        """Months worked up to ``reference`` over twelve, capped at one."""
        months = (reference.year - contract_start.year) * 12 + (
            reference.month - contract_start.month
        )
        if reference.day < contract_start.day:
            months -= 1
        if months >= 12:
            return Decimal("1")
        if months <= 0:
            days_in_month = calendar.monthrange(contract_start.year, contract_start.month)[1]
            worked_days = (reference - contract_start).days + 1
            return max(Decimal("0"), Decimal(worked_days) / Decimal(days_in_month) / 12)
        return Decimal(months) / 12

    @classmethod
    def period_factors(cls, contract: Contract, period_start: date, period_end: date) -> PeriodFactors:
        return PeriodFactors(
            monthly=cls.monthly_factor(contract.start_date, period_start, period_end),
            annual=cls.annual_factor(contract.start_date, period_end),
        )

    @staticmethod
    def default_worked_units(contract: Contract, period_start: date, period_end: date) -> Decimal | None:
        """Hours (hourly) or days (daily) worked in the period; None for monthly."""
        contract_type = ContractType(contract.contract_type)
        if contract_type == ContractType.MONTHLY:
            return None
        days = business_days(max(contract.start_date, period_start), period_end)
        if contract_type == ContractType.HOURLY:
            return Decimal(days * HOURS_PER_BUSINESS_DAY)
        return Decimal(days)

    # ===== Regular run =====

    @classmethod
    def generate_items(
        cls,
        contract: Contract,
        period_start: date,
        period_end: date,
        due_installments: Sequence[DueInstallment] = (),
        worked_units: Decimal | None = None,
    ) -> list[ItemCandidate]:
        """Generate the regular-run items of ``contract`` for the period."""
        factors = cls.period_factors(contract, period_start, period_end)
        items = [cls.salary_item(contract, period_start, period_end, factors, worked_units)]

        entries = [
            e
            for e in contract.benefits
            if BenefitApplication(e.application) in BenefitApplication.regular()
            and (e.month is None or e.month == period_end.month)
        ]
        items.extend(
            cls.entry_item(e, factors)
            for e in entries
            if ItemType(e.item_type) == ItemType.CREDIT
        )
        items.extend(
            cls.entry_item(e, factors)
            for e in entries
            if ItemType(e.item_type) == ItemType.DEBIT
        )
        items.extend(cls.loan_item(installment) for installment in due_installments)
        return items

    @classmethod
    def salary_item(
        cls,
        contract: Contract,
        period_start: date,
        period_end: date,
        factors: PeriodFactors | None = None,
        worked_units: Decimal | None = None,
    ) -> ItemCandidate:
        contract_type = ContractType(contract.contract_type)
        description = "Base salary"
        is_proportional = False

        if contract_type == ContractType.MONTHLY:
            factor = (factors or cls.period_factors(contract, period_start, period_end)).monthly
            amount = round_amount(Decimal(contract.value) * factor)
            if factor < 1:
                is_proportional = True
                description = f"Base salary (prorated {factor * 100:.0f}%)"
        else:
            if worked_units is None:
                worked_units = cls.default_worked_units(contract, period_start, period_end)
            units = Decimal(worked_units)
            amount = round_amount(Decimal(contract.value) * units)
            unit_label = "hours" if contract_type == ContractType.HOURLY else "days"
            description = f"Base salary ({units.normalize():f} {unit_label})"

        return ItemCandidate(
            description=description,
            item_type=ItemType.CREDIT,
            category=ItemCategory.SALARY,
            amount=amount,
            source_type=SourceType.CONTRACT_BENEFIT,
            reference_id=contract.contract_id,
            calculation_basis=contract.value,
            has_taxes=True,
            is_proportional=is_proportional,
        )

    @staticmethod
    def entry_item(entry: ContractBenefitDiscount, factors: PeriodFactors) -> ItemCandidate:
        """Item for one benefit (credit) or discount (debit) entry."""
        item_type = ItemType(entry.item_type)
        amount = entry.amount
        description = entry.description

        if entry.is_proportional:
            if BenefitApplication(entry.application) == BenefitApplication.ANNUAL:
                if factors.annual < 1:
                    amount = round_amount(Decimal(entry.amount) * factors.annual)
                    months = round_amount(factors.annual * 12)
                    description = f"{entry.description} (prorated {months}/12 months)"
            elif factors.monthly < 1:
                amount = round_amount(Decimal(entry.amount) * factors.monthly)
                description = f"{entry.description} (prorated {factors.monthly * 100:.0f}%)"

        if item_type == ItemType.CREDIT:
            category, source = ItemCategory.BENEFIT, SourceType.CONTRACT_BENEFIT
        else:
            category, source = ItemCategory.DISCOUNT, SourceType.CONTRACT_DISCOUNT

        return ItemCandidate(
            description=description,
            item_type=item_type,
            category=category,
            amount=amount,
            source_type=source,
            reference_id=entry.contract_benefit_id,
            calculation_basis=entry.amount,
            has_taxes=entry.has_taxes,
            is_proportional=entry.is_proportional,
        )

    @staticmethod
    def loan_item(installment: DueInstallment) -> ItemCandidate:
        return ItemCandidate(
            description=(
                f"Loan #{installment.loan_id} — Installment "
                f"{installment.number}/{installment.total}"
            ),
            item_type=ItemType.DEBIT,
            category=ItemCategory.LOAN,
            amount=installment.amount,
            source_type=SourceType.LOAN,
            reference_id=installment.loan_id,
            installment_number=installment.number,
            installment_total=installment.total,
        )

    # ===== Thirteenth salary =====

    @staticmethod
    def thirteenth_items(
        contract: Contract,
        salary_base: int,
        percentage: Decimal,
        loans: Iterable[LoanAdvance] = (),
    ) -> list[ItemCandidate]:
        """Thirteenth-salary items: salary share, matching entries, loan shares."""
        share = Decimal(percentage) / 100
        pct_label = f"{Decimal(percentage).normalize():f}"
        items = [
            ItemCandidate(
                description=f"Thirteenth salary ({pct_label}%)",
                item_type=ItemType.CREDIT,
                category=ItemCategory.THIRTEENTH,
                amount=round_amount(Decimal(salary_base) * share),
                source_type=SourceType.THIRTEENTH_SALARY,
                reference_id=contract.contract_id,
                calculation_basis=salary_base,
                has_taxes=True,
            )
        ]

        for entry in contract.benefits:
            if BenefitApplication(entry.application) not in BenefitApplication.thirteenth():
                continue
            items.append(
                ItemCandidate(
                    description=f"{entry.description} (13th)",
                    item_type=ItemType(entry.item_type),
                    category=ItemCategory.THIRTEENTH,
                    amount=round_amount(Decimal(entry.amount) * share),
                    source_type=SourceType.THIRTEENTH_BENEFIT,
                    reference_id=entry.contract_benefit_id,
                    calculation_basis=entry.amount,
                    has_taxes=entry.has_taxes,
                    is_proportional=True,
                )
            )

        for loan in loans:
            if DiscountSource(loan.discount_source) not in DiscountSource.thirteenth():
                continue
            installment = loan.amount // loan.installments
            items.append(
                ItemCandidate(
                    description=f"{loan.description or f'Loan #{loan.loan_id}'} (13th)",
                    item_type=ItemType.DEBIT,
                    category=ItemCategory.LOAN,
                    amount=round_amount(Decimal(installment) * share),
                    source_type=SourceType.THIRTEENTH_LOAN,
                    reference_id=loan.loan_id,
                    calculation_basis=installment,
                )
            )
        return items

    # ===== Vacation =====

    @staticmethod
    def vacation_bonus(salary_base: int, vacation_days: int) -> int:
        """One-third vacation bonus over the salary share of the vacation days."""
        proportional = round_amount(
            Decimal(salary_base) / VACATION_MONTH_DAYS * Decimal(vacation_days)
        )
        return round_amount(Decimal(proportional) / 3)

    @classmethod
    def vacation_items(
        cls,
        contract: Contract,
        salary_base: int,
        vacation_days: int,
        loan_installments: Iterable[DueInstallment] = (),
    ) -> list[ItemCandidate]:
        """Vacation bonus, vacation benefits and vacation-only loan installments."""
        items = [
            ItemCandidate(
                description=f"Vacation one-third bonus ({vacation_days} days)",
                item_type=ItemType.CREDIT,
                category=ItemCategory.VACATION,
                amount=cls.vacation_bonus(salary_base, vacation_days),
                source_type=SourceType.VACATION_BONUS,
                reference_id=contract.contract_id,
                calculation_basis=salary_base,
                has_taxes=True,
            )
        ]
        for entry in contract.benefits:
            if BenefitApplication(entry.application) not in BenefitApplication.vacation():
                continue
            items.append(
                ItemCandidate(
                    description=f"{entry.description} (vacation)",
                    item_type=ItemType(entry.item_type),
                    category=ItemCategory.VACATION,
                    amount=entry.amount,
                    source_type=SourceType.VACATION_BENEFIT,
                    reference_id=entry.contract_benefit_id,
                    calculation_basis=entry.amount,
                    has_taxes=entry.has_taxes,
                )
            )
        for installment in loan_installments:
            items.append(
                ItemCandidate(
                    description=(
                        f"Loan #{installment.loan_id} — Vacation installment "
                        f"{installment.number}/{installment.total}"
                    ),
                    item_type=ItemType.DEBIT,
                    category=ItemCategory.LOAN,
                    amount=installment.amount,
                    source_type=SourceType.VACATION_LOAN,
                    reference_id=installment.loan_id,
                    installment_number=installment.number,
                    installment_total=installment.total,
                )
            )
        return items

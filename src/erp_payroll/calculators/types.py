"""Type definitions for the payroll generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class ItemType(str, Enum):
    """Direction of a payroll item."""

    CREDIT = "credit"
    DEBIT = "debit"


class ItemCategory(str, Enum):
    """Payroll item categories."""

    SALARY = "salary"
    BENEFIT = "benefit"
    DISCOUNT = "discount"
    LOAN = "loan"
    MANUAL = "manual"
    THIRTEENTH = "thirteenth"
    VACATION = "vacation"
    TAX = "tax"


class SourceType(str, Enum):
    """Rule that generated a payroll item."""

    CONTRACT_BENEFIT = "contract_benefit"
    CONTRACT_DISCOUNT = "contract_discount"
    LOAN = "loan"
    MANUAL = "manual"
    THIRTEENTH_SALARY = "thirteenth_salary"
    THIRTEENTH_BENEFIT = "thirteenth_benefit"
    THIRTEENTH_LOAN = "thirteenth_loan"
    VACATION_BONUS = "vacation_bonus"
    VACATION_BENEFIT = "vacation_benefit"
    VACATION_LOAN = "vacation_loan"


# Sources regenerated on recalculation; everything else is owned by the
# operation that created it.
REGULAR_SOURCES = frozenset(
    {SourceType.CONTRACT_BENEFIT, SourceType.CONTRACT_DISCOUNT, SourceType.LOAN}
)
THIRTEENTH_SOURCES = frozenset(
    {SourceType.THIRTEENTH_SALARY, SourceType.THIRTEENTH_BENEFIT, SourceType.THIRTEENTH_LOAN}
)
VACATION_SOURCES = frozenset(
    {SourceType.VACATION_BONUS, SourceType.VACATION_BENEFIT, SourceType.VACATION_LOAN}
)
LOAN_SOURCES = frozenset({SourceType.LOAN, SourceType.THIRTEENTH_LOAN, SourceType.VACATION_LOAN})


class ContractType(str, Enum):
    """How a contract's value is turned into a salary."""

    MONTHLY = "monthly"
    HOURLY = "hourly"
    DAILY = "daily"


class BenefitApplication(str, Enum):
    """Which payroll a contract benefit/discount applies to."""

    SALARY = "salary"
    ALL = "all"
    MONTHLY = "monthly"
    ANNUAL = "annual"
    THIRTEENTH = "thirteenth"
    VACATION = "vacation"

    @classmethod
    def regular(cls) -> frozenset[BenefitApplication]:
        return frozenset({cls.SALARY, cls.ALL, cls.MONTHLY, cls.ANNUAL})

    @classmethod
    def thirteenth(cls) -> frozenset[BenefitApplication]:
        return frozenset({cls.THIRTEENTH, cls.ALL})

    @classmethod
    def vacation(cls) -> frozenset[BenefitApplication]:
        return frozenset({cls.VACATION, cls.ALL})


class DiscountSource(str, Enum):
    """Which payroll a loan installment is discounted from."""

    ALL = "all"
    SALARY = "salary"
    THIRTEENTH = "thirteenth"
    VACATION = "vacation"

    @classmethod
    def regular(cls) -> frozenset[DiscountSource]:
        return frozenset({cls.ALL, cls.SALARY})

    @classmethod
    def thirteenth(cls) -> frozenset[DiscountSource]:
        return frozenset({cls.ALL, cls.THIRTEENTH})

    @classmethod
    def vacation(cls) -> frozenset[DiscountSource]:
        # "all" loans are already discounted from the salary run
        return frozenset({cls.VACATION})


class ThirteenthTaxOption(str, Enum):
    """Tax treatment recorded with a thirteenth salary application."""

    NONE = "none"
    PROPORTIONAL = "proportional"
    FULL = "full"


@dataclass(frozen=True)
class DueInstallment:
    """A loan installment due in a payroll period."""

    loan_id: int
    description: str | None
    number: int
    total: int
    amount: int


@dataclass
class ItemCandidate:
    """A payroll item before persistence."""

    description: str
    item_type: ItemType
    category: ItemCategory
    amount: int
    source_type: SourceType

    reference_id: int | None = None
    installment_number: int | None = None
    installment_total: int | None = None
    calculation_basis: int | None = None

    has_taxes: bool = False
    is_proportional: bool = False
    is_manual: bool = False
    is_active: bool = True

    @property
    def identity(self) -> tuple[str, str, int | None]:
        """Key used to match a generated item against a preserved manual one."""
        return (ItemCategory(self.category).value, SourceType(self.source_type).value, self.reference_id)

    def to_row(self) -> dict[str, Any]:
        """Column values for a PayrollItem row."""
        return {
            "description": self.description,
            "item_type": ItemType(self.item_type).value,
            "category": ItemCategory(self.category).value,
            "amount": self.amount,
            "source_type": SourceType(self.source_type).value,
            "reference_id": self.reference_id,
            "installment_number": self.installment_number,
            "installment_total": self.installment_total,
            "calculation_basis": self.calculation_basis,
            "has_taxes": self.has_taxes,
            "is_proportional": self.is_proportional,
            "is_manual": self.is_manual,
            "is_active": self.is_active,
        }


@dataclass
class Totals:
    """Gross/deductions/net triple for an employee or a whole run."""

    gross_pay: int = 0
    deductions: int = 0
    net_pay: int = 0

    def add(self, other: Totals) -> None:
        self.gross_pay += other.gross_pay
        self.deductions += other.deductions
        self.net_pay += other.net_pay


@dataclass
class PeriodFactors:
    """Proration factors for one contract in one period."""

    monthly: Decimal = Decimal("1")
    annual: Decimal = Decimal("1")

"""Payroll calculation pipeline.

Only the pure building blocks are re-exported here; the session-bound
components live in ``eligibility``, ``loan_tracker`` and ``totals``.
"""

from erp_payroll.calculators.cost_centers import (
    split_amount,
    validate_cost_center_distribution,
    weighted_distribution,
)
from erp_payroll.calculators.item_generator import PayrollItemGenerator, business_days, round_amount
from erp_payroll.calculators.types import (
    BenefitApplication,
    ContractType,
    DiscountSource,
    DueInstallment,
    ItemCandidate,
    ItemCategory,
    ItemType,
    SourceType,
    ThirteenthTaxOption,
    Totals,
)

__all__ = [
    "split_amount",
    "validate_cost_center_distribution",
    "weighted_distribution",
    "PayrollItemGenerator",
    "business_days",
    "round_amount",
    "BenefitApplication",
    "ContractType",
    "DiscountSource",
    "DueInstallment",
    "ItemCandidate",
    "ItemCategory",
    "ItemType",
    "SourceType",
    "ThirteenthTaxOption",
    "Totals",
]

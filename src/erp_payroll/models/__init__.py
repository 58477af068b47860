"""ORM models for the ERP payroll engine."""

from erp_payroll.models.base import AuditMixin, Base, TimestampMixin
from erp_payroll.models.company import Company, CostCenter, Employee
from erp_payroll.models.contract import Contract, ContractBenefitDiscount, ContractCostCenter
from erp_payroll.models.finance import FinancialTransaction, TransactionCostCenter
from erp_payroll.models.loan import LoanAdvance
from erp_payroll.models.payroll import Payroll, PayrollEmployee, PayrollItem

__all__ = [
    "AuditMixin",
    "Base",
    "TimestampMixin",
    "Company",
    "CostCenter",
    "Employee",
    "Contract",
    "ContractBenefitDiscount",
    "ContractCostCenter",
    "FinancialTransaction",
    "TransactionCostCenter",
    "LoanAdvance",
    "Payroll",
    "PayrollEmployee",
    "PayrollItem",
]

"""Business services for the ERP payroll engine."""

from erp_payroll.services.financial_service import (
    ClosingStatement,
    EmployeePayment,
    FinancialTransactionService,
    LedgerTransactionService,
)
from erp_payroll.services.payroll_service import PayrollService, PayrollSuggestion
from erp_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollStateMachine,
    PayrollStatus,
)

__all__ = [
    "ClosingStatement",
    "EmployeePayment",
    "FinancialTransactionService",
    "LedgerTransactionService",
    "PayrollService",
    "PayrollSuggestion",
    "InvalidTransitionError",
    "PayrollStateMachine",
    "PayrollStatus",
]

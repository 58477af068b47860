"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollCreate(BaseModel):
    """Schema for creating a new payroll run."""

    period_start: date
    period_end: date
    notes: str | None = None


class PayrollUpdate(BaseModel):
    """Only the notes of an open run can be edited."""

    notes: str | None = None


class PayrollResponse(BaseModel):
    """Schema for payroll response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_id: int
    company_id: int
    period_start: date
    period_end: date
    status: str
    is_closed: bool
    total_gross_pay: int
    total_deductions: int
    total_net_pay: int
    inss_amount: int
    fgts_amount: int
    thirteenth_percentage: Decimal | None = None
    thirteenth_tax_option: str | None = None
    notes: str | None = None
    closed_at: datetime | None = None
    closed_by: int | None = None
    payment_date: date | None = None
    account_id: int | None = None
    generated_transaction_ids: list[int] | None = None
    generated_loan_ids: list[int] | None = None
    created_at: datetime


class PayrollListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollResponse]
    total: int


class PayrollSuggestionResponse(BaseModel):
    """Next period to run and the currently open run, if any."""

    model_config = ConfigDict(from_attributes=True)

    year: int
    month: int
    period_start: date
    period_end: date
    has_open_payroll: bool
    open_payroll_id: int | None = None
    open_payroll_period: str | None = None


# ============================================================================
# Payroll employee / item schemas
# ============================================================================


class PayrollItemResponse(BaseModel):
    """Schema for a payroll item."""

    model_config = ConfigDict(from_attributes=True)

    payroll_item_id: int
    payroll_employee_id: int
    description: str
    item_type: str
    category: str
    amount: int
    source_type: str
    reference_id: int | None = None
    installment_number: int | None = None
    installment_total: int | None = None
    calculation_basis: int | None = None
    has_taxes: bool
    is_proportional: bool
    is_manual: bool
    is_active: bool


class PayrollEmployeeResponse(BaseModel):
    """Schema for a payroll employee without items."""

    model_config = ConfigDict(from_attributes=True)

    payroll_employee_id: int
    payroll_id: int
    employee_id: int
    contract_id: int | None = None
    employee_name: str | None = None
    base_salary: int
    worked_units: Decimal | None = None
    is_on_vacation: bool
    vacation_days: int | None = None
    vacation_start_date: date | None = None
    vacation_end_date: date | None = None
    vacation_notes: str | None = None
    total_gross_pay: int
    total_deductions: int
    total_net_pay: int


class PayrollEmployeeDetail(PayrollEmployeeResponse):
    """Payroll employee with its items."""

    items: list[PayrollItemResponse] = Field(default_factory=list)


class PayrollDetailResponse(PayrollResponse):
    """Payroll run with every employee and item."""

    employees: list[PayrollEmployeeDetail] = Field(default_factory=list)


class PayrollItemCreate(BaseModel):
    """Schema for adding a manual item."""

    description: str = Field(min_length=1)
    amount: int = Field(gt=0)
    item_type: str
    category: str = "manual"
    has_taxes: bool = False


class PayrollItemUpdate(BaseModel):
    """Schema for editing an item."""

    description: str | None = None
    amount: int | None = Field(default=None, gt=0)


class WorkedUnitsUpdate(BaseModel):
    """Hours (hourly contracts) or days (daily contracts) worked."""

    worked_units: Decimal = Field(ge=0)


# ============================================================================
# Thirteenth salary / vacation schemas
# ============================================================================


class ThirteenthSalaryRequest(BaseModel):
    """Schema for applying a thirteenth salary installment."""

    percentage: Decimal = Field(ge=0, le=100)
    tax_option: str = "none"


class VacationRequest(BaseModel):
    """Schema for applying vacation to a payroll employee."""

    vacation_days: int = Field(ge=1, le=30)
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None


# ============================================================================
# Close schemas
# ============================================================================


class CloseRequest(BaseModel):
    """Schema for closing a payroll run."""

    payment_date: date
    account_id: int | None = None
    inss_amount: int | None = Field(default=None, ge=0)
    fgts_amount: int | None = Field(default=None, ge=0)


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    errors: dict[str, Any] | None = None

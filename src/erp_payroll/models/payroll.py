"""Payroll run, payroll employee and payroll item models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_payroll.models.base import AuditMixin, Base

if TYPE_CHECKING:
    from erp_payroll.models.company import Employee


# ===== Payroll Runs =====


class Payroll(Base, AuditMixin):
    """One payroll computation for a company over a fixed period."""

    __tablename__ = "payroll"

    payroll_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Totals
    total_gross_pay: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_deductions: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_net_pay: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    inss_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    fgts_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Thirteenth salary
    thirteenth_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    thirteenth_tax_option: Mapped[str | None] = mapped_column(String, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Closing
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    generated_transaction_ids: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    generated_loan_ids: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    # [{"loan_id", "payroll_item_id", "fraction", "amount"}] applied at close
    loan_settlements: Mapped[list[dict] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "company_id", "period_start", "period_end", name="payroll_company_period_unique"
        ),
        CheckConstraint("period_end >= period_start", name="payroll_period_order"),
        # At most one open run per company
        Index(
            "payroll_one_open_per_company",
            "company_id",
            unique=True,
            sqlite_where=text("is_closed = 0"),
            postgresql_where=text("is_closed = false"),
        ),
    )

    # Relationships
    employees: Mapped[list[PayrollEmployee]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        order_by="PayrollEmployee.payroll_employee_id",
    )

    @property
    def status(self) -> str:
        return "closed" if self.is_closed else "open"


class PayrollEmployee(Base, AuditMixin):
    """Per-contract slice of a payroll run."""

    __tablename__ = "payroll_employee"

    payroll_employee_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    payroll_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll.payroll_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.employee_id"),
        nullable=False,
    )
    contract_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("contract.contract_id", ondelete="SET NULL"),
        nullable=True,
    )
    base_salary: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    worked_units: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    # Vacation
    is_on_vacation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vacation_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vacation_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    vacation_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    vacation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Totals
    total_gross_pay: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_deductions: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_net_pay: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("payroll_id", "contract_id", name="payroll_employee_contract_unique"),
    )

    # Relationships
    payroll: Mapped[Payroll] = relationship(back_populates="employees")
    employee: Mapped[Employee] = relationship()
    items: Mapped[list[PayrollItem]] = relationship(
        back_populates="payroll_employee",
        cascade="all, delete-orphan",
        order_by="PayrollItem.payroll_item_id",
    )


class PayrollItem(Base, AuditMixin):
    """A single credit or debit line of a payroll employee."""

    __tablename__ = "payroll_item"

    payroll_item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll_employee.payroll_employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(String, nullable=False)
    item_type: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source_type: Mapped[str] = mapped_column(String, nullable=False)
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    installment_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    installment_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    calculation_basis: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    has_taxes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_proportional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("item_type IN ('credit', 'debit')", name="payroll_item_type_check"),
        CheckConstraint("amount >= 0", name="payroll_item_amount_non_negative"),
        Index("payroll_item_source_ref", "source_type", "reference_id"),
    )

    payroll_employee: Mapped[PayrollEmployee] = relationship(back_populates="items")

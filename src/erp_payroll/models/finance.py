"""Financial transactions booked when a payroll run is closed."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import BigInteger, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_payroll.models.base import AuditMixin, Base


class FinancialTransaction(Base, AuditMixin):
    """Outgoing payment recorded in the company's ledger."""

    __tablename__ = "financial_transaction"

    transaction_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("payroll.payroll_id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    employee_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    direction: Mapped[str] = mapped_column(String, nullable=False, default="outflow")
    description: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    cost_centers: Mapped[list[TransactionCostCenter]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionCostCenter.transaction_cost_center_id",
    )


class TransactionCostCenter(Base, AuditMixin):
    """Cost-center split row of a financial transaction."""

    __tablename__ = "transaction_cost_center"

    transaction_cost_center_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("financial_transaction.transaction_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    cost_center_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cost_center.cost_center_id"),
        nullable=False,
    )
    percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    transaction: Mapped[FinancialTransaction] = relationship(back_populates="cost_centers")

"""Employee loan / salary advance model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from erp_payroll.models.base import AuditMixin, Base


class LoanAdvance(Base, AuditMixin):
    """Multi-installment loan repaid through payroll discounts.

    ``installments_paid`` is fractional: a thirteenth-salary run applied at
    50% settles half an installment.
    """

    __tablename__ = "loan_advance"

    loan_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    installments: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_source: Mapped[str] = mapped_column(String, nullable=False, default="salary")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    loan_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_fully_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    installments_paid: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), nullable=False, default=Decimal("0")
    )
    remaining_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_auto_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="loan_amount_positive"),
        CheckConstraint("installments >= 1", name="loan_installments_positive"),
        CheckConstraint(
            "discount_source IN ('all', 'salary', 'thirteenth', 'vacation')",
            name="loan_discount_source_check",
        ),
    )

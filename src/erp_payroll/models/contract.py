"""Employment contract models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

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
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_payroll.models.base import AuditMixin, Base

if TYPE_CHECKING:
    from erp_payroll.models.company import CostCenter, Employee


class Contract(Base, AuditMixin):
    """Employment agreement, read as a snapshot during payroll generation.

    ``value`` is in minor currency units: the monthly salary for monthly
    contracts, the hourly rate for hourly contracts and the day rate for
    daily contracts.
    """

    __tablename__ = "contract"

    contract_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contract_type: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_payroll: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    has_fgts: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_thirteenth_salary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    weekly_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "contract_type IN ('monthly', 'hourly', 'daily')",
            name="contract_type_check",
        ),
        CheckConstraint("value >= 0", name="contract_value_non_negative"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship()
    benefits: Mapped[list[ContractBenefitDiscount]] = relationship(
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractBenefitDiscount.contract_benefit_id",
    )
    cost_centers: Mapped[list[ContractCostCenter]] = relationship(
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractCostCenter.contract_cost_center_id",
    )


class ContractBenefitDiscount(Base, AuditMixin):
    """Recurring benefit (credit) or discount (debit) attached to a contract."""

    __tablename__ = "contract_benefit_discount"

    contract_benefit_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("contract.contract_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(String, nullable=False)
    item_type: Mapped[str] = mapped_column(String, nullable=False)
    application: Mapped[str] = mapped_column(String, nullable=False, default="salary")
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    has_taxes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_proportional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("item_type IN ('credit', 'debit')", name="cbd_item_type_check"),
        CheckConstraint(
            "application IN ('salary', 'all', 'monthly', 'annual', 'thirteenth', 'vacation')",
            name="cbd_application_check",
        ),
        CheckConstraint("month IS NULL OR (month BETWEEN 1 AND 12)", name="cbd_month_check"),
        CheckConstraint("amount >= 0", name="cbd_amount_non_negative"),
    )

    contract: Mapped[Contract] = relationship(back_populates="benefits")


class ContractCostCenter(Base, AuditMixin):
    """Percentage share of a contract's cost in one cost center."""

    __tablename__ = "contract_cost_center"

    contract_cost_center_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    contract_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("contract.contract_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    cost_center_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cost_center.cost_center_id", ondelete="RESTRICT"),
        nullable=False,
    )
    percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)

    contract: Mapped[Contract] = relationship(back_populates="cost_centers")
    cost_center: Mapped[CostCenter] = relationship()

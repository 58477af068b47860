"""SQLAlchemy repositories used by the payroll engine.

Entities reference each other by id; the services look related rows up
through these repositories instead of walking lazy relationships, which
async sessions cannot load implicitly.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp_payroll.calculators.types import ItemCandidate, ItemCategory, ItemType, SourceType
from erp_payroll.models import (
    Contract,
    Employee,
    LoanAdvance,
    Payroll,
    PayrollEmployee,
    PayrollItem,
)


class ContractRepository:
    """Read access to contracts and their benefit/cost-center entries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _with_details(self):
        return (
            selectinload(Contract.benefits),
            selectinload(Contract.cost_centers),
            selectinload(Contract.employee),
        )

    async def eligible_payroll_contracts(self, company_id: int) -> list[Contract]:
        """Active, payroll-flagged contracts of a company, by employee display name."""
        display_name = func.coalesce(Employee.nickname, Employee.full_name)
        result = await self.session.execute(
            select(Contract)
            .join(Employee, Employee.employee_id == Contract.employee_id)
            .where(
                Employee.company_id == company_id,
                Contract.is_active.is_(True),
                Contract.is_payroll.is_(True),
            )
            .order_by(display_name, Contract.contract_id)
            .options(*self._with_details())
        )
        return list(result.scalars().all())

    async def get(self, contract_id: int) -> Contract | None:
        result = await self.session.execute(
            select(Contract)
            .where(Contract.contract_id == contract_id)
            .options(*self._with_details())
        )
        return result.scalar_one_or_none()

    async def get_many(self, contract_ids: Iterable[int]) -> dict[int, Contract]:
        ids = {cid for cid in contract_ids if cid is not None}
        if not ids:
            return {}
        result = await self.session.execute(
            select(Contract)
            .where(Contract.contract_id.in_(ids))
            .options(*self._with_details())
        )
        return {c.contract_id: c for c in result.scalars().all()}


class LoanRepository:
    """Loan/advance lookups and the loan rows created at close time."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def pending_loans(self, employee_id: int, reference_date: date) -> list[LoanAdvance]:
        """Approved, unpaid loans already started at ``reference_date``, oldest first."""
        result = await self.session.execute(
            select(LoanAdvance)
            .where(
                LoanAdvance.employee_id == employee_id,
                LoanAdvance.is_approved.is_(True),
                LoanAdvance.is_fully_paid.is_(False),
                LoanAdvance.start_date <= reference_date,
            )
            .order_by(LoanAdvance.start_date, LoanAdvance.loan_id)
        )
        return list(result.scalars().all())

    async def get(self, loan_id: int) -> LoanAdvance | None:
        return await self.session.get(LoanAdvance, loan_id)

    async def create(self, loan: LoanAdvance) -> LoanAdvance:
        self.session.add(loan)
        await self.session.flush()
        return loan

    async def delete_many(self, loan_ids: Iterable[int]) -> None:
        ids = list(loan_ids)
        if ids:
            await self.session.execute(
                delete(LoanAdvance)
                .where(LoanAdvance.loan_id.in_(ids))
                .execution_options(synchronize_session="fetch")
            )


class PayrollItemRepository:
    """Payroll item persistence and installment numbering."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_installment_number(self, loan_id: int) -> int:
        """Highest installment number among ACTIVE loan items, plus one."""
        highest = await self.session.scalar(
            select(func.max(PayrollItem.installment_number)).where(
                PayrollItem.source_type == SourceType.LOAN.value,
                PayrollItem.reference_id == loan_id,
                PayrollItem.is_active.is_(True),
            )
        )
        return (highest or 0) + 1

    async def create_item(
        self,
        payroll_employee_id: int,
        candidate: ItemCandidate,
        user_id: int | None = None,
    ) -> PayrollItem:
        item = PayrollItem(
            payroll_employee_id=payroll_employee_id,
            created_by=user_id,
            **candidate.to_row(),
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def get(self, payroll_item_id: int) -> PayrollItem | None:
        return await self.session.get(PayrollItem, payroll_item_id)

    async def list_active_items_for_employee(self, payroll_employee_id: int) -> list[PayrollItem]:
        return await self.list_for_employee(payroll_employee_id, active_only=True)

    async def list_for_employee(
        self,
        payroll_employee_id: int,
        active_only: bool = False,
    ) -> list[PayrollItem]:
        query = select(PayrollItem).where(PayrollItem.payroll_employee_id == payroll_employee_id)
        if active_only:
            query = query.where(PayrollItem.is_active.is_(True))
        result = await self.session.execute(query.order_by(PayrollItem.payroll_item_id))
        return list(result.scalars().all())

    async def list_manual_items(
        self,
        payroll_employee_id: int,
        source_types: Iterable[str],
    ) -> list[PayrollItem]:
        """Manually edited items of the given sources, active or not."""
        result = await self.session.execute(
            select(PayrollItem)
            .where(
                PayrollItem.payroll_employee_id == payroll_employee_id,
                PayrollItem.is_manual.is_(True),
                PayrollItem.source_type.in_([SourceType(s).value for s in source_types]),
            )
            .order_by(PayrollItem.payroll_item_id)
        )
        return list(result.scalars().all())

    async def active_loan_ids_in_payroll(
        self,
        payroll_id: int,
        exclude_payroll_employee_id: int | None = None,
    ) -> set[int]:
        """Loans already billed by another employee slice of the same run."""
        query = (
            select(PayrollItem.reference_id)
            .join(
                PayrollEmployee,
                PayrollEmployee.payroll_employee_id == PayrollItem.payroll_employee_id,
            )
            .where(
                PayrollEmployee.payroll_id == payroll_id,
                PayrollItem.source_type == SourceType.LOAN.value,
                PayrollItem.is_active.is_(True),
            )
        )
        if exclude_payroll_employee_id is not None:
            query = query.where(PayrollEmployee.payroll_employee_id != exclude_payroll_employee_id)
        result = await self.session.execute(query)
        return {ref for ref in result.scalars().all() if ref is not None}

    async def delete_generated_items(
        self,
        payroll_employee_id: int,
        source_types: Iterable[str],
    ) -> int:
        """Hard-delete non-manual items of the given sources for one employee."""
        result = await self.session.execute(
            delete(PayrollItem)
            .where(
                PayrollItem.payroll_employee_id == payroll_employee_id,
                PayrollItem.is_manual.is_(False),
                PayrollItem.source_type.in_([SourceType(s).value for s in source_types]),
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def delete_items_by_source(
        self,
        payroll_employee_ids: Sequence[int],
        source_types: Iterable[str],
    ) -> int:
        """Hard-delete every item of the given sources, manual edits included."""
        if not payroll_employee_ids:
            return 0
        result = await self.session.execute(
            delete(PayrollItem)
            .where(
                PayrollItem.payroll_employee_id.in_(list(payroll_employee_ids)),
                PayrollItem.source_type.in_([SourceType(s).value for s in source_types]),
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def delete_for_employees(self, payroll_employee_ids: Sequence[int]) -> None:
        if payroll_employee_ids:
            await self.session.execute(
                delete(PayrollItem)
                .where(PayrollItem.payroll_employee_id.in_(list(payroll_employee_ids)))
                .execution_options(synchronize_session="fetch")
            )

    @staticmethod
    def salary_base(items: Iterable[PayrollItem]) -> int:
        """Sum of active salary credits."""
        return sum(
            i.amount
            for i in items
            if i.is_active
            and i.item_type == ItemType.CREDIT.value
            and i.category == ItemCategory.SALARY.value
        )


class PayrollEmployeeRepository:
    """Per-contract payroll slices."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, payroll_employee: PayrollEmployee) -> PayrollEmployee:
        self.session.add(payroll_employee)
        await self.session.flush()
        return payroll_employee

    async def update(self, payroll_employee: PayrollEmployee) -> PayrollEmployee:
        await self.session.flush()
        return payroll_employee

    async def get(self, payroll_employee_id: int) -> PayrollEmployee | None:
        return await self.session.get(PayrollEmployee, payroll_employee_id)

    async def list_for_run(self, payroll_id: int) -> list[PayrollEmployee]:
        result = await self.session.execute(
            select(PayrollEmployee)
            .where(PayrollEmployee.payroll_id == payroll_id)
            .order_by(PayrollEmployee.payroll_employee_id)
        )
        return list(result.scalars().all())

    async def delete_many(self, payroll_employee_ids: Sequence[int]) -> None:
        if payroll_employee_ids:
            await self.session.execute(
                delete(PayrollEmployee)
                .where(PayrollEmployee.payroll_employee_id.in_(list(payroll_employee_ids)))
                .execution_options(synchronize_session="fetch")
            )


class PayrollRunRepository:
    """Payroll run lookups by period and lifecycle state."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, payroll: Payroll) -> Payroll:
        self.session.add(payroll)
        await self.session.flush()
        return payroll

    async def update(self, payroll: Payroll) -> Payroll:
        await self.session.flush()
        return payroll

    async def get(self, payroll_id: int) -> Payroll | None:
        return await self.session.get(Payroll, payroll_id)

    async def get_detailed(self, payroll_id: int) -> Payroll | None:
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.payroll_id == payroll_id)
            .options(
                selectinload(Payroll.employees).selectinload(PayrollEmployee.items),
                selectinload(Payroll.employees).selectinload(PayrollEmployee.employee),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_period(
        self,
        company_id: int,
        period_start: date,
        period_end: date,
    ) -> Payroll | None:
        result = await self.session.execute(
            select(Payroll).where(
                Payroll.company_id == company_id,
                Payroll.period_start == period_start,
                Payroll.period_end == period_end,
            )
        )
        return result.scalar_one_or_none()

    async def find_open(self, company_id: int) -> Payroll | None:
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.company_id == company_id, Payroll.is_closed.is_(False))
            .order_by(Payroll.payroll_id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def last_closed(self, company_id: int) -> Payroll | None:
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.company_id == company_id, Payroll.is_closed.is_(True))
            .order_by(Payroll.period_end.desc(), Payroll.payroll_id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def latest(self, company_id: int) -> Payroll | None:
        """Most recently created run of a company."""
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.company_id == company_id)
            .order_by(Payroll.payroll_id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_company(self, company_id: int) -> list[Payroll]:
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.company_id == company_id)
            .order_by(Payroll.period_start.desc(), Payroll.payroll_id.desc())
        )
        return list(result.scalars().all())

    async def delete(self, payroll_id: int) -> None:
        await self.session.execute(
            delete(Payroll)
            .where(Payroll.payroll_id == payroll_id)
            .execution_options(synchronize_session="fetch")
        )

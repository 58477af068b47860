"""Pytest fixtures for ERP payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from erp_payroll.clock import FixedClock
from erp_payroll.models import (
    Base,
    Company,
    Contract,
    ContractBenefitDiscount,
    ContractCostCenter,
    CostCenter,
    Employee,
    LoanAdvance,
    Payroll,
)
from erp_payroll.services import ClosingStatement, PayrollService

# In-memory SQLite shared by every connection of one test engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeFinancialService:
    """Records close/reopen calls instead of writing ledger rows."""

    def __init__(self):
        self.statements: list[ClosingStatement] = []
        self.reversed: list[int] = []
        self._next_id = 1000

    @property
    def post_calls(self) -> int:
        return len(self.statements)

    @property
    def reverse_calls(self) -> int:
        return len(self.reversed)

    async def post_net_pay_and_tax_transactions(self, statement: ClosingStatement) -> list[int]:
        self.statements.append(statement)
        count = sum(1 for p in statement.payments if p.net_pay > 0)
        count += int(statement.inss_amount > 0) + int(statement.fgts_amount > 0)
        ids = list(range(self._next_id, self._next_id + count))
        self._next_id += count
        return ids

    async def reverse_transactions(self, payroll: Payroll) -> None:
        self.reversed.append(payroll.payroll_id)


class DataFactory:
    """Builds reference data (companies, contracts, loans) for a test."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def benefit(description: str, amount: int, **kwargs) -> dict:
        return {"description": description, "item_type": "credit", "amount": amount, **kwargs}

    @staticmethod
    def discount(description: str, amount: int, **kwargs) -> dict:
        return {"description": description, "item_type": "debit", "amount": amount, **kwargs}

    async def company(self, name: str = "Acme Ltda") -> Company:
        company = Company(name=name)
        self.session.add(company)
        await self.session.flush()
        return company

    async def cost_center(self, company: Company, name: str) -> CostCenter:
        cost_center = CostCenter(company_id=company.company_id, name=name)
        self.session.add(cost_center)
        await self.session.flush()
        return cost_center

    async def contract(
        self,
        company: Company,
        full_name: str,
        value: int = 300000,
        contract_type: str = "monthly",
        start_date: date = date(2023, 1, 1),
        benefits: list[dict] | None = None,
        cost_centers: list[tuple[CostCenter, str]] | None = None,
        nickname: str | None = None,
        **flags,
    ) -> Contract:
        employee = Employee(company_id=company.company_id, full_name=full_name, nickname=nickname)
        self.session.add(employee)
        await self.session.flush()

        contract = Contract(
            employee_id=employee.employee_id,
            employee=employee,
            contract_type=contract_type,
            value=value,
            start_date=start_date,
            is_active=flags.pop("is_active", True),
            is_payroll=flags.pop("is_payroll", True),
            has_fgts=flags.pop("has_fgts", False),
            has_thirteenth_salary=flags.pop("has_thirteenth_salary", False),
            benefits=[ContractBenefitDiscount(**entry) for entry in (benefits or [])],
            cost_centers=[
                ContractCostCenter(cost_center_id=cc.cost_center_id, percentage=Decimal(pct))
                for cc, pct in (cost_centers or [])
            ],
            **flags,
        )
        self.session.add(contract)
        await self.session.flush()
        return contract

    async def loan(
        self,
        employee_id: int,
        amount: int = 120000,
        installments: int = 3,
        start_date: date = date(2024, 1, 1),
        discount_source: str = "salary",
        is_approved: bool = True,
        description: str | None = "Salary loan",
    ) -> LoanAdvance:
        loan = LoanAdvance(
            employee_id=employee_id,
            description=description,
            amount=amount,
            installments=installments,
            discount_source=discount_source,
            start_date=start_date,
            loan_date=start_date,
            is_approved=is_approved,
            is_fully_paid=False,
            installments_paid=Decimal("0"),
            remaining_amount=amount,
        )
        self.session.add(loan)
        await self.session.flush()
        return loan


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 15, 12, 0))


@pytest.fixture
def financial() -> FakeFinancialService:
    return FakeFinancialService()


@pytest.fixture
def service(session: AsyncSession, clock: FixedClock, financial: FakeFinancialService) -> PayrollService:
    return PayrollService(
        session,
        clock=clock,
        financial_service=financial,
        fgts_rate=Decimal("0.08"),
    )


@pytest.fixture
def factory(session: AsyncSession) -> DataFactory:
    return DataFactory(session)


@pytest_asyncio.fixture
async def company(factory: DataFactory) -> Company:
    return await factory.company()


@pytest_asyncio.fixture
async def scenario_contract(factory: DataFactory, company: Company) -> Contract:
    """Monthly 3,000.00 salary, 200.00 meal allowance, 50.00 health plan."""
    return await factory.contract(
        company,
        "Ana Souza",
        value=300000,
        benefits=[
            factory.benefit("Meal allowance", 20000),
            factory.discount("Health plan", 5000),
        ],
    )


@pytest_asyncio.fixture
async def scenario_loan(factory: DataFactory, scenario_contract: Contract) -> LoanAdvance:
    """1,200.00 loan in three installments, started before March 2024."""
    return await factory.loan(scenario_contract.employee_id)

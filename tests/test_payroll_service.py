"""Tests for the payroll service: creation, recalculation and editing."""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from erp_payroll.exceptions import BusinessRuleError, NotFoundError, ValidationError

pytestmark = pytest.mark.asyncio

MARCH_START = date(2024, 3, 1)
MARCH_END = date(2024, 3, 31)


async def only_employee(service, payroll):
    employees = await service.employees.list_for_run(payroll.payroll_id)
    assert len(employees) == 1
    return employees[0]


async def item_snapshot(service, payroll_employee):
    items = await service.items.list_for_employee(payroll_employee.payroll_employee_id)
    return [
        (i.description, i.item_type, i.category, i.amount, i.installment_number, i.is_active)
        for i in items
    ]


# ============================================================================
# Creation
# ============================================================================


class TestCreatePayroll:
    """Test payroll run creation."""

    async def test_reference_scenario(self, service, company, scenario_loan):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END, user_id=7)

        assert payroll.status == "open"
        assert payroll.created_by == 7
        assert (payroll.total_gross_pay, payroll.total_deductions, payroll.total_net_pay) == (
            320000,
            45000,
            275000,
        )

        pe = await only_employee(service, payroll)
        items = await service.items.list_for_employee(pe.payroll_employee_id)
        assert [(i.category, i.amount) for i in items] == [
            ("salary", 300000),
            ("benefit", 20000),
            ("discount", 5000),
            ("loan", 40000),
        ]
        loan_item = items[-1]
        assert loan_item.description == f"Loan #{scenario_loan.loan_id} — Installment 1/3"
        assert loan_item.reference_id == scenario_loan.loan_id
        assert (loan_item.installment_number, loan_item.installment_total) == (1, 3)
        assert pe.base_salary == 300000

    async def test_duplicate_period_rejected(self, service, company, scenario_contract):
        await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        with pytest.raises(ValidationError) as exc_info:
            await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        assert exc_info.value.field == "period"

    async def test_second_open_run_rejected(self, service, company, scenario_contract):
        await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        with pytest.raises(BusinessRuleError) as exc_info:
            await service.create_payroll(company.company_id, date(2024, 4, 1), date(2024, 4, 30))

        assert exc_info.value.rule == "single_open_payroll"

    async def test_empty_eligible_set_rejected(self, service, factory, company):
        await factory.contract(company, "Inactive", is_active=False)
        await factory.contract(company, "Not on payroll", is_payroll=False)

        with pytest.raises(BusinessRuleError) as exc_info:
            await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        assert exc_info.value.rule == "empty_payroll"
        assert await service.list_payrolls(company.company_id) == []

    async def test_period_end_before_start(self, service, company, scenario_contract):
        with pytest.raises(ValidationError):
            await service.create_payroll(company.company_id, MARCH_END, MARCH_START)

    async def test_employees_ordered_by_display_name(self, service, factory, company):
        await factory.contract(company, "Maria Costa")
        await factory.contract(company, "Zeca Pereira", nickname="Abel")
        await factory.contract(company, "Bruno Lima")

        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        detail = await service.get_payroll_detail(payroll.payroll_id)

        names = [pe.employee.display_name for pe in detail.employees]
        assert names == ["Abel", "Bruno Lima", "Maria Costa"]

    async def test_hourly_contract_gets_default_units(self, service, factory, company):
        await factory.contract(company, "Hugo Neves", value=2500, contract_type="hourly")

        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        pe = await only_employee(service, payroll)
        assert pe.worked_units == Decimal("168")
        assert pe.total_gross_pay == 420000

    async def test_unknown_payroll(self, service):
        with pytest.raises(NotFoundError):
            await service.get_payroll(404)
        with pytest.raises(NotFoundError):
            await service.get_payroll_detail(404)


# ============================================================================
# Recalculation
# ============================================================================


class TestRecalculation:
    """Test payroll and employee recalculation."""

    async def test_recalculation_is_idempotent(self, service, company, scenario_loan):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        before = await item_snapshot(service, pe)

        await service.recalculate_payroll(payroll.payroll_id)
        await service.recalculate_payroll(payroll.payroll_id)

        assert await item_snapshot(service, pe) == before
        assert (payroll.total_gross_pay, payroll.total_deductions, payroll.total_net_pay) == (
            320000,
            45000,
            275000,
        )

    async def test_loan_numbering_does_not_drift(self, service, company, scenario_loan):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.recalculate_employee(pe.payroll_employee_id)
        await service.recalculate_employee(pe.payroll_employee_id)

        items = await service.items.list_for_employee(pe.payroll_employee_id)
        loan_items = [i for i in items if i.category == "loan"]
        assert [(i.installment_number, i.installment_total) for i in loan_items] == [(1, 3)]

    async def test_contract_changes_are_picked_up(self, service, session, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        scenario_contract.value = 350000
        await session.flush()

        await service.recalculate_payroll(payroll.payroll_id)

        pe = await only_employee(service, payroll)
        assert pe.base_salary == 350000
        assert payroll.total_gross_pay == 370000

    async def test_manual_item_survives(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        await service.add_item(pe.payroll_employee_id, "Overtime", 15000, "credit")

        await service.recalculate_employee(pe.payroll_employee_id)

        items = await service.items.list_active_items_for_employee(pe.payroll_employee_id)
        assert [i.description for i in items if i.is_manual] == ["Overtime"]
        assert pe.total_gross_pay == 335000

    async def test_edited_generated_item_is_kept(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        items = await service.items.list_for_employee(pe.payroll_employee_id)
        meal = next(i for i in items if i.category == "benefit")

        await service.update_item(meal.payroll_item_id, amount=25000)
        await service.recalculate_payroll(payroll.payroll_id)

        benefits = [
            i
            for i in await service.items.list_for_employee(pe.payroll_employee_id)
            if i.category == "benefit"
        ]
        assert [(b.amount, b.is_manual) for b in benefits] == [(25000, True)]
        assert payroll.total_gross_pay == 325000

    async def test_removed_item_is_not_regenerated(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        items = await service.items.list_for_employee(pe.payroll_employee_id)
        health = next(i for i in items if i.category == "discount")

        await service.remove_item(health.payroll_item_id)
        await service.recalculate_payroll(payroll.payroll_id)

        active = await service.items.list_active_items_for_employee(pe.payroll_employee_id)
        assert [i.category for i in active] == ["salary", "benefit"]
        assert pe.total_deductions == 0

    async def test_contracts_leaving_and_joining(self, service, session, factory, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        scenario_contract.is_active = False
        await session.flush()
        newcomer = await factory.contract(company, "Bruno Lima", value=250000)

        await service.recalculate_payroll(payroll.payroll_id)

        pe = await only_employee(service, payroll)
        assert pe.contract_id == newcomer.contract_id
        assert payroll.total_gross_pay == 250000

    async def test_empty_eligible_set_zeroes_totals(self, service, session, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        scenario_contract.is_payroll = False
        await session.flush()

        await service.recalculate_payroll(payroll.payroll_id)

        assert await service.employees.list_for_run(payroll.payroll_id) == []
        assert (payroll.total_gross_pay, payroll.total_deductions, payroll.total_net_pay) == (0, 0, 0)

    async def test_missing_contract(self, service, session, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        pe.contract_id = None
        await session.flush()

        with pytest.raises(NotFoundError):
            await service.recalculate_employee(pe.payroll_employee_id)

    async def test_closed_run_rejects_edits(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        await service.close_payroll(payroll.payroll_id, date(2024, 4, 5))

        with pytest.raises(ValidationError):
            await service.recalculate_payroll(payroll.payroll_id)
        with pytest.raises(ValidationError):
            await service.recalculate_employee(pe.payroll_employee_id)
        with pytest.raises(ValidationError):
            await service.add_item(pe.payroll_employee_id, "Late bonus", 1000, "credit")
        with pytest.raises(ValidationError):
            await service.update_payroll(payroll.payroll_id, "late note")


# ============================================================================
# Items and worked units
# ============================================================================


class TestItems:
    """Test manual item editing."""

    async def test_add_item_validation(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        with pytest.raises(ValidationError) as exc_info:
            await service.add_item(pe.payroll_employee_id, " ", 0, "bogus")

        assert set(exc_info.value.errors) == {"description", "amount", "item_type"}

    async def test_add_item(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        item = await service.add_item(pe.payroll_employee_id, "Commission", 10000, "credit", user_id=3)

        assert (item.source_type, item.category, item.is_manual) == ("manual", "manual", True)
        assert item.created_by == 3
        assert pe.total_gross_pay == 330000
        assert payroll.total_net_pay == 330000 - 5000

    async def test_update_item_marks_manual(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        salary = (await service.items.list_for_employee(pe.payroll_employee_id))[0]

        updated = await service.update_item(salary.payroll_item_id, description="Salary (adjusted)")

        assert updated.is_manual is True
        assert updated.description == "Salary (adjusted)"

    async def test_update_item_rejects_non_positive_amount(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        salary = (await service.items.list_for_employee(pe.payroll_employee_id))[0]

        with pytest.raises(ValidationError):
            await service.update_item(salary.payroll_item_id, amount=0)

    async def test_remove_item_soft_deletes(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        meal = (await service.items.list_for_employee(pe.payroll_employee_id))[1]

        removed = await service.remove_item(meal.payroll_item_id)

        assert removed.is_active is False
        assert len(await service.items.list_for_employee(pe.payroll_employee_id)) == 3
        assert pe.total_gross_pay == 300000

    async def test_unknown_item(self, service):
        with pytest.raises(NotFoundError):
            await service.update_item(123, amount=10)


class TestWorkedUnits:
    async def test_update_hours(self, service, factory, company):
        await factory.contract(company, "Hugo Neves", value=2500, contract_type="hourly")
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.update_worked_units(pe.payroll_employee_id, Decimal("100"))

        assert pe.worked_units == Decimal("100")
        assert pe.total_gross_pay == 250000
        assert payroll.total_gross_pay == 250000

    async def test_units_survive_recalculation(self, service, factory, company):
        await factory.contract(company, "Hugo Neves", value=2500, contract_type="hourly")
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        await service.update_worked_units(pe.payroll_employee_id, Decimal("100"))

        await service.recalculate_payroll(payroll.payroll_id)

        assert pe.total_gross_pay == 250000

    async def test_monthly_contract_rejected(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        with pytest.raises(ValidationError):
            await service.update_worked_units(pe.payroll_employee_id, Decimal("100"))

    async def test_negative_units_rejected(self, service, factory, company):
        await factory.contract(company, "Dora Luz", value=10000, contract_type="daily")
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        with pytest.raises(ValidationError):
            await service.update_worked_units(pe.payroll_employee_id, Decimal("-1"))


# ============================================================================
# Thirteenth salary and vacation
# ============================================================================


class TestThirteenthSalary:
    """Test thirteenth-salary application."""

    @pytest_asyncio.fixture
    async def entitled(self, factory, company):
        return await factory.contract(
            company,
            "Ana Souza",
            has_thirteenth_salary=True,
            benefits=[
                factory.benefit("Meal allowance", 20000),
                factory.benefit("Gym", 10000, application="all"),
            ],
        )

    async def thirteenth_items(self, service, pe):
        items = await service.items.list_active_items_for_employee(pe.payroll_employee_id)
        return [(i.source_type, i.amount) for i in items if i.category == "thirteenth"]

    async def test_apply(self, service, company, entitled):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.apply_thirteenth_salary(payroll.payroll_id, Decimal("50"), "proportional")

        assert await self.thirteenth_items(service, pe) == [
            ("thirteenth_salary", 150000),
            ("thirteenth_benefit", 5000),
        ]
        assert payroll.thirteenth_percentage == Decimal("50")
        assert payroll.thirteenth_tax_option == "proportional"
        assert payroll.total_gross_pay == 300000 + 20000 + 10000 + 150000 + 5000

    async def test_reapply_replaces(self, service, company, entitled):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.apply_thirteenth_salary(payroll.payroll_id, Decimal("50"))
        await service.apply_thirteenth_salary(payroll.payroll_id, Decimal("100"))

        assert await self.thirteenth_items(service, pe) == [
            ("thirteenth_salary", 300000),
            ("thirteenth_benefit", 10000),
        ]

    async def test_thirteenth_loan_share(self, service, factory, company, entitled):
        loan = await factory.loan(entitled.employee_id, discount_source="all")
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.apply_thirteenth_salary(payroll.payroll_id, Decimal("50"))

        items = await service.items.list_active_items_for_employee(pe.payroll_employee_id)
        shares = [i for i in items if i.source_type == "thirteenth_loan"]
        assert [(s.reference_id, s.amount) for s in shares] == [(loan.loan_id, 20000)]

    async def test_contract_without_entitlement_gets_nothing(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.apply_thirteenth_salary(payroll.payroll_id, Decimal("100"))

        assert await self.thirteenth_items(service, pe) == []
        assert payroll.thirteenth_percentage == Decimal("100")

    async def test_recalculation_leaves_thirteenth_items(self, service, company, entitled):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        await service.apply_thirteenth_salary(payroll.payroll_id, Decimal("50"))

        await service.recalculate_payroll(payroll.payroll_id)

        assert len(await self.thirteenth_items(service, pe)) == 2

    async def test_remove(self, service, company, entitled):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        await service.apply_thirteenth_salary(payroll.payroll_id, Decimal("50"))

        await service.remove_thirteenth_salary(payroll.payroll_id)

        assert await self.thirteenth_items(service, pe) == []
        assert payroll.thirteenth_percentage is None
        assert payroll.total_gross_pay == 330000
        with pytest.raises(ValidationError):
            await service.remove_thirteenth_salary(payroll.payroll_id)

    @pytest.mark.parametrize("percentage, option", [(Decimal("120"), "none"), (Decimal("50"), "double")])
    async def test_invalid_input(self, service, company, entitled, percentage, option):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        with pytest.raises(ValidationError):
            await service.apply_thirteenth_salary(payroll.payroll_id, percentage, option)


class TestVacation:
    """Test vacation application."""

    async def vacation_items(self, service, pe):
        items = await service.items.list_active_items_for_employee(pe.payroll_employee_id)
        return [(i.source_type, i.amount) for i in items if i.category == "vacation"]

    async def test_apply(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.apply_vacation(
            payroll.payroll_id,
            pe.payroll_employee_id,
            30,
            start_date=date(2024, 3, 1),
            end_date=date(2024, 3, 30),
            notes="Annual leave",
        )

        assert await self.vacation_items(service, pe) == [("vacation_bonus", 100000)]
        assert pe.is_on_vacation is True
        assert pe.vacation_days == 30
        assert pe.vacation_notes == "Annual leave"
        assert payroll.total_gross_pay == 420000

    async def test_reapply_replaces(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.apply_vacation(payroll.payroll_id, pe.payroll_employee_id, 30)
        await service.apply_vacation(payroll.payroll_id, pe.payroll_employee_id, 10)

        assert await self.vacation_items(service, pe) == [("vacation_bonus", 33333)]
        assert pe.vacation_days == 10

    async def test_vacation_benefits(self, service, factory, company):
        await factory.contract(
            company,
            "Ana Souza",
            benefits=[factory.benefit("Vacation kit", 5000, application="vacation")],
        )
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.apply_vacation(payroll.payroll_id, pe.payroll_employee_id, 30)

        assert await self.vacation_items(service, pe) == [
            ("vacation_bonus", 100000),
            ("vacation_benefit", 5000),
        ]

    async def test_vacation_loan_installment(self, service, factory, company, scenario_contract):
        loan = await factory.loan(
            scenario_contract.employee_id,
            amount=60000,
            installments=2,
            discount_source="vacation",
            description="Vacation loan",
        )
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        items = await service.items.list_active_items_for_employee(pe.payroll_employee_id)
        assert [i for i in items if i.reference_id == loan.loan_id and i.category == "loan"] == []

        await service.apply_vacation(payroll.payroll_id, pe.payroll_employee_id, 30)

        items = await service.items.list_active_items_for_employee(pe.payroll_employee_id)
        loan_items = [i for i in items if i.source_type == "vacation_loan"]
        assert len(loan_items) == 1
        assert loan_items[0].category == "loan"
        assert loan_items[0].item_type == "debit"
        assert loan_items[0].reference_id == loan.loan_id
        assert loan_items[0].amount == 30000
        assert (loan_items[0].installment_number, loan_items[0].installment_total) == (1, 2)
        assert pe.total_deductions == 35000

        await service.remove_vacation(payroll.payroll_id, pe.payroll_employee_id)

        items = await service.items.list_active_items_for_employee(pe.payroll_employee_id)
        assert [i for i in items if i.source_type == "vacation_loan"] == []
        assert pe.total_deductions == 5000

    async def test_remove(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)
        await service.apply_vacation(payroll.payroll_id, pe.payroll_employee_id, 30)

        await service.remove_vacation(payroll.payroll_id, pe.payroll_employee_id)

        assert await self.vacation_items(service, pe) == []
        assert pe.is_on_vacation is False
        assert pe.vacation_days is None
        assert payroll.total_gross_pay == 320000

    @pytest.mark.parametrize("days", [0, 31])
    async def test_days_out_of_range(self, service, company, scenario_contract, days):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        with pytest.raises(ValidationError):
            await service.apply_vacation(payroll.payroll_id, pe.payroll_employee_id, days)

    async def test_unknown_employee(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        with pytest.raises(NotFoundError):
            await service.apply_vacation(payroll.payroll_id, 9999, 10)


# ============================================================================
# Deletion, notes and suggestion
# ============================================================================


class TestDeleteAndUpdate:
    async def test_delete_latest_open_run(self, service, company, scenario_loan):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        pe = await only_employee(service, payroll)

        await service.delete_payroll(payroll.payroll_id)

        assert await service.list_payrolls(company.company_id) == []
        assert await service.items.list_for_employee(pe.payroll_employee_id) == []
        # The loan installment is free again
        assert await service.loan_tracker.next_installment_number(scenario_loan.loan_id) == 1

    async def test_delete_closed_run_rejected(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        await service.close_payroll(payroll.payroll_id, date(2024, 4, 5))

        with pytest.raises(BusinessRuleError):
            await service.delete_payroll(payroll.payroll_id)

    async def test_delete_older_run_rejected(self, service, company, scenario_contract):
        march = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)
        await service.close_payroll(march.payroll_id, date(2024, 4, 5))
        april = await service.create_payroll(company.company_id, date(2024, 4, 1), date(2024, 4, 30))
        await service.close_payroll(april.payroll_id, date(2024, 5, 5))
        await service.reopen_payroll(march.payroll_id)

        with pytest.raises(BusinessRuleError) as exc_info:
            await service.delete_payroll(march.payroll_id)

        assert exc_info.value.rule == "delete_last_payroll"

    async def test_update_notes(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        updated = await service.update_payroll(payroll.payroll_id, "Includes March overtime", user_id=2)

        assert updated.notes == "Includes March overtime"
        assert updated.updated_by == 2


class TestSuggestion:
    async def test_current_month_without_runs(self, service, company):
        suggestion = await service.get_suggestion(company.company_id)

        assert (suggestion.year, suggestion.month) == (2024, 3)
        assert (suggestion.period_start, suggestion.period_end) == (MARCH_START, MARCH_END)
        assert suggestion.has_open_payroll is False
        assert suggestion.open_payroll_id is None

    async def test_reports_open_run(self, service, company, scenario_contract):
        payroll = await service.create_payroll(company.company_id, MARCH_START, MARCH_END)

        suggestion = await service.get_suggestion(company.company_id)

        assert suggestion.has_open_payroll is True
        assert suggestion.open_payroll_id == payroll.payroll_id
        assert suggestion.open_payroll_period == "01/03/2024 - 31/03/2024"

    async def test_month_after_last_closed_run(self, service, company, scenario_contract):
        december = await service.create_payroll(
            company.company_id, date(2023, 12, 1), date(2023, 12, 31)
        )
        await service.close_payroll(december.payroll_id, date(2024, 1, 5))

        suggestion = await service.get_suggestion(company.company_id)

        assert (suggestion.year, suggestion.month) == (2024, 1)
        assert suggestion.period_end == date(2024, 1, 31)
        assert suggestion.has_open_payroll is False

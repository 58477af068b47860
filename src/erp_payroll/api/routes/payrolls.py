"""Payroll API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, status

from erp_payroll.api.dependencies import CompanyId, Service, UserId
from erp_payroll.api.schemas import (
    CloseRequest,
    ErrorResponse,
    PayrollCreate,
    PayrollDetailResponse,
    PayrollEmployeeDetail,
    PayrollEmployeeResponse,
    PayrollItemCreate,
    PayrollItemResponse,
    PayrollItemUpdate,
    PayrollListResponse,
    PayrollResponse,
    PayrollSuggestionResponse,
    PayrollUpdate,
    ThirteenthSalaryRequest,
    VacationRequest,
    WorkedUnitsUpdate,
)
from erp_payroll.exceptions import NotFoundError
from erp_payroll.models import Payroll, PayrollEmployee
from erp_payroll.services import PayrollService

router = APIRouter(prefix="/payrolls", tags=["payrolls"])

NOT_FOUND = {404: {"model": ErrorResponse}}
EDIT_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


async def _owned_payroll(service: PayrollService, company_id: int, payroll_id: int) -> Payroll:
    """Load a run, hiding runs of other companies."""
    payroll = await service.get_payroll(payroll_id)
    if payroll.company_id != company_id:
        raise NotFoundError("Payroll", payroll_id)
    return payroll


async def _owned_employee(
    service: PayrollService, company_id: int, payroll_employee_id: int
) -> PayrollEmployee:
    pe = await service.get_payroll_employee(payroll_employee_id)
    await _owned_payroll(service, company_id, pe.payroll_id)
    return pe


def _detail(payroll: Payroll) -> PayrollDetailResponse:
    employees = []
    for pe in payroll.employees:
        resp = PayrollEmployeeDetail.model_validate(pe)
        resp.employee_name = pe.employee.display_name
        employees.append(resp)
    employees.sort(key=lambda e: ((e.employee_name or "").lower(), e.payroll_employee_id))
    return PayrollDetailResponse(
        **PayrollResponse.model_validate(payroll).model_dump(),
        employees=employees,
    )


# ============================================================================
# Payroll CRUD
# ============================================================================


@router.get("", response_model=PayrollListResponse)
async def list_payrolls(service: Service, company_id: CompanyId) -> PayrollListResponse:
    """List payroll runs of the company, newest period first."""
    payrolls = await service.list_payrolls(company_id)
    return PayrollListResponse(
        items=[PayrollResponse.model_validate(p) for p in payrolls],
        total=len(payrolls),
    )


@router.get("/suggestion", response_model=PayrollSuggestionResponse)
async def get_suggestion(service: Service, company_id: CompanyId) -> PayrollSuggestionResponse:
    """Suggest the period of the next payroll run."""
    suggestion = await service.get_suggestion(company_id)
    return PayrollSuggestionResponse.model_validate(suggestion)


@router.post(
    "",
    response_model=PayrollResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_payroll(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payload: PayrollCreate,
) -> PayrollResponse:
    """Create a payroll run and generate items for every eligible contract."""
    payroll = await service.create_payroll(
        company_id,
        payload.period_start,
        payload.period_end,
        user_id=user_id,
        notes=payload.notes,
    )
    return PayrollResponse.model_validate(payroll)


@router.get("/{payroll_id}", response_model=PayrollResponse, responses=NOT_FOUND)
async def get_payroll(
    service: Service,
    company_id: CompanyId,
    payroll_id: Annotated[int, Path()],
) -> PayrollResponse:
    payroll = await _owned_payroll(service, company_id, payroll_id)
    return PayrollResponse.model_validate(payroll)


@router.get("/{payroll_id}/detail", response_model=PayrollDetailResponse, responses=NOT_FOUND)
async def get_payroll_detail(
    service: Service,
    company_id: CompanyId,
    payroll_id: Annotated[int, Path()],
) -> PayrollDetailResponse:
    """Get a run with its employees and items."""
    await _owned_payroll(service, company_id, payroll_id)
    payroll = await service.get_payroll_detail(payroll_id)
    return _detail(payroll)


@router.patch("/{payroll_id}", response_model=PayrollResponse, responses=EDIT_ERRORS)
async def update_payroll(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_id: Annotated[int, Path()],
    payload: PayrollUpdate,
) -> PayrollResponse:
    await _owned_payroll(service, company_id, payroll_id)
    payroll = await service.update_payroll(payroll_id, payload.notes, user_id=user_id)
    return PayrollResponse.model_validate(payroll)


@router.delete(
    "/{payroll_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=EDIT_ERRORS,
)
async def delete_payroll(
    service: Service,
    company_id: CompanyId,
    payroll_id: Annotated[int, Path()],
) -> None:
    """Delete the most recent run of the company, if still open."""
    await _owned_payroll(service, company_id, payroll_id)
    await service.delete_payroll(payroll_id)


# ============================================================================
# Recalculation
# ============================================================================


@router.post("/{payroll_id}/recalculate", response_model=PayrollResponse, responses=EDIT_ERRORS)
async def recalculate_payroll(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_id: Annotated[int, Path()],
) -> PayrollResponse:
    """Regenerate every employee against the current contracts. Idempotent."""
    await _owned_payroll(service, company_id, payroll_id)
    payroll = await service.recalculate_payroll(payroll_id, user_id=user_id)
    return PayrollResponse.model_validate(payroll)


@router.post(
    "/employees/{payroll_employee_id}/recalculate",
    response_model=PayrollEmployeeResponse,
    responses=EDIT_ERRORS,
)
async def recalculate_employee(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_employee_id: Annotated[int, Path()],
) -> PayrollEmployeeResponse:
    await _owned_employee(service, company_id, payroll_employee_id)
    pe = await service.recalculate_employee(payroll_employee_id, user_id=user_id)
    return PayrollEmployeeResponse.model_validate(pe)


@router.put(
    "/employees/{payroll_employee_id}/worked-units",
    response_model=PayrollEmployeeResponse,
    responses=EDIT_ERRORS,
)
async def update_worked_units(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_employee_id: Annotated[int, Path()],
    payload: WorkedUnitsUpdate,
) -> PayrollEmployeeResponse:
    """Set hours/days worked for an hourly or daily contract."""
    await _owned_employee(service, company_id, payroll_employee_id)
    pe = await service.update_worked_units(
        payroll_employee_id, payload.worked_units, user_id=user_id
    )
    return PayrollEmployeeResponse.model_validate(pe)


# ============================================================================
# Items
# ============================================================================


@router.post(
    "/employees/{payroll_employee_id}/items",
    response_model=PayrollItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses=EDIT_ERRORS,
)
async def add_item(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_employee_id: Annotated[int, Path()],
    payload: PayrollItemCreate,
) -> PayrollItemResponse:
    """Add a manual item to a payroll employee."""
    await _owned_employee(service, company_id, payroll_employee_id)
    item = await service.add_item(
        payroll_employee_id,
        description=payload.description,
        amount=payload.amount,
        item_type=payload.item_type,
        category=payload.category,
        has_taxes=payload.has_taxes,
        user_id=user_id,
    )
    return PayrollItemResponse.model_validate(item)


@router.patch("/items/{payroll_item_id}", response_model=PayrollItemResponse, responses=EDIT_ERRORS)
async def update_item(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_item_id: Annotated[int, Path()],
    payload: PayrollItemUpdate,
) -> PayrollItemResponse:
    item = await service.get_item(payroll_item_id)
    await _owned_employee(service, company_id, item.payroll_employee_id)
    item = await service.update_item(
        payroll_item_id,
        description=payload.description,
        amount=payload.amount,
        user_id=user_id,
    )
    return PayrollItemResponse.model_validate(item)


@router.delete("/items/{payroll_item_id}", response_model=PayrollItemResponse, responses=EDIT_ERRORS)
async def remove_item(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_item_id: Annotated[int, Path()],
) -> PayrollItemResponse:
    """Deactivate an item; it no longer counts towards totals."""
    item = await service.get_item(payroll_item_id)
    await _owned_employee(service, company_id, item.payroll_employee_id)
    item = await service.remove_item(payroll_item_id, user_id=user_id)
    return PayrollItemResponse.model_validate(item)


# ============================================================================
# Thirteenth salary / vacation
# ============================================================================


@router.post("/{payroll_id}/thirteenth", response_model=PayrollResponse, responses=EDIT_ERRORS)
async def apply_thirteenth_salary(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_id: Annotated[int, Path()],
    payload: ThirteenthSalaryRequest,
) -> PayrollResponse:
    await _owned_payroll(service, company_id, payroll_id)
    payroll = await service.apply_thirteenth_salary(
        payroll_id, payload.percentage, payload.tax_option, user_id=user_id
    )
    return PayrollResponse.model_validate(payroll)


@router.delete("/{payroll_id}/thirteenth", response_model=PayrollResponse, responses=EDIT_ERRORS)
async def remove_thirteenth_salary(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_id: Annotated[int, Path()],
) -> PayrollResponse:
    await _owned_payroll(service, company_id, payroll_id)
    payroll = await service.remove_thirteenth_salary(payroll_id, user_id=user_id)
    return PayrollResponse.model_validate(payroll)


@router.post(
    "/{payroll_id}/employees/{payroll_employee_id}/vacation",
    response_model=PayrollEmployeeResponse,
    responses=EDIT_ERRORS,
)
async def apply_vacation(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_id: Annotated[int, Path()],
    payroll_employee_id: Annotated[int, Path()],
    payload: VacationRequest,
) -> PayrollEmployeeResponse:
    await _owned_payroll(service, company_id, payroll_id)
    pe = await service.apply_vacation(
        payroll_id,
        payroll_employee_id,
        payload.vacation_days,
        start_date=payload.start_date,
        end_date=payload.end_date,
        notes=payload.notes,
        user_id=user_id,
    )
    return PayrollEmployeeResponse.model_validate(pe)


@router.delete(
    "/{payroll_id}/employees/{payroll_employee_id}/vacation",
    response_model=PayrollEmployeeResponse,
    responses=EDIT_ERRORS,
)
async def remove_vacation(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_id: Annotated[int, Path()],
    payroll_employee_id: Annotated[int, Path()],
) -> PayrollEmployeeResponse:
    await _owned_payroll(service, company_id, payroll_id)
    pe = await service.remove_vacation(payroll_id, payroll_employee_id, user_id=user_id)
    return PayrollEmployeeResponse.model_validate(pe)


# ============================================================================
# Close / reopen
# ============================================================================


@router.post("/{payroll_id}/close", response_model=PayrollResponse, responses=EDIT_ERRORS)
async def close_payroll(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_id: Annotated[int, Path()],
    payload: CloseRequest,
) -> PayrollResponse:
    """Close a run and book its net pay, INSS and FGTS transactions."""
    await _owned_payroll(service, company_id, payroll_id)
    payroll = await service.close_payroll(
        payroll_id,
        payload.payment_date,
        account_id=payload.account_id,
        inss_amount=payload.inss_amount,
        fgts_amount=payload.fgts_amount,
        user_id=user_id,
    )
    return PayrollResponse.model_validate(payroll)


@router.post("/{payroll_id}/reopen", response_model=PayrollResponse, responses=EDIT_ERRORS)
async def reopen_payroll(
    service: Service,
    company_id: CompanyId,
    user_id: UserId,
    payroll_id: Annotated[int, Path()],
) -> PayrollResponse:
    """Reopen a closed run, reversing the transactions booked at close."""
    await _owned_payroll(service, company_id, payroll_id)
    payroll = await service.reopen_payroll(payroll_id, user_id=user_id)
    return PayrollResponse.model_validate(payroll)

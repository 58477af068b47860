"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from erp_payroll.database import init_db
from erp_payroll.services import PayrollService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    One request is one unit of work: commit after the handler returns,
    roll back if it raises.
    """
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_company_id(
    x_company_id: Annotated[str | None, Header()] = None
) -> int:
    """Extract company ID from header."""
    if not x_company_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Company-ID header is required",
        )
    try:
        return int(x_company_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Company-ID format",
        )


async def get_user_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> int | None:
    """Extract the acting user ID, if any."""
    if not x_user_id:
        return None
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CompanyId = Annotated[int, Depends(get_company_id)]
UserId = Annotated[int | None, Depends(get_user_id)]


async def get_payroll_service(db: DbSession) -> PayrollService:
    return PayrollService(db)


Service = Annotated[PayrollService, Depends(get_payroll_service)]

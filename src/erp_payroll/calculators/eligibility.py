"""Selection of the contracts that take part in a payroll run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from erp_payroll.repositories import ContractRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from erp_payroll.models import Contract

logger = logging.getLogger(__name__)


class ContractEligibilityFilter:
    """Selects active, payroll-flagged contracts for a company.

    Output is ordered by employee display name (then contract id) so runs
    are generated deterministically. An empty result is not an error here;
    the orchestrator decides what an empty run means.
    """

    def __init__(self, session: AsyncSession, contracts: ContractRepository | None = None):
        self.contracts = contracts or ContractRepository(session)

    async def eligible_contracts(self, company_id: int) -> list[Contract]:
        contracts = await self.contracts.eligible_payroll_contracts(company_id)
        logger.debug("Company %s has %d eligible contract(s)", company_id, len(contracts))
        return contracts

    @staticmethod
    def is_eligible(contract: Contract) -> bool:
        return bool(contract.is_active and contract.is_payroll)

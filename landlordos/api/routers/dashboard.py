from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from landlordos.api.deps import CurrentContext, require_perm
from landlordos.domain.models import DashboardOverviewRead, FinancialSummaryRead
from landlordos.domain.permissions import PERM_DASHBOARD_READ
from landlordos.services.dashboard_service import DashboardService

router = APIRouter()


def get_dashboard_service() -> DashboardService:
    return DashboardService()


Service = Annotated[DashboardService, Depends(get_dashboard_service)]


@router.get(
    "/overview",
    response_model=DashboardOverviewRead,
    dependencies=[Depends(require_perm(PERM_DASHBOARD_READ))],
)
def overview(context: CurrentContext, service: Service) -> DashboardOverviewRead:
    return service.get_overview(context)


@router.get(
    "/financial-summary",
    response_model=FinancialSummaryRead,
    dependencies=[Depends(require_perm(PERM_DASHBOARD_READ))],
)
def financial_summary(
    context: CurrentContext,
    service: Service,
    year: Annotated[int | None, Query(ge=1900, le=9999)] = None,
) -> FinancialSummaryRead:
    return service.get_financial_summary(context, year)

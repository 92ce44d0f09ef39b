from __future__ import annotations

from fastapi import APIRouter, Depends

from src.clinicnet.domain.models.analytics import DashboardSummary
from src.clinicnet.domain.models.user import CallerIdentity
from src.clinicnet.infra.db.bootstrap import ServiceContainer
from src.clinicnet.security import get_api_key, get_current_user, get_services


router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(get_api_key)],
)


@router.get("/summary", response_model=DashboardSummary)
def dashboard_summary(
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> DashboardSummary:
    # Counts come from the caller's own partition only.
    return services.analytics.get_summary(caller)

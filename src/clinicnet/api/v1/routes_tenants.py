from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from src.clinicnet.domain.models.tenant import Tenant, TenantRegistration
from src.clinicnet.domain.models.user import PartitionUser
from src.clinicnet.infra.db.bootstrap import ServiceContainer
from src.clinicnet.security import get_services


# Public: registration happens before the hospital has any users or keys.
router = APIRouter(prefix="/tenants", tags=["tenants"])


class TenantRegisteredResponse(BaseModel):
    tenant: Tenant
    admin: PartitionUser


@router.post("/register", response_model=TenantRegisteredResponse, status_code=status.HTTP_201_CREATED)
def register_tenant(
    payload: TenantRegistration,
    services: ServiceContainer = Depends(get_services),
) -> TenantRegisteredResponse:
    tenant, admin = services.provisioner.provision(payload)
    return TenantRegisteredResponse(tenant=tenant, admin=admin)

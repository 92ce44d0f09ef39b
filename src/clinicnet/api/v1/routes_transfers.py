from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.clinicnet.config import settings
from src.clinicnet.domain.models.identity import GlobalIdentityEntry
from src.clinicnet.domain.models.transfer import TransferResult
from src.clinicnet.domain.models.user import CallerIdentity
from src.clinicnet.infra.db.bootstrap import ServiceContainer
from src.clinicnet.security import get_api_key, get_current_user, get_services


router = APIRouter(
    prefix="/transfers",
    tags=["transfers"],
    dependencies=[Depends(get_api_key)],
)


class IdentitySearchRequest(BaseModel):
    national_id: str


class IdentitySearchResponse(BaseModel):
    matches: List[GlobalIdentityEntry]


class ConsentRequest(BaseModel):
    global_entry_id: str


class ConsentRequestResponse(BaseModel):
    expires_at: datetime
    # Only populated when OTP_DEMO_ECHO is enabled.
    code: Optional[str] = None


class TransferRequest(BaseModel):
    global_entry_id: str
    code: str = Field(min_length=1)
    include_prescriptions: bool = False


@router.post("/search", response_model=IdentitySearchResponse)
def search_identity(
    payload: IdentitySearchRequest,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> IdentitySearchResponse:
    return IdentitySearchResponse(matches=services.transfers.search(caller, payload.national_id))


@router.post("/request-otp", response_model=ConsentRequestResponse)
def request_otp(
    payload: ConsentRequest,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> ConsentRequestResponse:
    issued = services.transfers.request_consent(caller, payload.global_entry_id)
    return ConsentRequestResponse(
        expires_at=issued.expires_at,
        code=issued.code if settings.otp_demo_echo else None,
    )


@router.post("/verify", response_model=TransferResult)
def verify_and_transfer(
    payload: TransferRequest,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> TransferResult:
    return services.transfers.transfer(
        caller,
        payload.global_entry_id,
        payload.code,
        include_prescriptions=payload.include_prescriptions,
    )

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from src.clinicnet.domain.models.patient import (
    CaseCreate,
    CaseRecord,
    PatientCreate,
    PatientDetail,
    PatientPage,
    PatientRecord,
    PatientSearch,
    PatientUpdate,
)
from src.clinicnet.domain.models.user import CallerIdentity
from src.clinicnet.infra.db.bootstrap import ServiceContainer
from src.clinicnet.security import get_api_key, get_current_user, get_services


router = APIRouter(
    prefix="/patients",
    tags=["patients"],
    dependencies=[Depends(get_api_key)],
)


@router.post("", response_model=PatientRecord, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PatientRecord:
    return services.patients.create_patient(caller, payload)


@router.get("", response_model=PatientPage)
def list_patients(
    national_id: Optional[str] = None,
    phone: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PatientPage:
    filters = PatientSearch(national_id=national_id, phone=phone, search=search, page=page, page_size=page_size)
    return services.patients.list_patients(caller, filters)


@router.get("/{patient_id}", response_model=PatientDetail)
def get_patient(
    patient_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PatientDetail:
    return services.patients.get_patient_detail(caller, patient_id)


@router.put("/{patient_id}", response_model=PatientRecord)
def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PatientRecord:
    return services.patients.update_patient(caller, patient_id, payload)


@router.post("/{patient_id}/cases", response_model=CaseRecord, status_code=status.HTTP_201_CREATED)
def add_case(
    patient_id: str,
    payload: CaseCreate,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> CaseRecord:
    return services.patients.add_case(caller, patient_id, payload)

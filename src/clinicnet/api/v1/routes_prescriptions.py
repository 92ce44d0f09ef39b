from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from src.clinicnet.domain.models.prescription import (
    MedicineLine,
    PrescriptionCreate,
    PrescriptionItem,
    PrescriptionRecord,
)
from src.clinicnet.domain.models.user import CallerIdentity
from src.clinicnet.infra.db.bootstrap import ServiceContainer
from src.clinicnet.security import get_api_key, get_current_user, get_services


router = APIRouter(
    prefix="/prescriptions",
    tags=["prescriptions"],
    dependencies=[Depends(get_api_key)],
)


class PrescriptionItemsUpdate(BaseModel):
    medicines: List[MedicineLine]


class PrescriptionListResponse(BaseModel):
    prescriptions: List[PrescriptionRecord]


class PrescriptionItemsResponse(BaseModel):
    items: List[PrescriptionItem]


@router.post("", response_model=PrescriptionRecord, status_code=status.HTTP_201_CREATED)
def create_prescription(
    payload: PrescriptionCreate,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PrescriptionRecord:
    return services.prescriptions.create_prescription(caller, payload)


@router.get("/patient/{patient_id}", response_model=PrescriptionListResponse)
def list_patient_prescriptions(
    patient_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PrescriptionListResponse:
    return PrescriptionListResponse(prescriptions=services.prescriptions.list_for_patient(caller, patient_id))


@router.put("/{prescription_id}", response_model=PrescriptionItemsResponse)
def replace_prescription_items(
    prescription_id: str,
    payload: PrescriptionItemsUpdate,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PrescriptionItemsResponse:
    items = services.prescriptions.replace_items(caller, prescription_id, payload.medicines)
    return PrescriptionItemsResponse(items=items)


@router.delete("/{prescription_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_prescription(
    prescription_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> None:
    services.prescriptions.delete_prescription(caller, prescription_id)

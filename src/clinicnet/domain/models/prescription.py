from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from src.clinicnet.timeutils import as_utc


class PrescriptionItem(BaseModel):
    id: str
    prescription_id: str
    medicine_name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    instructions: Optional[str] = None


class PrescriptionRecord(BaseModel):
    """Prescription header inside a partition.

    ``doctor_id`` references a global user and may belong to another tenant
    when the prescription arrived through a transfer.
    """

    id: str
    patient_id: str
    doctor_id: Optional[str] = None
    doctor_name: Optional[str] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    items: List[PrescriptionItem] = Field(default_factory=list)

    normalize_created_at = field_validator("created_at")(as_utc)


class MedicineLine(BaseModel):
    name: str = Field(min_length=1)
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    instructions: Optional[str] = None


class PrescriptionCreate(BaseModel):
    patient_id: str
    medicines: List[MedicineLine]
    diagnosis: Optional[str] = None
    notes: Optional[str] = None

from __future__ import annotations

import re
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from src.clinicnet.domain.models.prescription import PrescriptionRecord
from src.clinicnet.errors import ValidationError
from src.clinicnet.timeutils import as_utc


NATIONAL_ID_PATTERN = re.compile(r"^\d{12}$")

# Fields copied verbatim when a record is transferred to another partition.
# Department and patient type are local to the hospital that assigned them.
DEMOGRAPHIC_FIELDS = (
    "national_id",
    "full_name",
    "phone",
    "email",
    "date_of_birth",
    "gender",
    "blood_group",
    "address",
    "emergency_contact",
)


def ensure_national_id(value: Optional[str]) -> str:
    """Return ``value`` if it is a 12-digit national id, else raise ValidationError."""

    if value is None or not NATIONAL_ID_PATTERN.fullmatch(value):
        raise ValidationError("National id must be exactly 12 digits")
    return value


class PatientRecord(BaseModel):
    """A patient row inside one tenant partition.

    ``id`` is local to the partition. The same person may have independent
    records in several partitions, linked only through the identity index.
    """

    id: str
    national_id: str
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    patient_type: Optional[str] = None
    department: Optional[str] = None
    created_at: datetime

    normalize_created_at = field_validator("created_at")(as_utc)


class PatientCreate(BaseModel):
    national_id: str = Field(pattern=r"^\d{12}$")
    full_name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    patient_type: Optional[str] = None
    department: Optional[str] = None


class PatientUpdate(BaseModel):
    """Partial update; ``None`` leaves the stored value unchanged."""

    national_id: Optional[str] = Field(default=None, pattern=r"^\d{12}$")
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    patient_type: Optional[str] = None
    department: Optional[str] = None


class CaseRecord(BaseModel):
    id: str
    patient_id: str
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    normalize_created_at = field_validator("created_at")(as_utc)


class CaseCreate(BaseModel):
    diagnosis: str = Field(min_length=1)
    notes: Optional[str] = None


class PatientSearch(BaseModel):
    national_id: Optional[str] = None
    phone: Optional[str] = None
    search: Optional[str] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=200)


class PatientPage(BaseModel):
    patients: List[PatientRecord]
    page: int
    page_size: int


class PatientDetail(BaseModel):
    """Everything the owning hospital sees on a patient's page."""

    patient: PatientRecord
    cases: List[CaseRecord]
    prescriptions: List[PrescriptionRecord]

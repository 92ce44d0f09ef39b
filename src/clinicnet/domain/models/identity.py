from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class GlobalIdentityEntry(BaseModel):
    """Cross-partition pointer to one partition-local patient record.

    Only the cached display fields are exposed here; clinical data stays in
    the owning partition until a consent token authorizes a transfer.
    """

    id: str
    national_id: str
    partition_name: str
    local_patient_id: str
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime


class DisplayFields(BaseModel):
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None

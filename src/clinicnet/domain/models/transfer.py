from __future__ import annotations

from pydantic import BaseModel


class TransferResult(BaseModel):
    new_patient_id: str
    destination_partition: str
    source_partition: str
    cases_copied: int
    prescriptions_copied: int
    items_copied: int

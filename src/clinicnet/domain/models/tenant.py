from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class Tenant(BaseModel):
    """A hospital onboarded onto the platform.

    ``partition_name`` is assigned once by the provisioner and never changes;
    callers still resolve it through the directory on every request.
    """

    id: str
    name: str
    address: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    license_number: str
    partition_name: str
    template_version: int
    created_at: datetime


class TenantRegistration(BaseModel):
    name: str = Field(min_length=1)
    address: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    license_number: str = Field(min_length=1)
    admin_name: str = Field(min_length=1)
    admin_email: EmailStr
    admin_phone: Optional[str] = None
    admin_password: str = Field(min_length=8)

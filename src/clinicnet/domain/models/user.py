from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    RECEPTIONIST = "RECEPTIONIST"
    PHARMACIST = "PHARMACIST"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class PartitionUser(BaseModel):
    id: str
    tenant_id: str
    full_name: str
    email: EmailStr
    role: UserRole
    phone: Optional[str] = None
    department: Optional[str] = None
    specialization: Optional[str] = None
    shift: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE
    created_at: datetime


class CallerIdentity(BaseModel):
    """The already-authenticated caller of a tenant-scoped operation."""

    user_id: str
    role: UserRole
    tenant_id: str
    department: Optional[str] = None


class UserCreate(BaseModel):
    full_name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)
    role: UserRole
    phone: Optional[str] = None
    department: Optional[str] = None
    specialization: Optional[str] = None
    shift: Optional[str] = None


class UserUpdate(BaseModel):
    """Profile fields an admin may edit; role and password are not editable here."""

    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    specialization: Optional[str] = None
    shift: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8)

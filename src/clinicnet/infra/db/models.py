from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.clinicnet.domain.models.consent import ConsentToken
from src.clinicnet.domain.models.identity import GlobalIdentityEntry
from src.clinicnet.domain.models.tenant import Tenant
from src.clinicnet.domain.models.user import PartitionUser, UserRole, UserStatus
from src.clinicnet.timeutils import as_utc


class Base(DeclarativeBase):
    pass


# Global tables. Partition-local tables are not mapped here: they are created
# per tenant from the partition template and reached through the gateway.


class TenantORM(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    license_number: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    partition_name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    template_version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_domain(self) -> Tenant:
        return Tenant(
            id=self.id,
            name=self.name,
            address=self.address,
            contact_email=self.contact_email,
            contact_phone=self.contact_phone,
            license_number=self.license_number,
            partition_name=self.partition_name,
            template_version=self.template_version,
            created_at=as_utc(self.created_at),
        )


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    credential_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    specialization: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    shift: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=UserStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_domain(self) -> PartitionUser:
        return PartitionUser(
            id=self.id,
            tenant_id=self.tenant_id,
            full_name=self.full_name,
            email=self.email,
            role=UserRole(self.role),
            phone=self.phone,
            department=self.department,
            specialization=self.specialization,
            shift=self.shift,
            status=UserStatus(self.status),
            created_at=as_utc(self.created_at),
        )


class GlobalPatientORM(Base):
    """Identity index row: one per partition-local patient record."""

    __tablename__ = "global_patients"
    __table_args__ = (UniqueConstraint("partition_name", "local_patient_id", name="uq_global_patients_partition_local"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    national_id: Mapped[str] = mapped_column(String(12), nullable=False, index=True)
    partition_name: Mapped[str] = mapped_column(String(64), nullable=False)
    local_patient_id: Mapped[str] = mapped_column(String(36), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_domain(self) -> GlobalIdentityEntry:
        return GlobalIdentityEntry(
            id=self.id,
            national_id=self.national_id,
            partition_name=self.partition_name,
            local_patient_id=self.local_patient_id,
            full_name=self.full_name,
            phone=self.phone,
            email=self.email,
            created_at=as_utc(self.created_at),
        )


class ConsentTokenORM(Base):
    __tablename__ = "patient_import_otps"

    # Integer key so "most recently issued" has a total order even when two
    # tokens share an issued_at timestamp.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    global_patient_id: Mapped[str] = mapped_column(ForeignKey("global_patients.id"), nullable=False, index=True)
    otp_code: Mapped[str] = mapped_column(String(6), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_domain(self) -> ConsentToken:
        return ConsentToken(
            id=self.id,
            global_entry_id=self.global_patient_id,
            code=self.otp_code,
            issued_at=as_utc(self.issued_at),
            expires_at=as_utc(self.expires_at),
            used=self.used,
            used_at=as_utc(self.used_at) if self.used_at is not None else None,
        )


class PasswordResetTokenORM(Base):
    __tablename__ = "password_reset_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    # SHA-256 of the emailed token; the token itself is never stored.
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

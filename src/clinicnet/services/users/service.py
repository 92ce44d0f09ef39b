from __future__ import annotations

from typing import List
from uuid import uuid4

from sqlalchemy import select

from src.clinicnet.credentials import hash_password
from src.clinicnet.domain.models.user import CallerIdentity, PartitionUser, UserCreate, UserRole, UserStatus, UserUpdate
from src.clinicnet.errors import AuthenticationRequired, DuplicateEmail, NotFoundError, ValidationError
from src.clinicnet.infra.db.models import UserORM
from src.clinicnet.infra.db.session import Database
from src.clinicnet.services.access import ensure_role
from src.clinicnet.services.audit.service import audit_service
from src.clinicnet.timeutils import utcnow

MANAGE_ROLES = frozenset({UserRole.ADMIN})

# Admins are only created by tenant registration.
STAFF_ROLES = frozenset({UserRole.DOCTOR, UserRole.NURSE, UserRole.RECEPTIONIST, UserRole.PHARMACIST})


class UserService:
    """Staff accounts of a hospital, managed by its admins.

    Users live in the global table (emails are unique across all tenants) but
    every query here is scoped to the caller's tenant.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def resolve_caller(self, user_id: str) -> CallerIdentity:
        """Turn an authenticated user id into the identity the services expect.

        Unknown and deactivated users are rejected.
        """

        with self._database.transaction("users.resolve_caller") as session:
            orm = session.get(UserORM, user_id)
            if orm is None or orm.status != UserStatus.ACTIVE.value:
                raise AuthenticationRequired("Unknown or inactive user")
            return CallerIdentity(
                user_id=orm.id,
                role=UserRole(orm.role),
                tenant_id=orm.tenant_id,
                department=orm.department,
            )

    def create_user(self, caller: CallerIdentity, payload: UserCreate) -> PartitionUser:
        ensure_role(caller, MANAGE_ROLES)
        if payload.role not in STAFF_ROLES:
            raise ValidationError(f"Cannot create users with role {payload.role.value}")

        with self._database.transaction("users.create") as session:
            taken = session.execute(select(UserORM.id).where(UserORM.email == payload.email)).first()
            if taken is not None:
                raise DuplicateEmail()

            orm = UserORM(
                id=str(uuid4()),
                tenant_id=caller.tenant_id,
                full_name=payload.full_name,
                email=payload.email,
                credential_hash=hash_password(payload.password),
                role=payload.role.value,
                phone=payload.phone,
                department=payload.department,
                specialization=payload.specialization,
                shift=payload.shift,
                status=UserStatus.ACTIVE.value,
                created_at=utcnow(),
            )
            session.add(orm)
            session.flush()
            user = orm.to_domain()

        audit_service.log_event(
            action="create_user",
            resource_type="user",
            resource_id=user.id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={"role": user.role.value},
        )
        return user

    def list_users(self, caller: CallerIdentity) -> List[PartitionUser]:
        ensure_role(caller, MANAGE_ROLES)

        with self._database.transaction("users.list") as session:
            rows = session.execute(
                select(UserORM).where(UserORM.tenant_id == caller.tenant_id).order_by(UserORM.created_at.desc())
            ).scalars().all()
            return [row.to_domain() for row in rows]

    def set_status(self, caller: CallerIdentity, user_id: str, status: str) -> PartitionUser:
        ensure_role(caller, MANAGE_ROLES)
        try:
            new_status = UserStatus(status)
        except ValueError as exc:
            raise ValidationError("Invalid status") from exc

        with self._database.transaction("users.set_status") as session:
            orm = self._get_in_tenant(session, caller, user_id)
            orm.status = new_status.value
            session.flush()
            user = orm.to_domain()

        audit_service.log_event(
            action="set_user_status",
            resource_type="user",
            resource_id=user_id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={"status": new_status.value},
        )
        return user

    def update_user(self, caller: CallerIdentity, user_id: str, payload: UserUpdate) -> PartitionUser:
        ensure_role(caller, MANAGE_ROLES)
        changes = payload.model_dump(exclude_none=True)

        with self._database.transaction("users.update") as session:
            orm = self._get_in_tenant(session, caller, user_id)
            if "email" in changes:
                taken = session.execute(
                    select(UserORM.id).where(UserORM.email == changes["email"], UserORM.id != user_id)
                ).first()
                if taken is not None:
                    raise DuplicateEmail("Email already in use by another user")
            for field, value in changes.items():
                setattr(orm, field, value)
            session.flush()
            user = orm.to_domain()

        audit_service.log_event(
            action="update_user",
            resource_type="user",
            resource_id=user_id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={"fields": sorted(changes)},
        )
        return user

    def _get_in_tenant(self, session, caller: CallerIdentity, user_id: str) -> UserORM:
        orm = session.get(UserORM, user_id)
        # Users of other tenants are reported as missing, not forbidden.
        if orm is None or orm.tenant_id != caller.tenant_id:
            raise NotFoundError("User not found in this hospital")
        return orm

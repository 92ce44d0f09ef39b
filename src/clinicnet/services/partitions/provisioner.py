from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.clinicnet.credentials import hash_password
from src.clinicnet.domain.models.tenant import Tenant, TenantRegistration
from src.clinicnet.domain.models.user import PartitionUser, UserRole, UserStatus
from src.clinicnet.errors import DuplicateAdminEmail, DuplicateLicense
from src.clinicnet.infra.db.models import TenantORM, UserORM
from src.clinicnet.infra.db.session import Database
from src.clinicnet.services.audit.service import audit_service
from src.clinicnet.services.notifications.service import Notifier, notify_best_effort
from src.clinicnet.services.partitions.gateway import TenantQueryGateway, tenant_query_gateway
from src.clinicnet.services.partitions.service import PartitionName, generate_partition_name
from src.clinicnet.timeutils import utcnow

logger = logging.getLogger("provisioner")

TEMPLATE_PATH = Path(__file__).resolve().parents[2] / "infra" / "db" / "templates" / "tenant_schema.sql"
_VERSION_LINE = re.compile(r"^--\s*template-version:\s*(\d+)\s*$")


@dataclass(frozen=True)
class PartitionTemplate:
    """Parsed partition template: a version and its statements, in order."""

    version: int
    statements: Tuple[str, ...]


def parse_template(source: str) -> PartitionTemplate:
    lines = source.splitlines()
    match = _VERSION_LINE.match(lines[0].strip()) if lines else None
    if match is None:
        raise ValueError("Partition template must start with '-- template-version: <n>'")

    body = "\n".join(line for line in lines if not line.lstrip().startswith("--"))
    statements = tuple(chunk.strip() for chunk in body.split(";") if chunk.strip())
    if not statements:
        raise ValueError("Partition template has no statements")
    return PartitionTemplate(version=int(match.group(1)), statements=statements)


def load_template(path: Path = TEMPLATE_PATH) -> PartitionTemplate:
    return parse_template(path.read_text(encoding="utf-8"))


class PartitionProvisioner:
    """Onboards a hospital: partition, tenant row and first admin user.

    Everything after the pre-flight checks happens in one transaction. On
    PostgreSQL that includes ``CREATE SCHEMA`` (DDL is transactional there),
    so a failure at any step leaves neither a tenant nor an orphaned
    partition behind.
    """

    def __init__(
        self,
        database: Database,
        notifier: Notifier,
        *,
        gateway: TenantQueryGateway = tenant_query_gateway,
        template: Optional[PartitionTemplate] = None,
        name_factory: Callable[[], PartitionName] = generate_partition_name,
    ) -> None:
        self._database = database
        self._notifier = notifier
        self._gateway = gateway
        self._template = template or load_template()
        self._name_factory = name_factory

    @property
    def template(self) -> PartitionTemplate:
        return self._template

    def provision(self, registration: TenantRegistration) -> Tuple[Tenant, PartitionUser]:
        with self._database.transaction("provisioner.provision") as session:
            self._preflight(session, registration)
            partition = self._unused_partition_name(session)

            self._gateway.create_namespace(session, partition)
            for statement in self._template.statements:
                self._gateway.execute(session, partition, statement)

            now = utcnow()
            tenant = TenantORM(
                id=str(uuid4()),
                name=registration.name,
                address=registration.address,
                contact_email=registration.contact_email,
                contact_phone=registration.contact_phone,
                license_number=registration.license_number,
                partition_name=partition.value,
                template_version=self._template.version,
                created_at=now,
            )
            session.add(tenant)
            session.flush()

            admin = UserORM(
                id=str(uuid4()),
                tenant_id=tenant.id,
                full_name=registration.admin_name,
                email=registration.admin_email,
                credential_hash=hash_password(registration.admin_password),
                role=UserRole.ADMIN.value,
                phone=registration.admin_phone,
                status=UserStatus.ACTIVE.value,
                created_at=now,
            )
            session.add(admin)
            session.flush()

            result = (tenant.to_domain(), admin.to_domain())

        created_tenant, created_admin = result
        logger.info(
            "Provisioned tenant %s in partition %s (template v%s)",
            created_tenant.id,
            created_tenant.partition_name,
            created_tenant.template_version,
        )
        audit_service.log_event(
            action="register_tenant",
            resource_type="tenant",
            resource_id=created_tenant.id,
            subject=created_admin.id,
            tenant_id=created_tenant.id,
            extra={"partition": created_tenant.partition_name, "template_version": created_tenant.template_version},
        )
        notify_best_effort(
            self._notifier,
            created_admin.email,
            f"Welcome to ClinicNet, {created_tenant.name}",
            f"Hello {created_admin.full_name}, your hospital account is ready. "
            f"Sign in with {created_admin.email} to start adding staff and patients.",
        )
        return created_tenant, created_admin

    def _preflight(self, session: Session, registration: TenantRegistration) -> None:
        license_taken = session.execute(
            select(TenantORM.id).where(TenantORM.license_number == registration.license_number)
        ).first()
        if license_taken is not None:
            raise DuplicateLicense()

        email_taken = session.execute(
            select(UserORM.id).where(UserORM.email == registration.admin_email)
        ).first()
        if email_taken is not None:
            raise DuplicateAdminEmail()

    def _unused_partition_name(self, session: Session, attempts: int = 5) -> PartitionName:
        for _ in range(attempts):
            candidate = self._name_factory()
            taken = session.execute(
                select(TenantORM.id).where(TenantORM.partition_name == candidate.value)
            ).first()
            if taken is None:
                return candidate
        raise RuntimeError(f"No unused partition name after {attempts} attempts")

from __future__ import annotations

from typing import List
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.clinicnet.domain.models.identity import DisplayFields, GlobalIdentityEntry
from src.clinicnet.domain.models.patient import ensure_national_id
from src.clinicnet.errors import NotFoundError
from src.clinicnet.infra.db.models import GlobalPatientORM
from src.clinicnet.infra.db.session import Database
from src.clinicnet.services.partitions.service import PartitionName
from src.clinicnet.timeutils import utcnow


class IdentityIndex:
    """Global, partition-spanning index of patient identities.

    The only structure readable across partitions without a consent token.
    Reads run in their own transaction; writes always join the caller's
    transaction so an index row never outlives the patient row it points at.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def find_by_national_id(self, national_id: str) -> List[GlobalIdentityEntry]:
        ensure_national_id(national_id)
        with self._database.transaction("identity.find_by_national_id") as session:
            rows = session.execute(
                select(GlobalPatientORM)
                .where(GlobalPatientORM.national_id == national_id)
                .order_by(GlobalPatientORM.created_at)
            ).scalars().all()
            return [row.to_domain() for row in rows]

    def get_entry(self, session: Session, entry_id: str) -> GlobalIdentityEntry:
        orm = session.get(GlobalPatientORM, entry_id)
        if orm is None:
            raise NotFoundError("Global patient not found")
        return orm.to_domain()

    def upsert_entry(
        self,
        session: Session,
        *,
        national_id: str,
        partition: PartitionName,
        local_patient_id: str,
        display: DisplayFields,
    ) -> GlobalIdentityEntry:
        """Point the index at one partition-local record.

        Keyed on (partition, local record): repeating the call refreshes the
        cached display fields instead of adding a second row. A person with
        two records in one partition (possible after a transfer) has two
        entries.
        """

        ensure_national_id(national_id)
        existing = session.execute(
            select(GlobalPatientORM).where(
                GlobalPatientORM.partition_name == partition.value,
                GlobalPatientORM.local_patient_id == local_patient_id,
            )
        ).scalar_one_or_none()

        if existing is not None:
            existing.national_id = national_id
            existing.full_name = display.full_name
            existing.phone = display.phone
            existing.email = display.email
            session.flush()
            return existing.to_domain()

        orm = GlobalPatientORM(
            id=str(uuid4()),
            national_id=national_id,
            partition_name=partition.value,
            local_patient_id=local_patient_id,
            full_name=display.full_name,
            phone=display.phone,
            email=display.email,
            created_at=utcnow(),
        )
        session.add(orm)
        session.flush()
        return orm.to_domain()

from __future__ import annotations

from typing import List
from uuid import uuid4

from src.clinicnet.domain.models.prescription import (
    MedicineLine,
    PrescriptionCreate,
    PrescriptionItem,
    PrescriptionRecord,
)
from src.clinicnet.domain.models.user import CallerIdentity, UserRole
from src.clinicnet.errors import NotFoundError, ValidationError
from src.clinicnet.infra.db.session import Database
from src.clinicnet.infra.db.sql_partitions import SqlPartitionRepository, partition_repository
from src.clinicnet.services.access import ensure_role
from src.clinicnet.services.audit.service import audit_service
from src.clinicnet.services.partitions.service import PartitionDirectory, PartitionName, partition_directory
from src.clinicnet.timeutils import utcnow

PRESCRIBE_ROLES = frozenset({UserRole.DOCTOR, UserRole.ADMIN})
VIEW_ROLES = frozenset({UserRole.DOCTOR, UserRole.ADMIN, UserRole.NURSE, UserRole.PHARMACIST})
AMEND_ROLES = frozenset({UserRole.DOCTOR})


def _require_medicines(medicines: List[MedicineLine]) -> None:
    if not medicines:
        raise ValidationError("At least one medicine is required")


class PrescriptionService:
    def __init__(
        self,
        database: Database,
        *,
        directory: PartitionDirectory = partition_directory,
        repository: SqlPartitionRepository = partition_repository,
    ) -> None:
        self._database = database
        self._directory = directory
        self._repository = repository

    def create_prescription(self, caller: CallerIdentity, payload: PrescriptionCreate) -> PrescriptionRecord:
        """Create a prescription header and its items in one transaction."""

        ensure_role(caller, PRESCRIBE_ROLES)
        _require_medicines(payload.medicines)

        with self._database.transaction("prescriptions.create") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            if self._repository.get_patient(session, partition, payload.patient_id) is None:
                raise NotFoundError("Patient not found in this hospital")

            prescription = PrescriptionRecord(
                id=str(uuid4()),
                patient_id=payload.patient_id,
                doctor_id=caller.user_id,
                diagnosis=payload.diagnosis,
                notes=payload.notes,
                created_at=utcnow(),
            )
            self._repository.insert_prescription(session, partition, prescription)
            prescription.items = self._insert_items(session, partition, prescription.id, payload.medicines)

        audit_service.log_event(
            action="create_prescription",
            resource_type="prescription",
            resource_id=prescription.id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={"patient_id": payload.patient_id, "items": len(prescription.items)},
        )
        return prescription

    def list_for_patient(self, caller: CallerIdentity, patient_id: str) -> List[PrescriptionRecord]:
        ensure_role(caller, VIEW_ROLES)

        with self._database.transaction("prescriptions.list") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            return self._repository.list_prescriptions(session, partition, patient_id)

    def replace_items(
        self, caller: CallerIdentity, prescription_id: str, medicines: List[MedicineLine]
    ) -> List[PrescriptionItem]:
        """Swap the full medicine list of a prescription atomically."""

        ensure_role(caller, AMEND_ROLES)
        _require_medicines(medicines)

        with self._database.transaction("prescriptions.replace_items") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            if not self._repository.prescription_exists(session, partition, prescription_id):
                raise NotFoundError("Prescription not found in this hospital")
            self._repository.delete_items(session, partition, prescription_id)
            items = self._insert_items(session, partition, prescription_id, medicines)

        audit_service.log_event(
            action="update_prescription",
            resource_type="prescription",
            resource_id=prescription_id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={"items": len(items)},
        )
        return items

    def delete_prescription(self, caller: CallerIdentity, prescription_id: str) -> None:
        ensure_role(caller, AMEND_ROLES)

        with self._database.transaction("prescriptions.delete") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            if not self._repository.delete_prescription(session, partition, prescription_id):
                raise NotFoundError("Prescription not found in this hospital")

        audit_service.log_event(
            action="delete_prescription",
            resource_type="prescription",
            resource_id=prescription_id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
        )

    def _insert_items(self, session, partition: PartitionName, prescription_id: str, medicines: List[MedicineLine]) -> List[PrescriptionItem]:
        items = []
        for medicine in medicines:
            item = PrescriptionItem(
                id=str(uuid4()),
                prescription_id=prescription_id,
                medicine_name=medicine.name,
                dosage=medicine.dosage,
                frequency=medicine.frequency,
                duration=medicine.duration,
                instructions=medicine.instructions,
            )
            self._repository.insert_item(session, partition, item)
            items.append(item)
        return items

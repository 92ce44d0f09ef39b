from __future__ import annotations

from uuid import uuid4

from src.clinicnet.domain.models.identity import DisplayFields
from src.clinicnet.domain.models.patient import (
    CaseCreate,
    CaseRecord,
    PatientCreate,
    PatientDetail,
    PatientPage,
    PatientRecord,
    PatientSearch,
    PatientUpdate,
)
from src.clinicnet.domain.models.user import CallerIdentity, UserRole
from src.clinicnet.errors import DuplicateNationalId, NotFoundError
from src.clinicnet.infra.db.session import Database
from src.clinicnet.infra.db.sql_partitions import SqlPartitionRepository, partition_repository
from src.clinicnet.services.access import ensure_role
from src.clinicnet.services.audit.service import audit_service
from src.clinicnet.services.identity.service import IdentityIndex
from src.clinicnet.services.partitions.service import PartitionDirectory, partition_directory
from src.clinicnet.timeutils import utcnow

REGISTER_ROLES = frozenset({UserRole.DOCTOR, UserRole.ADMIN})
VIEW_ROLES = frozenset({UserRole.DOCTOR, UserRole.ADMIN, UserRole.NURSE, UserRole.RECEPTIONIST})
EDIT_ROLES = frozenset({UserRole.DOCTOR, UserRole.ADMIN, UserRole.RECEPTIONIST})
CASE_ROLES = frozenset({UserRole.DOCTOR, UserRole.ADMIN, UserRole.NURSE})


class PatientService:
    """Patient records inside the caller's own partition.

    Every method resolves the caller's partition afresh and does all of its
    reads and writes in one transaction.
    """

    def __init__(
        self,
        database: Database,
        identity_index: IdentityIndex,
        *,
        directory: PartitionDirectory = partition_directory,
        repository: SqlPartitionRepository = partition_repository,
    ) -> None:
        self._database = database
        self._identity_index = identity_index
        self._directory = directory
        self._repository = repository

    def create_patient(self, caller: CallerIdentity, payload: PatientCreate) -> PatientRecord:
        ensure_role(caller, REGISTER_ROLES)

        with self._database.transaction("patients.create") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            self._repository.lock_national_id(session, partition, payload.national_id)
            if self._repository.find_patient_id_by_national_id(session, partition, payload.national_id):
                raise DuplicateNationalId()

            patient = PatientRecord(id=str(uuid4()), created_at=utcnow(), **payload.model_dump())
            self._repository.insert_patient(session, partition, patient)
            self._identity_index.upsert_entry(
                session,
                national_id=patient.national_id,
                partition=partition,
                local_patient_id=patient.id,
                display=DisplayFields(full_name=patient.full_name, phone=patient.phone, email=patient.email),
            )

        audit_service.log_event(
            action="create_patient",
            resource_type="patient",
            resource_id=patient.id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
        )
        return patient

    def list_patients(self, caller: CallerIdentity, filters: PatientSearch) -> PatientPage:
        ensure_role(caller, VIEW_ROLES)

        # Doctors with a department only see that department's patients.
        department = caller.department if caller.role == UserRole.DOCTOR and caller.department else None
        with self._database.transaction("patients.list") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            patients = self._repository.list_patients(session, partition, filters, department=department)

        return PatientPage(patients=patients, page=filters.page, page_size=filters.page_size)

    def get_patient_detail(self, caller: CallerIdentity, patient_id: str) -> PatientDetail:
        ensure_role(caller, VIEW_ROLES)

        with self._database.transaction("patients.detail") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            patient = self._repository.get_patient(session, partition, patient_id)
            if patient is None:
                raise NotFoundError("Patient not found in this hospital")
            cases = self._repository.list_cases(session, partition, patient_id)
            prescriptions = self._repository.list_prescriptions(session, partition, patient_id)

        return PatientDetail(patient=patient, cases=cases, prescriptions=prescriptions)

    def update_patient(self, caller: CallerIdentity, patient_id: str, payload: PatientUpdate) -> PatientRecord:
        ensure_role(caller, EDIT_ROLES)
        changes = payload.model_dump(exclude_none=True)

        with self._database.transaction("patients.update") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            if "national_id" in changes:
                self._repository.lock_national_id(session, partition, changes["national_id"])
                if self._repository.find_patient_id_by_national_id(
                    session, partition, changes["national_id"], exclude_id=patient_id
                ):
                    raise DuplicateNationalId()

            if not self._repository.update_patient(session, partition, patient_id, changes):
                raise NotFoundError("Patient not found in this hospital")
            patient = self._repository.get_patient(session, partition, patient_id)

            # Keep the cross-tenant search results in step with the record.
            self._identity_index.upsert_entry(
                session,
                national_id=patient.national_id,
                partition=partition,
                local_patient_id=patient.id,
                display=DisplayFields(full_name=patient.full_name, phone=patient.phone, email=patient.email),
            )

        audit_service.log_event(
            action="update_patient",
            resource_type="patient",
            resource_id=patient_id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={"fields": sorted(changes)},
        )
        return patient

    def add_case(self, caller: CallerIdentity, patient_id: str, payload: CaseCreate) -> CaseRecord:
        ensure_role(caller, CASE_ROLES)

        with self._database.transaction("patients.add_case") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            if self._repository.get_patient(session, partition, patient_id) is None:
                raise NotFoundError("Patient not found in this hospital")
            case = CaseRecord(
                id=str(uuid4()),
                patient_id=patient_id,
                diagnosis=payload.diagnosis,
                notes=payload.notes,
                created_at=utcnow(),
            )
            self._repository.insert_case(session, partition, case)

        audit_service.log_event(
            action="create_case",
            resource_type="case",
            resource_id=case.id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={"patient_id": patient_id},
        )
        return case

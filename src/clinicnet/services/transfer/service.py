from __future__ import annotations

import logging
from typing import List, Optional
from uuid import uuid4

from src.clinicnet.config import settings
from src.clinicnet.domain.models.consent import IssuedToken
from src.clinicnet.domain.models.identity import DisplayFields, GlobalIdentityEntry
from src.clinicnet.domain.models.patient import DEMOGRAPHIC_FIELDS, CaseRecord, PatientRecord
from src.clinicnet.domain.models.prescription import PrescriptionItem, PrescriptionRecord
from src.clinicnet.domain.models.transfer import TransferResult
from src.clinicnet.domain.models.user import CallerIdentity, UserRole
from src.clinicnet.errors import (
    ClinicNetError,
    DestinationTenantUnresolvable,
    NotFoundError,
    SourceNotFound,
    TenantNotFound,
)
from src.clinicnet.infra.db.session import Database
from src.clinicnet.infra.db.sql_partitions import SqlPartitionRepository, partition_repository
from src.clinicnet.services.access import ensure_role
from src.clinicnet.services.audit.service import audit_service
from src.clinicnet.services.consent.service import ConsentTokenLedger
from src.clinicnet.services.identity.service import IdentityIndex
from src.clinicnet.services.partitions.service import PartitionDirectory, PartitionName, partition_directory
from src.clinicnet.timeutils import utcnow

logger = logging.getLogger("transfer")

TRANSFER_ROLES = frozenset({UserRole.DOCTOR, UserRole.ADMIN})

_ITEM_FIELDS = {"medicine_name", "dosage", "frequency", "duration", "instructions"}


class TransferEngine:
    """Copies a patient's record from its owning partition into the caller's.

    The whole copy is one transaction: consent token consumption, the new
    patient row, its cases, optional prescriptions with their items and the
    new identity index entry either all commit together or none of them is
    visible afterwards.
    """

    def __init__(
        self,
        database: Database,
        ledger: ConsentTokenLedger,
        identity_index: IdentityIndex,
        *,
        directory: PartitionDirectory = partition_directory,
        repository: SqlPartitionRepository = partition_repository,
        statement_timeout_ms: Optional[int] = None,
        lock_timeout_ms: Optional[int] = None,
    ) -> None:
        self._database = database
        self._ledger = ledger
        self._identity_index = identity_index
        self._directory = directory
        self._repository = repository
        self._statement_timeout_ms = statement_timeout_ms or settings.transfer_statement_timeout_ms
        self._lock_timeout_ms = lock_timeout_ms or settings.transfer_lock_timeout_ms

    def search(self, caller: CallerIdentity, national_id: str) -> List[GlobalIdentityEntry]:
        """Look a person up across every hospital by national id."""

        ensure_role(caller, TRANSFER_ROLES)
        return self._identity_index.find_by_national_id(national_id)

    def request_consent(self, caller: CallerIdentity, global_entry_id: str) -> IssuedToken:
        """Issue a consent code to the patient behind ``global_entry_id``."""

        ensure_role(caller, TRANSFER_ROLES)
        issued = self._ledger.issue(global_entry_id)
        audit_service.log_event(
            action="request_transfer_consent",
            resource_type="consent_token",
            resource_id=str(issued.token_id),
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={"global_entry_id": global_entry_id},
        )
        return issued

    def transfer(
        self,
        caller: CallerIdentity,
        global_entry_id: str,
        code: str,
        *,
        include_prescriptions: bool = False,
    ) -> TransferResult:
        ensure_role(caller, TRANSFER_ROLES)

        try:
            result = self._run(caller, global_entry_id, code, include_prescriptions)
        except ClinicNetError as exc:
            logger.info(
                "Transfer of entry %s into tenant %s failed: %s",
                global_entry_id,
                caller.tenant_id,
                exc.code,
            )
            raise

        logger.info(
            "Transferred entry %s from %s to %s as patient %s",
            global_entry_id,
            result.source_partition,
            result.destination_partition,
            result.new_patient_id,
        )
        audit_service.log_event(
            action="transfer_patient",
            resource_type="patient",
            resource_id=result.new_patient_id,
            subject=caller.user_id,
            tenant_id=caller.tenant_id,
            extra={
                "global_entry_id": global_entry_id,
                "source_partition": result.source_partition,
                "destination_partition": result.destination_partition,
                "cases": result.cases_copied,
                "prescriptions": result.prescriptions_copied,
                "items": result.items_copied,
            },
        )
        return result

    def _run(self, caller: CallerIdentity, global_entry_id: str, code: str, include_prescriptions: bool) -> TransferResult:
        repo = self._repository

        with self._database.transaction(
            "transfer.import_patient",
            statement_timeout_ms=self._statement_timeout_ms,
            lock_timeout_ms=self._lock_timeout_ms,
        ) as session:
            try:
                destination = self._directory.resolve_partition(session, caller.tenant_id)
            except TenantNotFound as exc:
                raise DestinationTenantUnresolvable() from exc

            self._ledger.validate_and_consume(session, global_entry_id, code)

            try:
                entry = self._identity_index.get_entry(session, global_entry_id)
            except NotFoundError as exc:
                raise SourceNotFound("Global patient not found") from exc

            source = PartitionName(entry.partition_name)

            patient = repo.get_patient(session, source, entry.local_patient_id)
            if patient is None:
                raise SourceNotFound()
            cases = repo.list_cases(session, source, patient.id)
            prescriptions = (
                repo.list_prescriptions(session, source, patient.id, with_items=True) if include_prescriptions else []
            )

            new_patient = PatientRecord(
                id=str(uuid4()),
                created_at=utcnow(),
                **patient.model_dump(include=set(DEMOGRAPHIC_FIELDS)),
            )
            repo.insert_patient(session, destination, new_patient)

            # Oldest first, so destination insert order follows the history.
            for case in reversed(cases):
                repo.insert_case(
                    session,
                    destination,
                    CaseRecord(
                        id=str(uuid4()),
                        patient_id=new_patient.id,
                        diagnosis=case.diagnosis,
                        notes=case.notes,
                        created_at=case.created_at,
                    ),
                )

            items_copied = 0
            for prescription in reversed(prescriptions):
                copied = PrescriptionRecord(
                    id=str(uuid4()),
                    patient_id=new_patient.id,
                    doctor_id=prescription.doctor_id,
                    diagnosis=prescription.diagnosis,
                    notes=prescription.notes,
                    created_at=prescription.created_at,
                )
                repo.insert_prescription(session, destination, copied)
                for item in prescription.items:
                    repo.insert_item(
                        session,
                        destination,
                        PrescriptionItem(
                            id=str(uuid4()),
                            prescription_id=copied.id,
                            **item.model_dump(include=_ITEM_FIELDS),
                        ),
                    )
                    items_copied += 1

            self._identity_index.upsert_entry(
                session,
                national_id=patient.national_id,
                partition=destination,
                local_patient_id=new_patient.id,
                display=DisplayFields(full_name=patient.full_name, phone=patient.phone, email=patient.email),
            )

            return TransferResult(
                new_patient_id=new_patient.id,
                destination_partition=destination.value,
                source_partition=source.value,
                cases_copied=len(cases),
                prescriptions_copied=len(prescriptions),
                items_copied=items_copied,
            )

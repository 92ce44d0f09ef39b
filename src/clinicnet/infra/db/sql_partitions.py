from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from src.clinicnet.domain.models.patient import CaseRecord, PatientRecord, PatientSearch
from src.clinicnet.domain.models.prescription import PrescriptionItem, PrescriptionRecord
from src.clinicnet.services.partitions.gateway import TenantQueryGateway, tenant_query_gateway
from src.clinicnet.services.partitions.service import PartitionName


_PATIENT_COLUMNS = (
    "id, national_id, full_name, phone, email, date_of_birth, gender, blood_group, "
    "address, emergency_contact, patient_type, department, created_at"
)

# Columns a partial update may touch. Anything else in an update dict is a
# programming error, not user input.
_UPDATABLE_PATIENT_COLUMNS = frozenset(
    {
        "national_id",
        "full_name",
        "phone",
        "email",
        "date_of_birth",
        "gender",
        "blood_group",
        "address",
        "emergency_contact",
        "patient_type",
        "department",
    }
)

_COUNTABLE_TABLES = frozenset({"patients", "cases", "prescriptions", "prescription_items"})


class SqlPartitionRepository:
    """Reads and writes the partition-local tables.

    Every method takes the caller's session and an already-resolved
    :class:`PartitionName`; nothing here opens or commits a transaction.
    """

    def __init__(self, gateway: TenantQueryGateway = tenant_query_gateway) -> None:
        self._gateway = gateway

    # Patients

    def insert_patient(self, session: Session, partition: PartitionName, patient: PatientRecord) -> None:
        self._gateway.execute(
            session,
            partition,
            f"INSERT INTO __SCHEMA__.patients ({_PATIENT_COLUMNS}) VALUES ("
            ":id, :national_id, :full_name, :phone, :email, :date_of_birth, :gender, :blood_group, "
            ":address, :emergency_contact, :patient_type, :department, :created_at)",
            patient.model_dump(),
        )

    def get_patient(self, session: Session, partition: PartitionName, patient_id: str) -> Optional[PatientRecord]:
        row = self._gateway.fetch_one(
            session,
            partition,
            f"SELECT {_PATIENT_COLUMNS} FROM __SCHEMA__.patients WHERE id = :id",
            {"id": patient_id},
        )
        return PatientRecord(**row) if row is not None else None

    def lock_national_id(self, session: Session, partition: PartitionName, national_id: str) -> None:
        # Serializes duplicate checks for the same national id within one partition.
        self._gateway.advisory_lock(session, partition, f"national_id:{national_id}")

    def find_patient_id_by_national_id(
        self,
        session: Session,
        partition: PartitionName,
        national_id: str,
        *,
        exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        template = "SELECT id FROM __SCHEMA__.patients WHERE national_id = :national_id"
        params: Dict[str, Any] = {"national_id": national_id}
        if exclude_id is not None:
            template += " AND id <> :exclude_id"
            params["exclude_id"] = exclude_id
        return self._gateway.scalar(session, partition, template, params)

    def list_patients(
        self,
        session: Session,
        partition: PartitionName,
        filters: PatientSearch,
        *,
        department: Optional[str] = None,
    ) -> List[PatientRecord]:
        clauses: List[str] = []
        params: Dict[str, Any] = {
            "limit": filters.page_size,
            "offset": (filters.page - 1) * filters.page_size,
        }
        if filters.national_id:
            clauses.append("national_id = :national_id")
            params["national_id"] = filters.national_id
        if filters.phone:
            clauses.append("phone = :phone")
            params["phone"] = filters.phone
        if filters.search:
            clauses.append("LOWER(full_name) LIKE :search")
            params["search"] = f"%{filters.search.lower()}%"
        if department:
            clauses.append("department = :department")
            params["department"] = department

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._gateway.fetch_all(
            session,
            partition,
            f"SELECT {_PATIENT_COLUMNS} FROM __SCHEMA__.patients {where} "
            "ORDER BY created_at DESC LIMIT :limit OFFSET :offset",
            params,
        )
        return [PatientRecord(**row) for row in rows]

    def update_patient(
        self,
        session: Session,
        partition: PartitionName,
        patient_id: str,
        changes: Dict[str, Any],
    ) -> bool:
        unknown = set(changes) - _UPDATABLE_PATIENT_COLUMNS
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        if not changes:
            return self.get_patient(session, partition, patient_id) is not None

        assignments = ", ".join(f"{column} = :{column}" for column in sorted(changes))
        result = self._gateway.execute(
            session,
            partition,
            f"UPDATE __SCHEMA__.patients SET {assignments} WHERE id = :patient_id",
            {**changes, "patient_id": patient_id},
        )
        return result.rowcount > 0

    # Cases

    def insert_case(self, session: Session, partition: PartitionName, case: CaseRecord) -> None:
        self._gateway.execute(
            session,
            partition,
            "INSERT INTO __SCHEMA__.cases (id, patient_id, diagnosis, notes, created_at) "
            "VALUES (:id, :patient_id, :diagnosis, :notes, :created_at)",
            case.model_dump(),
        )

    def list_cases(self, session: Session, partition: PartitionName, patient_id: str) -> List[CaseRecord]:
        rows = self._gateway.fetch_all(
            session,
            partition,
            "SELECT id, patient_id, diagnosis, notes, created_at FROM __SCHEMA__.cases "
            "WHERE patient_id = :patient_id ORDER BY created_at DESC",
            {"patient_id": patient_id},
        )
        return [CaseRecord(**row) for row in rows]

    # Prescriptions

    def insert_prescription(self, session: Session, partition: PartitionName, prescription: PrescriptionRecord) -> None:
        self._gateway.execute(
            session,
            partition,
            "INSERT INTO __SCHEMA__.prescriptions (id, patient_id, doctor_id, diagnosis, notes, created_at) "
            "VALUES (:id, :patient_id, :doctor_id, :diagnosis, :notes, :created_at)",
            prescription.model_dump(exclude={"items", "doctor_name"}),
        )

    def insert_item(self, session: Session, partition: PartitionName, item: PrescriptionItem) -> None:
        self._gateway.execute(
            session,
            partition,
            "INSERT INTO __SCHEMA__.prescription_items "
            "(id, prescription_id, medicine_name, dosage, frequency, duration, instructions) "
            "VALUES (:id, :prescription_id, :medicine_name, :dosage, :frequency, :duration, :instructions)",
            item.model_dump(),
        )

    def list_prescriptions(
        self,
        session: Session,
        partition: PartitionName,
        patient_id: str,
        *,
        with_items: bool = True,
    ) -> List[PrescriptionRecord]:
        # doctor_id points at the global users table, which sits outside the
        # partition; LEFT JOIN keeps prescriptions whose doctor is unknown here.
        rows = self._gateway.fetch_all(
            session,
            partition,
            "SELECT p.id, p.patient_id, p.doctor_id, p.diagnosis, p.notes, p.created_at, "
            "u.full_name AS doctor_name "
            "FROM __SCHEMA__.prescriptions p LEFT JOIN users u ON u.id = p.doctor_id "
            "WHERE p.patient_id = :patient_id ORDER BY p.created_at DESC",
            {"patient_id": patient_id},
        )
        prescriptions = [PrescriptionRecord(**row) for row in rows]
        if with_items:
            for prescription in prescriptions:
                prescription.items = self.list_items(session, partition, prescription.id)
        return prescriptions

    def list_items(self, session: Session, partition: PartitionName, prescription_id: str) -> List[PrescriptionItem]:
        rows = self._gateway.fetch_all(
            session,
            partition,
            "SELECT id, prescription_id, medicine_name, dosage, frequency, duration, instructions "
            "FROM __SCHEMA__.prescription_items WHERE prescription_id = :prescription_id ORDER BY medicine_name, id",
            {"prescription_id": prescription_id},
        )
        return [PrescriptionItem(**row) for row in rows]

    def prescription_exists(self, session: Session, partition: PartitionName, prescription_id: str) -> bool:
        found = self._gateway.scalar(
            session,
            partition,
            "SELECT id FROM __SCHEMA__.prescriptions WHERE id = :id",
            {"id": prescription_id},
        )
        return found is not None

    def delete_items(self, session: Session, partition: PartitionName, prescription_id: str) -> None:
        self._gateway.execute(
            session,
            partition,
            "DELETE FROM __SCHEMA__.prescription_items WHERE prescription_id = :prescription_id",
            {"prescription_id": prescription_id},
        )

    def delete_prescription(self, session: Session, partition: PartitionName, prescription_id: str) -> bool:
        self.delete_items(session, partition, prescription_id)
        result = self._gateway.execute(
            session,
            partition,
            "DELETE FROM __SCHEMA__.prescriptions WHERE id = :id",
            {"id": prescription_id},
        )
        return result.rowcount > 0

    # Counters

    def count(self, session: Session, partition: PartitionName, table: str, *, since: Optional[datetime] = None) -> int:
        if table not in _COUNTABLE_TABLES:
            raise ValueError(f"Unknown partition table: {table}")
        template = f"SELECT COUNT(*) FROM __SCHEMA__.{table}"
        params: Dict[str, Any] = {}
        if since is not None:
            template += " WHERE created_at >= :since"
            params["since"] = since
        return int(self._gateway.scalar(session, partition, template, params) or 0)


partition_repository = SqlPartitionRepository()

import pytest

from src.clinicnet.domain.models.identity import DisplayFields
from src.clinicnet.domain.models.patient import PatientCreate
from src.clinicnet.errors import NotFoundError, ValidationError
from src.clinicnet.services.partitions.service import PartitionName


NATIONAL_ID = "123456789012"


@pytest.mark.parametrize("bad", ["", "12345678901", "1234567890123", "12345678901a", " 23456789012"])
def test_search_requires_twelve_digits(services, bad):
    with pytest.raises(ValidationError):
        services.identity_index.find_by_national_id(bad)


def test_search_with_no_matches_is_empty(services):
    assert services.identity_index.find_by_national_id(NATIONAL_ID) == []


def test_creating_a_patient_indexes_it(services, hospital_a):
    patient = services.patients.create_patient(
        hospital_a.admin_caller,
        PatientCreate(national_id=NATIONAL_ID, full_name="Asha Rao", phone="9000000001"),
    )

    matches = services.identity_index.find_by_national_id(NATIONAL_ID)
    assert len(matches) == 1
    entry = matches[0]
    assert entry.partition_name == "tenant_a"
    assert entry.local_patient_id == patient.id
    assert entry.full_name == "Asha Rao"
    assert entry.phone == "9000000001"


def test_upsert_is_idempotent_per_partition_record(services, database, hospital_a):
    index = services.identity_index
    partition = PartitionName("tenant_a")

    with database.transaction("test") as session:
        first = index.upsert_entry(
            session,
            national_id=NATIONAL_ID,
            partition=partition,
            local_patient_id="local-1",
            display=DisplayFields(full_name="Asha Rao"),
        )
    with database.transaction("test") as session:
        second = index.upsert_entry(
            session,
            national_id=NATIONAL_ID,
            partition=partition,
            local_patient_id="local-1",
            display=DisplayFields(full_name="Asha R. Rao", phone="9000000002"),
        )

    assert first.id == second.id
    matches = index.find_by_national_id(NATIONAL_ID)
    assert len(matches) == 1
    assert matches[0].full_name == "Asha R. Rao"
    assert matches[0].phone == "9000000002"


def test_index_write_rolls_back_with_the_caller(services, database, hospital_a):
    with pytest.raises(RuntimeError):
        with database.transaction("test") as session:
            services.identity_index.upsert_entry(
                session,
                national_id=NATIONAL_ID,
                partition=PartitionName("tenant_a"),
                local_patient_id="local-1",
                display=DisplayFields(full_name="Asha Rao"),
            )
            raise RuntimeError("caller failed")

    assert services.identity_index.find_by_national_id(NATIONAL_ID) == []


def test_get_entry_unknown(services, database):
    with pytest.raises(NotFoundError):
        with database.transaction("test") as session:
            services.identity_index.get_entry(session, "missing")

from datetime import date

import pytest

from src.clinicnet.domain.models.patient import CaseCreate, PatientCreate, PatientSearch, PatientUpdate
from src.clinicnet.domain.models.user import UserRole
from src.clinicnet.errors import DuplicateNationalId, NotFoundError, PermissionDenied


def _create(services, caller, national_id, name, **extra):
    return services.patients.create_patient(caller, PatientCreate(national_id=national_id, full_name=name, **extra))


def test_create_and_read_back(services, hospital_a):
    caller = hospital_a.admin_caller
    patient = _create(services, caller, "111111111111", "Ravi Kumar", date_of_birth=date(1980, 5, 17), gender="M")

    detail = services.patients.get_patient_detail(caller, patient.id)
    assert detail.patient.full_name == "Ravi Kumar"
    assert detail.patient.date_of_birth == date(1980, 5, 17)
    assert detail.patient.created_at.tzinfo is not None
    assert detail.cases == []
    assert detail.prescriptions == []


def test_duplicate_national_id_is_per_hospital(services, hospital_a, hospital_b):
    _create(services, hospital_a.admin_caller, "111111111111", "Ravi Kumar")

    with pytest.raises(DuplicateNationalId):
        _create(services, hospital_a.admin_caller, "111111111111", "Someone Else")

    # Another hospital may hold its own record for the same person.
    _create(services, hospital_b.admin_caller, "111111111111", "Ravi Kumar")
    assert len(services.identity_index.find_by_national_id("111111111111")) == 2


def test_hospitals_cannot_see_each_others_patients(services, hospital_a, hospital_b):
    patient_a = _create(services, hospital_a.admin_caller, "111111111111", "Ravi Kumar")
    patient_b = _create(services, hospital_b.admin_caller, "222222222222", "Meera Iyer")

    listed_a = services.patients.list_patients(hospital_a.admin_caller, PatientSearch()).patients
    listed_b = services.patients.list_patients(hospital_b.admin_caller, PatientSearch()).patients
    assert [p.id for p in listed_a] == [patient_a.id]
    assert [p.id for p in listed_b] == [patient_b.id]

    with pytest.raises(NotFoundError):
        services.patients.get_patient_detail(hospital_b.admin_caller, patient_a.id)
    with pytest.raises(NotFoundError):
        services.patients.add_case(hospital_b.admin_caller, patient_a.id, CaseCreate(diagnosis="Flu"))


def test_search_filters_and_pagination(services, hospital_a):
    caller = hospital_a.admin_caller
    _create(services, caller, "111111111111", "Ravi Kumar", phone="9000000001")
    _create(services, caller, "222222222222", "Meera Iyer", phone="9000000002")
    _create(services, caller, "333333333333", "Ravindra Jadeja", phone="9000000003")

    by_name = services.patients.list_patients(caller, PatientSearch(search="ravi")).patients
    assert sorted(p.full_name for p in by_name) == ["Ravi Kumar", "Ravindra Jadeja"]

    by_phone = services.patients.list_patients(caller, PatientSearch(phone="9000000002")).patients
    assert [p.full_name for p in by_phone] == ["Meera Iyer"]

    by_id = services.patients.list_patients(caller, PatientSearch(national_id="333333333333")).patients
    assert [p.full_name for p in by_id] == ["Ravindra Jadeja"]

    page = services.patients.list_patients(caller, PatientSearch(page=2, page_size=2))
    assert page.page == 2 and len(page.patients) == 1


def test_doctors_only_see_their_department(services, hospital_a, make_staff):
    admin = hospital_a.admin_caller
    _create(services, admin, "111111111111", "Ravi Kumar", department="Cardiology")
    _create(services, admin, "222222222222", "Meera Iyer", department="Neurology")

    cardiologist = make_staff(hospital_a, UserRole.DOCTOR, department="Cardiology")
    generalist = make_staff(hospital_a, UserRole.DOCTOR)
    nurse = make_staff(hospital_a, UserRole.NURSE, department="Cardiology")

    assert [p.full_name for p in services.patients.list_patients(cardiologist, PatientSearch()).patients] == ["Ravi Kumar"]
    assert len(services.patients.list_patients(generalist, PatientSearch()).patients) == 2
    assert len(services.patients.list_patients(nurse, PatientSearch()).patients) == 2


def test_update_refreshes_identity_index(services, hospital_a):
    caller = hospital_a.admin_caller
    patient = _create(services, caller, "111111111111", "Ravi Kumar")

    updated = services.patients.update_patient(caller, patient.id, PatientUpdate(full_name="Ravi K. Kumar", phone="9111111111"))
    assert updated.full_name == "Ravi K. Kumar"
    assert updated.national_id == "111111111111"

    entry = services.identity_index.find_by_national_id("111111111111")[0]
    assert entry.full_name == "Ravi K. Kumar"
    assert entry.phone == "9111111111"


def test_update_rejects_national_id_of_another_patient(services, hospital_a):
    caller = hospital_a.admin_caller
    _create(services, caller, "111111111111", "Ravi Kumar")
    other = _create(services, caller, "222222222222", "Meera Iyer")

    with pytest.raises(DuplicateNationalId):
        services.patients.update_patient(caller, other.id, PatientUpdate(national_id="111111111111"))

    # Re-submitting its own national id is fine.
    services.patients.update_patient(caller, other.id, PatientUpdate(national_id="222222222222"))


def test_update_unknown_patient(services, hospital_a):
    with pytest.raises(NotFoundError):
        services.patients.update_patient(hospital_a.admin_caller, "missing", PatientUpdate(full_name="X"))


def test_cases_show_up_in_detail(services, hospital_a, make_staff):
    nurse = make_staff(hospital_a, UserRole.NURSE)
    patient = _create(services, hospital_a.admin_caller, "111111111111", "Ravi Kumar")

    case = services.patients.add_case(nurse, patient.id, CaseCreate(diagnosis="Fever", notes="3 days"))

    detail = services.patients.get_patient_detail(nurse, patient.id)
    assert [c.id for c in detail.cases] == [case.id]


def test_role_allow_lists(services, hospital_a, make_staff):
    pharmacist = make_staff(hospital_a, UserRole.PHARMACIST)
    receptionist = make_staff(hospital_a, UserRole.RECEPTIONIST)
    patient = _create(services, hospital_a.admin_caller, "111111111111", "Ravi Kumar")

    with pytest.raises(PermissionDenied):
        _create(services, receptionist, "222222222222", "Meera Iyer")
    with pytest.raises(PermissionDenied):
        services.patients.list_patients(pharmacist, PatientSearch())
    with pytest.raises(PermissionDenied):
        services.patients.add_case(receptionist, patient.id, CaseCreate(diagnosis="Flu"))

    # Receptionists may edit demographics.
    services.patients.update_patient(receptionist, patient.id, PatientUpdate(phone="9000000009"))

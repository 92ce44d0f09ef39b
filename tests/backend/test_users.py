import pytest

from src.clinicnet.domain.models.user import UserCreate, UserRole, UserStatus, UserUpdate
from src.clinicnet.errors import AuthenticationRequired, DuplicateEmail, NotFoundError, PermissionDenied, ValidationError


def _staff(role=UserRole.DOCTOR, email="dr.rao@a.example.com", **extra):
    return UserCreate(full_name="Dr Rao", email=email, password="s3cret-pass", role=role, **extra)


def test_admin_creates_and_lists_staff(services, hospital_a, hospital_b):
    created = services.users.create_user(hospital_a.admin_caller, _staff(department="Cardiology", shift="Night"))
    assert created.tenant_id == hospital_a.tenant.id
    assert created.status == UserStatus.ACTIVE
    assert created.department == "Cardiology"

    listed = services.users.list_users(hospital_a.admin_caller)
    assert {u.id for u in listed} == {created.id, hospital_a.admin.id}
    assert hospital_b.admin.id not in {u.id for u in listed}


def test_email_is_unique_across_hospitals(services, hospital_a, hospital_b):
    services.users.create_user(hospital_a.admin_caller, _staff())
    with pytest.raises(DuplicateEmail):
        services.users.create_user(hospital_b.admin_caller, _staff(role=UserRole.NURSE))


def test_admins_cannot_be_created_here(services, hospital_a):
    with pytest.raises(ValidationError):
        services.users.create_user(hospital_a.admin_caller, _staff(role=UserRole.ADMIN))


def test_only_admins_manage_users(services, hospital_a, make_staff):
    doctor = make_staff(hospital_a, UserRole.DOCTOR)
    with pytest.raises(PermissionDenied):
        services.users.create_user(doctor, _staff(email="other@a.example.com"))
    with pytest.raises(PermissionDenied):
        services.users.list_users(doctor)


def test_deactivated_users_can_no_longer_act(services, hospital_a):
    user = services.users.create_user(hospital_a.admin_caller, _staff())
    assert services.users.resolve_caller(user.id).role == UserRole.DOCTOR

    updated = services.users.set_status(hospital_a.admin_caller, user.id, "INACTIVE")
    assert updated.status == UserStatus.INACTIVE
    with pytest.raises(AuthenticationRequired):
        services.users.resolve_caller(user.id)

    services.users.set_status(hospital_a.admin_caller, user.id, "ACTIVE")
    assert services.users.resolve_caller(user.id).tenant_id == hospital_a.tenant.id


def test_invalid_status_and_unknown_user(services, hospital_a):
    user = services.users.create_user(hospital_a.admin_caller, _staff())
    with pytest.raises(ValidationError):
        services.users.set_status(hospital_a.admin_caller, user.id, "SUSPENDED")
    with pytest.raises(NotFoundError):
        services.users.set_status(hospital_a.admin_caller, "missing", "ACTIVE")
    with pytest.raises(AuthenticationRequired):
        services.users.resolve_caller("missing")


def test_admin_cannot_touch_users_of_another_hospital(services, hospital_a, hospital_b):
    user = services.users.create_user(hospital_a.admin_caller, _staff())
    with pytest.raises(NotFoundError):
        services.users.set_status(hospital_b.admin_caller, user.id, "INACTIVE")
    with pytest.raises(NotFoundError):
        services.users.update_user(hospital_b.admin_caller, user.id, UserUpdate(full_name="Hijacked"))


def test_profile_update_keeps_email_unique(services, hospital_a):
    first = services.users.create_user(hospital_a.admin_caller, _staff())
    second = services.users.create_user(hospital_a.admin_caller, _staff(role=UserRole.NURSE, email="nurse@a.example.com"))

    with pytest.raises(DuplicateEmail):
        services.users.update_user(hospital_a.admin_caller, second.id, UserUpdate(email="dr.rao@a.example.com"))

    updated = services.users.update_user(
        hospital_a.admin_caller, first.id, UserUpdate(specialization="Cardiology", email="dr.rao@a.example.com")
    )
    assert updated.specialization == "Cardiology"
    assert updated.role == UserRole.DOCTOR

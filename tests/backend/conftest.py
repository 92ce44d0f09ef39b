from dataclasses import dataclass
from datetime import datetime, timedelta
from itertools import count

import pytest
from httpx import ASGITransport, AsyncClient

from src.clinicnet.domain.models.tenant import Tenant, TenantRegistration
from src.clinicnet.domain.models.user import CallerIdentity, PartitionUser, UserCreate, UserRole
from src.clinicnet.infra.db.bootstrap import ServiceContainer, build_services
from src.clinicnet.infra.db.session import Database
from src.clinicnet.main import create_app
from src.clinicnet.services.partitions.service import PartitionName
from src.clinicnet.timeutils import utcnow


CONSENT_CODE = "482913"


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent = []

    def notify(self, address: str, subject: str, body: str) -> None:
        self.sent.append((address, subject, body))


@dataclass
class Hospital:
    tenant: Tenant
    admin: PartitionUser

    @property
    def admin_caller(self) -> CallerIdentity:
        return CallerIdentity(user_id=self.admin.id, role=UserRole.ADMIN, tenant_id=self.tenant.id)


def _partition_names():
    # Readable names for the first partitions of a test, generated ones after.
    for suffix in ("a", "b", "c"):
        yield PartitionName(f"tenant_{suffix}")
    for n in count():
        yield PartitionName(f"tenant_x{n}")


@pytest.fixture
def clock():
    return FrozenClock(utcnow())


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'clinicnet.db'}")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def services(database, clock, notifier) -> ServiceContainer:
    names = _partition_names()
    return build_services(
        database,
        notifier=notifier,
        clock=clock,
        code_factory=lambda: CONSENT_CODE,
        name_factory=lambda: next(names),
    )


def _registration(slug: str) -> TenantRegistration:
    return TenantRegistration(
        name=f"Hospital {slug.upper()}",
        address=f"{slug} street 1",
        contact_email=f"contact@{slug}.example.com",
        license_number=f"LIC-{slug.upper()}",
        admin_name=f"Admin {slug.upper()}",
        admin_email=f"admin@{slug}.example.com",
        admin_password="s3cret-pass",
    )


@pytest.fixture
def registration():
    return _registration


@pytest.fixture
def hospital_a(services) -> Hospital:
    tenant, admin = services.provisioner.provision(_registration("a"))
    return Hospital(tenant=tenant, admin=admin)


@pytest.fixture
def hospital_b(services, hospital_a) -> Hospital:
    # Depends on hospital_a so partition names are assigned in a fixed order.
    tenant, admin = services.provisioner.provision(_registration("b"))
    return Hospital(tenant=tenant, admin=admin)


@pytest.fixture
def make_staff(services):
    """Create a staff member in a hospital and return their caller identity."""

    counter = count()

    def _make(hospital: Hospital, role: UserRole = UserRole.DOCTOR, department=None) -> CallerIdentity:
        n = next(counter)
        user = services.users.create_user(
            hospital.admin_caller,
            UserCreate(
                full_name=f"{role.value.title()} {n}",
                email=f"{role.value.lower()}{n}@h-{hospital.tenant.id[:8]}.example.com",
                password="s3cret-pass",
                role=role,
                department=department,
            ),
        )
        return CallerIdentity(user_id=user.id, role=user.role, tenant_id=user.tenant_id, department=user.department)

    return _make


@pytest.fixture
async def client(services):
    app = create_app(services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

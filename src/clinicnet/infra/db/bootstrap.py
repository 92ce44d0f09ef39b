from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from src.clinicnet.config import Settings, settings as default_settings
from src.clinicnet.infra.db.session import Database
from src.clinicnet.services.analytics.service import AnalyticsService
from src.clinicnet.services.consent.service import ConsentTokenLedger, generate_code
from src.clinicnet.services.identity.service import IdentityIndex
from src.clinicnet.services.notifications.service import Notifier, build_notifier
from src.clinicnet.services.partitions.provisioner import PartitionProvisioner
from src.clinicnet.services.partitions.service import PartitionName, generate_partition_name
from src.clinicnet.services.patients.service import PatientService
from src.clinicnet.services.prescriptions.service import PrescriptionService
from src.clinicnet.services.transfer.service import TransferEngine
from src.clinicnet.services.users.password_reset import PasswordResetService, generate_reset_token
from src.clinicnet.services.users.service import UserService
from src.clinicnet.timeutils import utcnow


@dataclass
class ServiceContainer:
    """Every service of one application instance, sharing one Database."""

    database: Database
    notifier: Notifier
    identity_index: IdentityIndex
    ledger: ConsentTokenLedger
    transfers: TransferEngine
    provisioner: PartitionProvisioner
    patients: PatientService
    prescriptions: PrescriptionService
    users: UserService
    password_resets: PasswordResetService
    analytics: AnalyticsService


def build_services(
    database: Optional[Database] = None,
    *,
    config: Settings = default_settings,
    notifier: Optional[Notifier] = None,
    clock: Callable[[], datetime] = utcnow,
    code_factory: Callable[[], str] = generate_code,
    reset_token_factory: Callable[[], str] = generate_reset_token,
    name_factory: Callable[[], PartitionName] = generate_partition_name,
) -> ServiceContainer:
    """Wire the services together.

    Tests pass their own database, clock and factories; the application
    entrypoint relies on the defaults taken from settings.
    """

    if database is None:
        database = Database(config.database_url, echo=config.db_echo, pool_size=config.db_pool_size)
    notifier = notifier or build_notifier(config)

    identity_index = IdentityIndex(database)
    ledger = ConsentTokenLedger(
        database,
        notifier,
        ttl=timedelta(minutes=config.otp_ttl_minutes),
        clock=clock,
        code_factory=code_factory,
    )
    return ServiceContainer(
        database=database,
        notifier=notifier,
        identity_index=identity_index,
        ledger=ledger,
        transfers=TransferEngine(
            database,
            ledger,
            identity_index,
            statement_timeout_ms=config.transfer_statement_timeout_ms,
            lock_timeout_ms=config.transfer_lock_timeout_ms,
        ),
        provisioner=PartitionProvisioner(database, notifier, name_factory=name_factory),
        patients=PatientService(database, identity_index),
        prescriptions=PrescriptionService(database),
        users=UserService(database),
        password_resets=PasswordResetService(
            database,
            notifier,
            ttl=timedelta(minutes=config.password_reset_ttl_minutes),
            clock=clock,
            token_factory=reset_token_factory,
            base_url=config.frontend_base_url,
        ),
        analytics=AnalyticsService(database, clock=clock),
    )

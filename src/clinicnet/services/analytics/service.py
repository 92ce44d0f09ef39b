from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Callable

from src.clinicnet.domain.models.analytics import DashboardSummary
from src.clinicnet.domain.models.user import CallerIdentity, UserRole
from src.clinicnet.infra.db.session import Database
from src.clinicnet.infra.db.sql_partitions import SqlPartitionRepository, partition_repository
from src.clinicnet.services.access import ensure_role
from src.clinicnet.services.partitions.service import PartitionDirectory, partition_directory
from src.clinicnet.timeutils import utcnow

DASHBOARD_ROLES = frozenset({UserRole.ADMIN})


class AnalyticsService:
    """Simple per-tenant aggregates for the admin dashboard.

    Counts only, computed on demand from the caller's partition. "Today"
    is the current UTC calendar day.
    """

    def __init__(
        self,
        database: Database,
        *,
        directory: PartitionDirectory = partition_directory,
        repository: SqlPartitionRepository = partition_repository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._database = database
        self._directory = directory
        self._repository = repository
        self._clock = clock

    def get_summary(self, caller: CallerIdentity) -> DashboardSummary:
        ensure_role(caller, DASHBOARD_ROLES)
        start_of_day = datetime.combine(self._clock().astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)

        with self._database.transaction("analytics.summary") as session:
            partition = self._directory.resolve_partition(session, caller.tenant_id)
            count = self._repository.count
            return DashboardSummary(
                total_patients=count(session, partition, "patients"),
                today_registrations=count(session, partition, "patients", since=start_of_day),
                total_cases=count(session, partition, "cases"),
                total_prescriptions=count(session, partition, "prescriptions"),
            )

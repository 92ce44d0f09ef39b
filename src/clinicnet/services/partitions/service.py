from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.clinicnet.errors import InvalidPartitionName, TenantNotFound
from src.clinicnet.infra.db.models import TenantORM


PARTITION_PREFIX = "tenant_"
PARTITION_PATTERN = re.compile(r"^tenant_[a-z0-9]{1,32}$")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 10


@dataclass(frozen=True)
class PartitionName:
    """Validated name of one tenant's physical partition.

    Partition names end up interpolated into SQL (they cannot be bound like
    ordinary values), so the only way to obtain one is through this type,
    which refuses anything outside the generated-name format.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not PARTITION_PATTERN.match(self.value):
            raise InvalidPartitionName(f"Invalid partition name: {self.value!r}")

    def __str__(self) -> str:
        return self.value


def generate_partition_name() -> PartitionName:
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return PartitionName(PARTITION_PREFIX + suffix)


class PartitionDirectory:
    """Maps tenant ids to partitions.

    Stateless: every lookup reads the tenants table inside the caller's
    transaction so a re-provisioned tenant is picked up on the next request.
    """

    def resolve_partition(self, session: Session, tenant_id: str) -> PartitionName:
        partition = session.execute(
            select(TenantORM.partition_name).where(TenantORM.id == tenant_id)
        ).scalar_one_or_none()
        if partition is None:
            raise TenantNotFound(f"Tenant {tenant_id} not found")
        return PartitionName(partition)


partition_directory = PartitionDirectory()

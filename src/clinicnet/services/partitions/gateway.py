from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Mapping, Optional

from sqlalchemy import Date, DateTime, bindparam, text
from sqlalchemy.engine import Result
from sqlalchemy.orm import Session

from src.clinicnet.errors import InvalidPartitionName, ValidationError
from src.clinicnet.services.partitions.service import PARTITION_PATTERN, PartitionName


PLACEHOLDER = "__SCHEMA__"
_QUALIFIED_TABLE = re.compile(r"__SCHEMA__\.([A-Za-z_][A-Za-z0-9_]*)")


def _bind_type(value: Any):
    # datetime is a subclass of date, so it has to be checked first.
    if isinstance(value, datetime):
        return DateTime(timezone=True)
    if isinstance(value, date):
        return Date()
    return None


class TenantQueryGateway:
    """Executes partition statement templates for a resolved partition.

    Templates reference partition tables as ``__SCHEMA__.<table>``. On
    PostgreSQL the placeholder becomes a quoted schema qualifier; SQLite has
    no schemas, so there the partition becomes a table-name prefix
    (``"tenant_x_patients"``). Everything else is passed as bind parameters.
    """

    def render(self, template: str, partition: PartitionName, dialect_name: str) -> str:
        if not isinstance(partition, PartitionName):
            raise InvalidPartitionName("Partition must be a resolved PartitionName")
        name = partition.value
        # Re-checked here because this is the last stop before interpolation.
        if not PARTITION_PATTERN.match(name):
            raise InvalidPartitionName(f"Invalid partition name: {name!r}")

        if dialect_name == "postgresql":
            rendered = _QUALIFIED_TABLE.sub(lambda m: f'"{name}"."{m.group(1)}"', template)
        elif dialect_name == "sqlite":
            rendered = _QUALIFIED_TABLE.sub(lambda m: f'"{name}_{m.group(1)}"', template)
        else:
            raise ValueError(f"Unsupported database dialect for partitions: {dialect_name}")

        if PLACEHOLDER in rendered or rendered == template:
            raise ValidationError("Statement template must reference partition tables as __SCHEMA__.<table>")
        return rendered

    def execute(
        self,
        session: Session,
        partition: PartitionName,
        template: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Result:
        sql = self.render(template, partition, session.get_bind().dialect.name)
        statement = text(sql)
        params = dict(params or {})
        typed = [bindparam(key, type_=_bind_type(value)) for key, value in params.items() if _bind_type(value) is not None]
        if typed:
            statement = statement.bindparams(*typed)
        return session.execute(statement, params)

    def fetch_all(self, session: Session, partition: PartitionName, template: str, params=None) -> list[dict]:
        return [dict(row) for row in self.execute(session, partition, template, params).mappings().all()]

    def fetch_one(self, session: Session, partition: PartitionName, template: str, params=None) -> Optional[dict]:
        row = self.execute(session, partition, template, params).mappings().first()
        return dict(row) if row is not None else None

    def scalar(self, session: Session, partition: PartitionName, template: str, params=None) -> Any:
        return self.execute(session, partition, template, params).scalar()

    def create_namespace(self, session: Session, partition: PartitionName) -> None:
        """Create the physical namespace for ``partition``.

        A no-op on SQLite, where partition tables live side by side under a
        name prefix.
        """

        if not isinstance(partition, PartitionName):
            raise InvalidPartitionName("Partition must be a resolved PartitionName")
        if session.get_bind().dialect.name == "postgresql":
            session.execute(text(f'CREATE SCHEMA "{partition.value}"'))

    def advisory_lock(self, session: Session, partition: PartitionName, key: str) -> None:
        """Hold a lock on ``key`` within ``partition`` until the transaction ends.

        PostgreSQL only. SQLite writers already run one at a time under
        BEGIN IMMEDIATE.
        """

        if not isinstance(partition, PartitionName):
            raise InvalidPartitionName("Partition must be a resolved PartitionName")
        if session.get_bind().dialect.name == "postgresql":
            session.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"{partition.value}:{key}"},
            )


tenant_query_gateway = TenantQueryGateway()

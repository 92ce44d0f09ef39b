from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.clinicnet.errors import ConflictError, StorageError
from src.clinicnet.infra.db.models import Base

logger = logging.getLogger("storage")


SessionFactory = Callable[[], Session]


def _configure_sqlite(engine: Engine) -> None:
    """Make SQLite behave transactionally enough for the partition model.

    pysqlite normally opens transactions lazily and never around DDL, which
    would let a failed provisioning leave half a partition behind. Taking over
    BEGIN ourselves puts DDL and DML in the same transaction, and IMMEDIATE
    serializes writers the way row locks do on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # pragma: no cover - driver hook
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_database_engine(database_url: str, *, echo: bool = False, pool_size: Optional[int] = None) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, echo=echo, connect_args={"timeout": 30, "check_same_thread": False})
        _configure_sqlite(engine)
        return engine

    kwargs = {"echo": echo, "pool_pre_ping": True}
    if pool_size is not None:
        kwargs["pool_size"] = pool_size
    return create_engine(database_url, **kwargs)


class Database:
    """Engine, session factory and the transaction boundary for every unit of work.

    Each call to :meth:`transaction` checks one connection out of the pool
    and guarantees it goes back on every exit path: commit on success,
    rollback on a business-rule error or a storage failure.
    """

    def __init__(self, database_url: str, *, echo: bool = False, pool_size: Optional[int] = None) -> None:
        self.engine = create_database_engine(database_url, echo=echo, pool_size=pool_size)
        self._session_factory: SessionFactory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
            class_=Session,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        """Create the global tables if they do not exist.

        Partition tables are never created here; the provisioner owns them.
        """

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(
        self,
        operation: str,
        *,
        statement_timeout_ms: Optional[int] = None,
        lock_timeout_ms: Optional[int] = None,
    ) -> Iterator[Session]:
        """Run one unit of work inside a single database transaction.

        ``operation`` names the unit of work in logs. Business errors raised by
        the body propagate unchanged after rollback; SQLAlchemy failures are
        logged and re-raised as :class:`StorageError` (or
        :class:`ConflictError` for unique violations that slipped past
        pre-flight checks).
        """

        session = self._session_factory()
        try:
            with session.begin():
                if self.dialect_name == "postgresql":
                    if statement_timeout_ms:
                        session.execute(text(f"SET LOCAL statement_timeout = {int(statement_timeout_ms)}"))
                    if lock_timeout_ms:
                        session.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))
                yield session
        except IntegrityError as exc:
            logger.warning("Constraint violation during %s: %s", operation, exc.orig)
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            logger.exception("Storage failure during %s", operation)
            raise StorageError(operation) from exc
        finally:
            session.close()

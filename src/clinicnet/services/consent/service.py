from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from src.clinicnet.config import settings
from src.clinicnet.domain.models.consent import ConsentToken, IssuedToken
from src.clinicnet.errors import NotFoundError, TokenAlreadyUsed, TokenExpired, TokenMismatch, TokenNotFound
from src.clinicnet.infra.db.models import ConsentTokenORM, GlobalPatientORM
from src.clinicnet.infra.db.session import Database
from src.clinicnet.services.notifications.service import Notifier, notify_best_effort
from src.clinicnet.timeutils import utcnow

logger = logging.getLogger("consent")

Clock = Callable[[], datetime]
CodeFactory = Callable[[], str]


def generate_code() -> str:
    """Return a cryptographically random 6-digit code without a leading zero."""

    return str(100000 + secrets.randbelow(900000))


class ConsentTokenLedger:
    """Issues and consumes the one-time codes that authorize a transfer.

    Only the most recently issued token of an identity entry is ever
    validated; older ones are left as they are and simply stop mattering.
    """

    def __init__(
        self,
        database: Database,
        notifier: Notifier,
        *,
        ttl: Optional[timedelta] = None,
        clock: Clock = utcnow,
        code_factory: CodeFactory = generate_code,
    ) -> None:
        self._database = database
        self._notifier = notifier
        self._ttl = ttl if ttl is not None else timedelta(minutes=settings.otp_ttl_minutes)
        self._clock = clock
        self._code_factory = code_factory

    def issue(self, global_entry_id: str) -> IssuedToken:
        with self._database.transaction("consent.issue") as session:
            entry = session.get(GlobalPatientORM, global_entry_id)
            if entry is None:
                raise NotFoundError("Global patient not found")

            now = self._clock()
            orm = ConsentTokenORM(
                global_patient_id=entry.id,
                otp_code=self._code_factory(),
                issued_at=now,
                expires_at=now + self._ttl,
                used=False,
            )
            session.add(orm)
            session.flush()
            issued = IssuedToken(token_id=orm.id, code=orm.otp_code, expires_at=orm.expires_at)
            address = entry.email or entry.phone

        logger.info("Issued consent token %s for entry %s (expires %s)", issued.token_id, global_entry_id, issued.expires_at.isoformat())

        minutes = int(self._ttl.total_seconds() // 60)
        notify_best_effort(
            self._notifier,
            address,
            "Medical record import request",
            f"A hospital has requested a copy of your medical record. "
            f"Share this code with them only if you agree: {issued.code} (valid {minutes} minutes).",
        )
        return issued

    def latest_token(self, session: Session, global_entry_id: str) -> Optional[ConsentToken]:
        orm = session.execute(
            select(ConsentTokenORM)
            .where(ConsentTokenORM.global_patient_id == global_entry_id)
            .order_by(ConsentTokenORM.issued_at.desc(), ConsentTokenORM.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        return orm.to_domain() if orm is not None else None

    def validate_and_consume(self, session: Session, global_entry_id: str, supplied_code: str) -> ConsentToken:
        """Check the latest token and mark it used inside the caller's transaction.

        Nothing is committed here: the consumption becomes visible only if
        the enclosing transaction commits. The final step is a conditional
        update, so of several concurrent consumers exactly one wins and the
        others get TokenAlreadyUsed.
        """

        token = self.latest_token(session, global_entry_id)
        if token is None:
            raise TokenNotFound()
        if token.used:
            raise TokenAlreadyUsed()

        now = self._clock()
        if now > token.expires_at:
            raise TokenExpired()
        if not hmac.compare_digest(token.code.encode(), (supplied_code or "").encode()):
            raise TokenMismatch()

        result = session.execute(
            update(ConsentTokenORM)
            .where(ConsentTokenORM.id == token.id, ConsentTokenORM.used.is_(False))
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info("Consent token %s lost a concurrent consume", token.id)
            raise TokenAlreadyUsed()

        return token.model_copy(update={"used": True, "used_at": now})

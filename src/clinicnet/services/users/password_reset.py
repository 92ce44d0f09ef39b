from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from src.clinicnet.config import settings
from src.clinicnet.credentials import hash_password
from src.clinicnet.domain.models.user import PasswordResetConfirm, UserStatus
from src.clinicnet.errors import InvalidResetToken
from src.clinicnet.infra.db.models import PasswordResetTokenORM, UserORM
from src.clinicnet.infra.db.session import Database
from src.clinicnet.services.audit.service import audit_service
from src.clinicnet.services.notifications.service import Notifier, notify_best_effort
from src.clinicnet.timeutils import as_utc, utcnow

logger = logging.getLogger("users")

Clock = Callable[[], datetime]


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ResetTokenSnapshot:
    id: int
    user_id: str
    expires_at: datetime
    used: bool


class PasswordResetService:
    """Single-use password reset links.

    Only a digest of each token is stored. Consuming a token and replacing
    the password happen in one transaction, and the token is claimed with a
    conditional update so a link works exactly once.
    """

    def __init__(
        self,
        database: Database,
        notifier: Notifier,
        *,
        ttl: Optional[timedelta] = None,
        clock: Clock = utcnow,
        token_factory: Callable[[], str] = generate_reset_token,
        base_url: Optional[str] = None,
    ) -> None:
        self._database = database
        self._notifier = notifier
        self._ttl = ttl if ttl is not None else timedelta(minutes=settings.password_reset_ttl_minutes)
        self._clock = clock
        self._token_factory = token_factory
        self._base_url = (base_url if base_url is not None else settings.frontend_base_url).rstrip("/")

    def request_reset(self, email: str) -> None:
        """Email a reset link to ``email`` if an active user has it.

        Returns the same way whether or not the address is known.
        """

        with self._database.transaction("users.request_password_reset") as session:
            user = session.execute(select(UserORM).where(UserORM.email == email)).scalar_one_or_none()
            if user is None or user.status != UserStatus.ACTIVE.value:
                logger.info("Password reset requested for an unknown or inactive address")
                return

            token = self._token_factory()
            now = self._clock()
            session.add(
                PasswordResetTokenORM(
                    user_id=user.id,
                    token_hash=_digest(token),
                    created_at=now,
                    expires_at=now + self._ttl,
                    used=False,
                )
            )
            user_id = user.id

        notify_best_effort(
            self._notifier,
            email,
            "Reset your password",
            f"You requested a password reset. Open {self._base_url}/reset-password/{token} to choose a new "
            "password. If you did not request this, ignore this email.",
        )
        logger.info("Issued password reset token for user %s", user_id)

    def find_token(self, session: Session, token: str) -> Optional[ResetTokenSnapshot]:
        row = session.execute(
            select(PasswordResetTokenORM)
            .where(PasswordResetTokenORM.token_hash == _digest(token))
            .order_by(PasswordResetTokenORM.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        if row is None:
            return None
        return ResetTokenSnapshot(id=row.id, user_id=row.user_id, expires_at=as_utc(row.expires_at), used=row.used)

    def reset_password(self, payload: PasswordResetConfirm) -> None:
        with self._database.transaction("users.reset_password") as session:
            token = self.find_token(session, payload.token)
            now = self._clock()
            if token is None or token.used or now > token.expires_at:
                raise InvalidResetToken()
            token_id, user_id = token.id, token.user_id

            claimed = session.execute(
                update(PasswordResetTokenORM)
                .where(PasswordResetTokenORM.id == token_id, PasswordResetTokenORM.used.is_(False))
                .values(used=True, used_at=now)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                logger.info("Password reset token %s lost a concurrent consume", token_id)
                raise InvalidResetToken()

            session.execute(
                update(UserORM)
                .where(UserORM.id == user_id)
                .values(credential_hash=hash_password(payload.password))
                .execution_options(synchronize_session=False)
            )

        audit_service.log_event(
            action="reset_password",
            resource_type="user",
            resource_id=user_id,
            subject=user_id,
        )

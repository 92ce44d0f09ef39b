from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from src.clinicnet.config import Settings, settings as default_settings


logger = logging.getLogger("notifier")


class Notifier(Protocol):
    def notify(self, address: str, subject: str, body: str) -> None: ...


class LoggingNotifier:
    """Writes notifications to the log instead of delivering them.

    Default for development and demos: the operator reads OTPs and welcome
    messages from the service log.
    """

    def notify(self, address: str, subject: str, body: str) -> None:
        logger.info("Notification to %s | %s | %s", address, subject, body)


class ResendEmailNotifier:
    """Delivers notifications through the Resend email HTTP API.

    Only email addresses are deliverable; anything else (a bare phone number)
    is skipped with a warning.
    """

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        api_url: str,
        timeout_seconds: float,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._api_url = api_url
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def notify(self, address: str, subject: str, body: str) -> None:
        if "@" not in address:
            logger.warning("Skipping email notification: %r is not an email address", address)
            return

        response = self._client.post(
            self._api_url,
            json={"from": self._sender, "to": [address], "subject": subject, "html": body},
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        response.raise_for_status()
        logger.info("Email notification accepted by provider (status=%s)", response.status_code)


def notify_best_effort(notifier: Notifier, address: Optional[str], subject: str, body: str) -> bool:
    """Send a notification without letting a delivery failure escape.

    Returns whether the notifier accepted the message. Callers have already
    committed the operation that triggered the notification.
    """

    if not address:
        logger.warning("No contact address for notification %r; skipped", subject)
        return False
    try:
        notifier.notify(address, subject, body)
    except Exception:
        logger.exception("Notification %r failed", subject)
        return False
    return True


def build_notifier(config: Settings = default_settings) -> Notifier:
    if config.notifier_backend == "resend":
        if not config.resend_api_key:
            logger.warning("NOTIFIER_BACKEND=resend but RESEND_API_KEY is not set; falling back to log notifier")
            return LoggingNotifier()
        return ResendEmailNotifier(
            api_key=config.resend_api_key,
            sender=config.email_from,
            api_url=config.resend_api_url,
            timeout_seconds=config.notifier_timeout_seconds,
        )
    return LoggingNotifier()

import json
import logging

import httpx

from src.clinicnet.config import Settings
from src.clinicnet.services.audit.service import audit_service
from src.clinicnet.services.notifications.service import (
    LoggingNotifier,
    ResendEmailNotifier,
    build_notifier,
    notify_best_effort,
)
from src.clinicnet.tenancy import set_current_tenant


def _resend(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ResendEmailNotifier(
        api_key="re_test",
        sender="noreply@clinicnet.example.com",
        api_url="https://api.resend.test/emails",
        timeout_seconds=1.0,
        client=client,
    )


def test_resend_notifier_posts_email():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "email-1"})

    _resend(handler).notify("asha@patients.example.com", "Code", "Your code is 482913")

    assert len(seen) == 1
    assert seen[0].headers["Authorization"] == "Bearer re_test"
    body = json.loads(seen[0].content)
    assert body["to"] == ["asha@patients.example.com"]
    assert body["from"] == "noreply@clinicnet.example.com"


def test_resend_notifier_skips_phone_numbers():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    _resend(handler).notify("9000000001", "Code", "Your code is 482913")


def test_best_effort_swallows_provider_errors():
    notifier = _resend(lambda request: httpx.Response(500))
    assert notify_best_effort(notifier, "asha@patients.example.com", "Code", "body") is False
    assert notify_best_effort(notifier, None, "Code", "body") is False
    assert notify_best_effort(LoggingNotifier(), "9000000001", "Code", "body") is True


def test_build_notifier_falls_back_to_logging_without_api_key():
    assert isinstance(build_notifier(Settings(notifier_backend="log")), LoggingNotifier)
    assert isinstance(build_notifier(Settings(notifier_backend="resend", resend_api_key=None)), LoggingNotifier)
    assert isinstance(build_notifier(Settings(notifier_backend="resend", resend_api_key="re_x")), ResendEmailNotifier)


def test_audit_events_are_json_with_request_tenant(caplog):
    set_current_tenant("tenant-123")
    try:
        with caplog.at_level(logging.INFO, logger="audit"):
            audit_service.log_event(action="create_patient", resource_type="patient", resource_id="p-1", subject="u-1")
    finally:
        set_current_tenant(None)

    event = json.loads(caplog.records[-1].getMessage())
    assert event["action"] == "create_patient"
    assert event["tenant_id"] == "tenant-123"
    assert event["subject"] == "u-1"

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from src.clinicnet.tenancy import get_current_tenant
from src.clinicnet.timeutils import utcnow

logger = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """One line of the audit trail.

    Carries ids, partition names, counts and flags. Patient names, national
    ids and consent codes never go in here.
    """

    timestamp: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    tenant_id: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        subject: Optional[str],
        resource_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write one audit event as a JSON line on the ``audit`` logger.

        ``subject`` is the acting user id. ``tenant_id`` falls back to the
        tenant of the request in flight.
        """

        event = AuditEvent(
            timestamp=utcnow().isoformat(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            subject=subject,
            tenant_id=tenant_id or get_current_tenant(),
            extra=extra,
        )
        # Datetimes and enums in ``extra`` are written as strings.
        logger.info(json.dumps(asdict(event), default=str))


audit_service = AuditService()

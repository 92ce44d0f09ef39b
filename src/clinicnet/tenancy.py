from __future__ import annotations

from contextvars import ContextVar
from typing import Optional


# Context variable storing the tenant of the authenticated caller for the
# in-flight request. Only the tenant id lives here; partition names are
# resolved through the directory inside each unit of work.
_current_tenant: ContextVar[Optional[str]] = ContextVar("current_tenant", default=None)


def get_current_tenant() -> Optional[str]:
    """Return the current tenant identifier, if a caller has been resolved.

    In HTTP requests this is set by the security layer once the caller's user
    record is loaded. In non-request contexts (direct service calls in tests,
    tenant registration) it is ``None``.
    """

    return _current_tenant.get()


def set_current_tenant(tenant_id: Optional[str]) -> None:
    _current_tenant.set(tenant_id)

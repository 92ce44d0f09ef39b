from __future__ import annotations

import hmac
from typing import FrozenSet, Optional

from fastapi import Depends, Header, Request, Security
from fastapi.security import APIKeyHeader
from starlette.concurrency import run_in_threadpool

from src.clinicnet.config import settings
from src.clinicnet.domain.models.user import CallerIdentity
from src.clinicnet.errors import AuthenticationRequired
from src.clinicnet.infra.db.bootstrap import ServiceContainer
from src.clinicnet.tenancy import set_current_tenant

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def configured_api_keys(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return frozenset()
    return frozenset(key.strip() for key in raw.split(",") if key.strip())


async def get_api_key(api_key: Optional[str] = Security(_api_key_header)) -> Optional[str]:
    """Gate the hospital-facing routers behind a shared X-API-Key.

    Off unless ENABLE_API_AUTH is set. With auth on and no API_KEYS
    configured every request is refused.
    """

    if not settings.enable_api_auth:
        return None

    supplied = (api_key or "").encode()
    if not any(hmac.compare_digest(supplied, key.encode()) for key in configured_api_keys(settings.api_keys)):
        raise AuthenticationRequired("Invalid or missing API key")
    return api_key


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    api_key: Optional[str] = Depends(get_api_key),
    services: ServiceContainer = Depends(get_services),
) -> CallerIdentity:
    """Resolve the caller forwarded by the identity provider in X-User-ID.

    The user is loaded from the database on every request so a deactivated
    account loses access immediately. The caller's tenant is installed in
    the tenancy context for the rest of the request.
    """

    if not x_user_id:
        raise AuthenticationRequired("Missing X-User-ID header")

    caller = await run_in_threadpool(services.users.resolve_caller, x_user_id)
    set_current_tenant(caller.tenant_id)
    return caller

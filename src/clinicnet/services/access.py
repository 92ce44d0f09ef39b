from __future__ import annotations

from typing import Iterable

from src.clinicnet.domain.models.user import CallerIdentity, UserRole
from src.clinicnet.errors import PermissionDenied


def ensure_role(caller: CallerIdentity, allowed: Iterable[UserRole]) -> None:
    """Raise PermissionDenied unless the caller's role is in ``allowed``."""

    if caller.role not in set(allowed):
        raise PermissionDenied(f"Role {caller.role.value} is not allowed to perform this action")

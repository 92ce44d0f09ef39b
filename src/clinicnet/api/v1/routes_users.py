from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from src.clinicnet.domain.models.user import CallerIdentity, PartitionUser, UserCreate, UserUpdate
from src.clinicnet.infra.db.bootstrap import ServiceContainer
from src.clinicnet.security import get_api_key, get_current_user, get_services


router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(get_api_key)],
)


class UserStatusUpdate(BaseModel):
    # Validated by the service so an unknown value maps to the common error envelope.
    status: str


class UserListResponse(BaseModel):
    users: List[PartitionUser]


@router.post("", response_model=PartitionUser, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PartitionUser:
    return services.users.create_user(caller, payload)


@router.get("", response_model=UserListResponse)
def list_users(
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> UserListResponse:
    return UserListResponse(users=services.users.list_users(caller))


@router.patch("/{user_id}/status", response_model=PartitionUser)
def set_user_status(
    user_id: str,
    payload: UserStatusUpdate,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PartitionUser:
    return services.users.set_status(caller, user_id, payload.status)


@router.put("/{user_id}", response_model=PartitionUser)
def update_user(
    user_id: str,
    payload: UserUpdate,
    caller: CallerIdentity = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> PartitionUser:
    return services.users.update_user(caller, user_id, payload)

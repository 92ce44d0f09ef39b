from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.clinicnet.domain.models.user import PasswordResetConfirm, PasswordResetRequest
from src.clinicnet.infra.db.bootstrap import ServiceContainer
from src.clinicnet.security import get_services


# Public: the caller has lost their password.
router = APIRouter(prefix="/auth", tags=["auth"])


class MessageResponse(BaseModel):
    message: str


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: PasswordResetRequest,
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    services.password_resets.request_reset(payload.email)
    return MessageResponse(message="If that email exists, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: PasswordResetConfirm,
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    services.password_resets.reset_password(payload)
    return MessageResponse(message="Password reset successfully")

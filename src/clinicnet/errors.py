from __future__ import annotations

from fastapi import status


class ClinicNetError(Exception):
    """Base class for business-rule and storage failures.

    Each subclass carries the HTTP status it maps to and a stable machine
    code, so the API layer can translate any of them with one handler.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# Validation


class ValidationError(ClinicNetError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"
    default_message = "Invalid input"


class InvalidPartitionName(ValidationError):
    code = "invalid_partition"
    default_message = "Partition name does not match the generated-name format"


# Authorization


class AuthenticationRequired(ClinicNetError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "authentication_required"
    default_message = "Authentication required"


class PermissionDenied(ClinicNetError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"
    default_message = "Permission denied"


# Not found


class NotFoundError(ClinicNetError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class TenantNotFound(NotFoundError):
    code = "tenant_not_found"
    default_message = "Tenant not found"


class DestinationTenantUnresolvable(TenantNotFound):
    code = "destination_tenant_unresolvable"
    default_message = "Destination tenant could not be resolved"


class SourceNotFound(NotFoundError):
    code = "source_not_found"
    default_message = "Source patient not found"


# Conflicts


class ConflictError(ClinicNetError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflicting record already exists"


class DuplicateNationalId(ConflictError):
    code = "duplicate_national_id"
    default_message = "National id already exists for another patient in this hospital"


class DuplicateLicense(ConflictError):
    code = "duplicate_license"
    default_message = "License number already registered"


class DuplicateAdminEmail(ConflictError):
    code = "duplicate_admin_email"
    default_message = "Admin email already registered"


class DuplicateEmail(ConflictError):
    code = "duplicate_email"
    default_message = "User with this email already exists"


# Consent tokens


class TokenError(ClinicNetError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "token_error"
    default_message = "Consent token rejected"


class TokenNotFound(TokenError):
    code = "token_not_found"
    default_message = "No OTP found for this patient"


class TokenAlreadyUsed(TokenError):
    code = "token_already_used"
    default_message = "OTP already used"


class TokenExpired(TokenError):
    code = "token_expired"
    default_message = "OTP expired"


class TokenMismatch(TokenError):
    code = "token_mismatch"
    default_message = "Invalid OTP"


class InvalidResetToken(ClinicNetError):
    # One answer for unknown, used and expired tokens.
    code = "invalid_reset_token"
    default_message = "Invalid or expired token"


# Storage


class StorageError(ClinicNetError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "storage_failure"
    default_message = "Storage failure"

    def __init__(self, operation: str, message: str | None = None) -> None:
        self.operation = operation
        super().__init__(message or f"Storage failure during {operation}")

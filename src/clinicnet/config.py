from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    # Database used for the global tables and every tenant partition.
    # PostgreSQL (postgresql+psycopg://...) in deployments; the SQLite default
    # is for local development only.
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./clinicnet.db")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "10"))
    db_echo: bool = os.getenv("DB_ECHO", "false").lower() == "true"

    # Consent tokens (import OTPs).
    otp_ttl_minutes: int = int(os.getenv("OTP_TTL_MINUTES", "10"))
    # When true the issued code is echoed back in the API response. Demo
    # deployments only.
    otp_demo_echo: bool = os.getenv("OTP_DEMO_ECHO", "false").lower() == "true"

    # Password reset links.
    password_reset_ttl_minutes: int = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "60"))
    frontend_base_url: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")

    # Upper bounds for the transfer transaction (PostgreSQL only).
    transfer_statement_timeout_ms: int = int(os.getenv("TRANSFER_STATEMENT_TIMEOUT_MS", "15000"))
    transfer_lock_timeout_ms: int = int(os.getenv("TRANSFER_LOCK_TIMEOUT_MS", "5000"))

    # Outbound notifications: "log" (default) or "resend".
    notifier_backend: str = os.getenv("NOTIFIER_BACKEND", "log")
    resend_api_key: Optional[str] = os.getenv("RESEND_API_KEY")
    resend_api_url: str = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    email_from: str = os.getenv("EMAIL_FROM", "onboarding@resend.dev")
    notifier_timeout_seconds: float = float(os.getenv("NOTIFIER_TIMEOUT_SECONDS", "5.0"))

    # Basic API authentication configuration.
    # When ENABLE_API_AUTH=true, every endpoint except health and tenant
    # registration requires a valid API key.
    enable_api_auth: bool = os.getenv("ENABLE_API_AUTH", "false").lower() == "true"
    # Comma-separated list of allowed API keys when auth is enabled.
    api_keys: Optional[str] = os.getenv("API_KEYS")

    # CORS configuration: comma-separated origins. Default is "*" which is
    # acceptable for local development but should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()

from functools import lru_cache
import logging
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.logger import setup_logger, init_sentry

# Longest OTP/PIN the request schemas accept
MAX_CODE_LENGTH = 12

# Secrets that must never reach production with their shipped value
_INSECURE_DEFAULTS: dict[str, str] = {
    "JWT_SECRET_KEY": "another_supersecret_key",
    "ADMIN_PASSWORD": "admin_password_change_in_production",
    "BREVO_API_KEY": "your_brevo_api_key",
}


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, production, test
    API_DOMAIN: str = "http://localhost:8000"
    APP_NAME: str = "BlueRock Asset Management"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = """
Back office API for the BlueRock Asset Management investment platform.

## Key Capabilities

| Area | Description |
|------|-------------|
| **Authentication** | Registration, password login with optional email two-factor, password reset and account details. |
| **One-Time Codes** | Issuance, resend throttling and verification of numeric codes for login, withdrawals, profile updates and email verification. |
| **Clients** | Client records with balances and pending withdrawal totals. |
| **Transactions** | Deposits, withdrawals, fees and other ledger entries. |
| **Withdrawals** | PIN-gated withdrawal requests with an admin review workflow. |

## Authentication

Most endpoints require a **Bearer JWT** obtained via `/auth/login` or `/auth/register`.
Sensitive account changes additionally require a freshly verified `profile_update` code.
"""
    DEBUG: bool = False
    FRONTEND_URL: str = "http://localhost:3000"

    # CORS settings
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # JWT settings
    JWT_SECRET_KEY: str = _INSECURE_DEFAULTS["JWT_SECRET_KEY"]
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./bluerock.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"

    # Redis settings
    REDIS_URL: str = "redis://localhost:6379/0"

    # Rate limiting settings
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = "memory"
    RATE_LIMIT_DEFAULT_REQUESTS: int = 100
    RATE_LIMIT_DEFAULT_WINDOW: int = 60  # seconds
    RATE_LIMIT_OTP_REQUESTS: int = 10
    RATE_LIMIT_OTP_EMAIL_REQUESTS: int = 10
    RATE_LIMIT_OTP_EMAIL_WINDOW: int = 3600  # seconds
    RATE_LIMIT_AUTH_REQUESTS: int = 20

    # One-time code settings
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 5
    OTP_RESEND_THROTTLE_SECONDS: int = 60
    OTP_VERIFICATION_FRESHNESS_MINUTES: int = 30
    OTP_CONSUME_ON_AUTHORIZE: bool = False
    OTP_SWEEP_INTERVAL_MINUTES: int = 15

    # Withdrawal PIN settings
    PIN_LENGTH: int = 6
    PIN_EXPIRY_HOURS: int = 48

    # Withdrawal settings
    MIN_WITHDRAWAL_AMOUNT: float = 100.0
    MAX_WITHDRAWAL_AMOUNT: float = 50000.0
    WITHDRAWAL_FEE_PERCENTAGE: float = 1.5

    # Password reset settings
    PASSWORD_RESET_EXPIRY_MINUTES: int = 10

    # Brevo settings
    BREVO_API_KEY: str = _INSECURE_DEFAULTS["BREVO_API_KEY"]
    BREVO_BASE_URL: str = "https://api.brevo.com/v3"
    BREVO_SENDER_EMAIL: str = "noreply@bluerockasset.com"
    BREVO_SENDER_NAME: str = "BlueRock Asset Management"

    # Infrastructure flags
    ENABLE_SCHEDULER: bool = True

    # Sentry settings
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Admin bootstrap settings
    ADMIN_EMAIL: str = "admin@bluerockasset.com"
    ADMIN_PASSWORD: str = _INSECURE_DEFAULTS["ADMIN_PASSWORD"]

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        """Refuse to boot in production with any shipped default secret."""
        if self.ENVIRONMENT != "production":
            return self

        unchanged = [
            name
            for name, shipped in _INSECURE_DEFAULTS.items()
            if getattr(self, name) == shipped
        ]
        if unchanged:
            raise ValueError(
                "ENVIRONMENT is 'production' but these secrets still have their "
                f"shipped default: {', '.join(unchanged)}. Set them in the "
                "environment or .env file."
            )
        return self

    @model_validator(mode="after")
    def _validate_code_settings(self) -> "Settings":
        """Reject code parameters that would make codes unusable."""
        for name in ("OTP_LENGTH", "PIN_LENGTH"):
            if not 1 <= getattr(self, name) <= MAX_CODE_LENGTH:
                raise ValueError(f"{name} must be between 1 and {MAX_CODE_LENGTH}")
        if self.OTP_MAX_ATTEMPTS < 1:
            raise ValueError("OTP_MAX_ATTEMPTS must be at least 1")
        if self.MIN_WITHDRAWAL_AMOUNT > self.MAX_WITHDRAWAL_AMOUNT:
            raise ValueError(
                "MIN_WITHDRAWAL_AMOUNT cannot exceed MAX_WITHDRAWAL_AMOUNT"
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()

# Sentry must be up before the loggers below attach their component tags
if not settings.DEBUG:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )


def _component_logger(component: str, log_file: str | None = None) -> logging.Logger:
    """``<component>_logger`` writing to ``logs/<log_file or component>.log``."""
    return setup_logger(
        name=f"{component}_logger",
        log_file=f"logs/{log_file or component}.log",
        level=logging.INFO,
        sentry_tag=component,
    )


app_logger = _component_logger("app")
request_logger = _component_logger("request", "requests")
auth_logger = _component_logger("auth")
otp_logger = _component_logger("otp")
client_logger = _component_logger("client")
withdrawal_logger = _component_logger("withdrawal")
brevo_logger = _component_logger("brevo")
email_manager_logger = _component_logger("email_manager")
redis_logger = _component_logger("redis")
rate_limit_logger = _component_logger("rate_limit")
scheduler_logger = _component_logger("scheduler")
utils_logger = _component_logger("utils")

__all__ = [
    "settings",
    "app_logger",
    "request_logger",
    "auth_logger",
    "otp_logger",
    "client_logger",
    "withdrawal_logger",
    "brevo_logger",
    "email_manager_logger",
    "redis_logger",
    "rate_limit_logger",
    "scheduler_logger",
    "utils_logger",
]

from app.core.services.auth import AccessToken, AuthService, LoginResult
from app.core.services.brevo import BrevoService
from app.core.services.client import ClientDashboard, ClientService
from app.core.services.email_manager import EmailManagerService
from app.core.services.otp import (
    GeneratedCode,
    IssuedCode,
    OTPService,
    VerificationResult,
)
from app.core.services.rate_limit import (
    MemoryBackend,
    RateLimitBackend,
    RateLimiter,
    RateLimitResult,
    RedisBackend,
    get_rate_limiter,
    rate_limit_by_email,
    rate_limit_by_ip,
)
from app.core.services.redis_service import RedisService
from app.core.services.template import Renderer
from app.core.services.transaction import TransactionService
from app.core.services.withdrawal import WithdrawalService

__all__ = [
    # Core services
    "AuthService",
    "AccessToken",
    "LoginResult",
    "BrevoService",
    "ClientService",
    "ClientDashboard",
    "EmailManagerService",
    "RedisService",
    "Renderer",
    "TransactionService",
    "WithdrawalService",
    # One-time codes
    "OTPService",
    "GeneratedCode",
    "IssuedCode",
    "VerificationResult",
    # Rate limiting
    "MemoryBackend",
    "RateLimitBackend",
    "RateLimiter",
    "RateLimitResult",
    "RedisBackend",
    "get_rate_limiter",
    "rate_limit_by_email",
    "rate_limit_by_ip",
]

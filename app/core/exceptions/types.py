from fastapi import status


class AppException(Exception):
    """Base application exception."""

    kind: str = "error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)

    def to_payload(self) -> dict:
        """Body returned to API clients: detail, kind and any extra fields."""
        payload: dict = {"detail": self.message, "kind": self.kind}
        if self.details:
            payload.update(self.details)
        return payload


class DatabaseException(AppException):
    """Exception raised for database-related errors."""

    kind = "database_error"

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class AuthenticationException(AppException):
    """Exception raised for authentication-related errors."""

    kind = "authentication_failed"

    def __init__(self, message: str = "Authentication failed."):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class InvalidCredentialsException(AuthenticationException):
    """Exception raised when provided credentials are invalid."""

    kind = "invalid_credentials"

    def __init__(self, message: str = "Invalid email or password."):
        super().__init__(message)


class ForbiddenException(AppException):
    """Exception raised when access is forbidden."""

    kind = "forbidden"

    def __init__(self, message: str = "Access forbidden.", details: dict | None = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    kind = "not_found"

    def __init__(self, message: str = "Resource not found.", details: dict | None = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class UserNotFoundException(NotFoundException):
    """Exception raised when a user is not found."""

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class ConflictException(AppException):
    """Exception raised when there's a conflict with existing resources."""

    kind = "conflict"

    def __init__(self, message: str = "Resource conflict."):
        super().__init__(message, status.HTTP_409_CONFLICT)


class UserAlreadyExistsException(ConflictException):
    """Exception raised when a user already exists."""

    def __init__(self, message: str = "User with this email already exists."):
        super().__init__(message)


class BadRequestException(AppException):
    """Exception raised for bad request errors."""

    kind = "bad_request"

    def __init__(self, message: str = "Bad request.", details: dict | None = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class RateLimitExceededException(AppException):
    """Exception raised when rate limit is exceeded."""

    kind = "rate_limited"

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        retry_after: int | None = None,
    ):
        super().__init__(
            message,
            status.HTTP_429_TOO_MANY_REQUESTS,
            {"retry_after": retry_after} if retry_after else None,
        )
        self.retry_after = retry_after


# =============================================================================
# One-time code errors
# =============================================================================


def _reissue_hint(purpose: str | None) -> dict:
    if purpose == "withdrawal":
        return {"remediation": "Ask an administrator to issue a new withdrawal PIN."}
    return {
        "remediation": "Request a new code via POST /otp/generate or POST /otp/resend."
    }


class OTPNotFoundException(NotFoundException):
    """No record exists for the subject and purpose."""

    kind = "not_found"

    def __init__(
        self,
        message: str = "No verification code found. Please request a new one.",
        purpose: str | None = None,
    ):
        super().__init__(message, details=_reissue_hint(purpose))


class OTPExpiredException(BadRequestException):
    """The code's expiry has passed."""

    kind = "expired"

    def __init__(
        self,
        message: str = "Verification code has expired. Please request a new one.",
        purpose: str | None = None,
    ):
        super().__init__(message, details=_reissue_hint(purpose))


class OTPAttemptsExhaustedException(BadRequestException):
    """The attempt ceiling was reached; only a new code can be verified."""

    kind = "attempts_exhausted"

    def __init__(
        self,
        message: str = "Maximum verification attempts exceeded. Please request a new code.",
        purpose: str | None = None,
    ):
        super().__init__(message, details=_reissue_hint(purpose))


class OTPInvalidException(BadRequestException):
    """The submitted code does not match."""

    kind = "invalid_code"

    def __init__(
        self,
        message: str = "Invalid verification code.",
        attempts_left: int | None = None,
    ):
        super().__init__(
            message,
            details=(
                {"attempts_left": attempts_left} if attempts_left is not None else None
            ),
        )
        self.attempts_left = attempts_left


class OTPAlreadyVerifiedException(BadRequestException):
    """The code was already verified; its side effect is not repeated."""

    kind = "already_verified"

    def __init__(self, message: str = "This code has already been verified."):
        super().__init__(message)


class OTPThrottledException(AppException):
    """A new code was requested before the resend window elapsed."""

    kind = "throttled"

    def __init__(
        self,
        retry_after: int,
        message: str | None = None,
    ):
        super().__init__(
            message
            or f"Please wait {retry_after} seconds before requesting a new code.",
            status.HTTP_429_TOO_MANY_REQUESTS,
            {"retry_after": retry_after},
        )
        self.retry_after = retry_after


class DeliveryFailedException(AppException):
    """The code could not be delivered; the record was rolled back."""

    kind = "delivery_failed"

    def __init__(
        self,
        message: str = "Failed to send verification code. Please try again later.",
    ):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class VerificationRequiredException(ForbiddenException):
    """A sensitive action needs a verified code for the purpose."""

    kind = "verification_required"

    def __init__(
        self,
        purpose: str,
        message: str = "Verification required for this action.",
    ):
        super().__init__(
            message,
            details={
                "require_otp": True,
                "purpose": purpose,
                **_reissue_hint(purpose),
            },
        )
        self.purpose = purpose


class VerificationExpiredException(ForbiddenException):
    """The verified code is older than the freshness window."""

    kind = "verification_expired"

    def __init__(
        self,
        purpose: str,
        message: str = "Verification has expired. Please verify again.",
    ):
        super().__init__(
            message,
            details={
                "require_otp": True,
                "purpose": purpose,
                **_reissue_hint(purpose),
            },
        )
        self.purpose = purpose


# =============================================================================
# Domain errors
# =============================================================================


class InvalidWithdrawalTransitionException(BadRequestException):
    """A withdrawal status change is not allowed from its current status."""

    kind = "invalid_transition"

    def __init__(self, current: str, target: str, message: str | None = None):
        super().__init__(
            message or f"Cannot change withdrawal status from {current} to {target}.",
            details={"current_status": current, "requested_status": target},
        )


class InsufficientBalanceException(BadRequestException):
    """The client's available balance does not cover the withdrawal."""

    kind = "insufficient_balance"

    def __init__(self, message: str = "Insufficient balance for this withdrawal."):
        super().__init__(message)


class NotImplementedException(AppException):
    """Exception raised when a feature is not yet implemented."""

    kind = "not_implemented"

    def __init__(self, message: str = "This feature is not yet implemented."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


__all__ = [
    "AppException",
    "DatabaseException",
    "AuthenticationException",
    "InvalidCredentialsException",
    "ForbiddenException",
    "NotFoundException",
    "UserNotFoundException",
    "ConflictException",
    "UserAlreadyExistsException",
    "BadRequestException",
    "RateLimitExceededException",
    "OTPNotFoundException",
    "OTPExpiredException",
    "OTPAttemptsExhaustedException",
    "OTPInvalidException",
    "OTPAlreadyVerifiedException",
    "OTPThrottledException",
    "DeliveryFailedException",
    "VerificationRequiredException",
    "VerificationExpiredException",
    "InvalidWithdrawalTransitionException",
    "InsufficientBalanceException",
    "NotImplementedException",
]

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.core.config import email_manager_logger, request_logger
from app.core.exceptions.types import (
    AppException,
    AuthenticationException,
    BadRequestException,
    ConflictException,
    DatabaseException,
    DeliveryFailedException,
    ForbiddenException,
    NotFoundException,
    OTPThrottledException,
    RateLimitExceededException,
)


def _json_response(
    exc: AppException, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
        headers=headers,
    )


def _retry_after_headers(retry_after: int | None) -> dict[str, str]:
    return {"Retry-After": str(retry_after)} if retry_after else {}


async def general_exception_handler(request: Request, exc: AppException):
    """
    Fallback handler for any AppException without a dedicated handler.

    Args:
        request: The request object.
        exc (AppException): The exception instance.

    Returns:
        JSONResponse: ``{"detail", "kind"}`` with the exception's status code.
    """
    request_logger.error(
        f"GeneralException on {request.method} {request.url.path}: {exc}"
    )
    return _json_response(exc)


async def database_exception_handler(request: Request, exc: DatabaseException):
    """
    Handles database exceptions. The underlying error is logged but never
    returned to the client.

    Returns:
        JSONResponse: A generic 500 response.
    """
    request_logger.error(f"DatabaseException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "A database error occurred.", "kind": exc.kind},
    )


async def authentication_exception_handler(
    request: Request, exc: AuthenticationException
):
    """
    Handles authentication exceptions with a ``WWW-Authenticate`` challenge.

    Returns:
        JSONResponse: A 401 response.
    """
    request_logger.warning(f"AuthenticationException: {exc}")
    return _json_response(exc, headers={"WWW-Authenticate": "Bearer"})


async def forbidden_exception_handler(request: Request, exc: ForbiddenException):
    """
    Handles 403 responses, including missing or stale code verification.

    Returns:
        JSONResponse: A 403 response carrying ``require_otp`` and ``purpose``
        when the action is gated by a verification code.
    """
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return _json_response(exc)


async def not_found_exception_handler(request: Request, exc: NotFoundException):
    """
    Handles missing resources and missing verification codes.

    Returns:
        JSONResponse: A 404 response.
    """
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return _json_response(exc)


async def conflict_exception_handler(request: Request, exc: ConflictException):
    """
    Handles conflicts with existing resources.

    Returns:
        JSONResponse: A 409 response.
    """
    request_logger.warning(f"ConflictException: {exc}")
    return _json_response(exc)


async def bad_request_exception_handler(request: Request, exc: BadRequestException):
    """
    Handles bad input, including invalid, expired and exhausted codes.

    Returns:
        JSONResponse: A 400 response; invalid codes include ``attempts_left``.
    """
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return _json_response(exc)


async def otp_throttled_exception_handler(
    request: Request, exc: OTPThrottledException
):
    """
    Handles resend requests made inside the throttle window.

    Returns:
        JSONResponse: A 429 response with ``retry_after`` in the body and a
        ``Retry-After`` header.
    """
    request_logger.warning(f"OTPThrottledException: {exc}")
    return _json_response(exc, headers=_retry_after_headers(exc.retry_after))


async def delivery_failed_exception_handler(
    request: Request, exc: DeliveryFailedException
):
    """
    Handles code delivery failures. Also logged as an operational error
    since it usually means the email provider is unavailable.

    Returns:
        JSONResponse: A 500 response.
    """
    request_logger.warning(f"DeliveryFailedException: {exc}")
    email_manager_logger.error(
        f"Code delivery failed for {request.method} {request.url.path}: {exc}"
    )
    return _json_response(exc)


async def rate_limit_exception_handler(
    request: Request, exc: RateLimitExceededException
):
    """
    Handles rate limit exceeded exceptions.

    Returns:
        JSONResponse: A 429 response with optional Retry-After header.
    """
    request_logger.warning(f"RateLimitExceededException: {exc}")
    return _json_response(exc, headers=_retry_after_headers(exc.retry_after))


exception_schema = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "description": "Internal Server Error",
        "content": {
            "application/json": {
                "example": {
                    "detail": "Failed to send verification code. Please try again later.",
                    "kind": "delivery_failed",
                },
            }
        },
    },
    status.HTTP_401_UNAUTHORIZED: {
        "description": "Authentication Error",
        "content": {
            "application/json": {
                "example": {
                    "detail": "Authentication failed.",
                    "kind": "authentication_failed",
                },
            }
        },
    },
    status.HTTP_429_TOO_MANY_REQUESTS: {
        "description": "Rate Limit Exceeded",
        "content": {
            "application/json": {
                "example": {
                    "detail": "Please wait 42 seconds before requesting a new code.",
                    "kind": "throttled",
                    "retry_after": 42,
                },
            }
        },
    },
}


__all__ = [
    "general_exception_handler",
    "database_exception_handler",
    "authentication_exception_handler",
    "forbidden_exception_handler",
    "not_found_exception_handler",
    "conflict_exception_handler",
    "bad_request_exception_handler",
    "otp_throttled_exception_handler",
    "delivery_failed_exception_handler",
    "rate_limit_exception_handler",
    "exception_schema",
]

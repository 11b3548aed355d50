"""
Utility functions for the application.

- Secure password hashing using bcrypt
- JWT token creation and decoding
- Numeric one-time code generation from a CSPRNG
- SHA-256 hashing and constant-time comparison of codes and reset tokens
- A single UTC clock (``utc_now``) that tests can patch
"""

from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import json
import secrets
from typing import Any
import uuid

import aiofiles
import bcrypt
from fastapi import FastAPI
import jwt

from app.core.config import settings, utils_logger

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


def utc_now() -> datetime:
    """
    Return the current time as a timezone-aware UTC datetime.

    Every expiry, throttle and freshness computation goes through this
    function so the clock can be advanced in tests.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes read back from the database.

    SQLite drops the offset of timezone-aware columns; every stored value is
    written in UTC, so a naive value is interpreted as UTC.

    Examples:
        >>> ensure_utc(datetime(2025, 1, 1)).tzinfo
        datetime.timezone.utc
        >>> ensure_utc(None) is None
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hash_password(password: str | None) -> str:
    """
    Hash a password using bcrypt with a random salt.

    Args:
        password: The plain text password to hash. Cannot be None.

    Returns:
        str: The 60 character bcrypt hash (``$2b$...``).

    Raises:
        ValueError: If password is None.
    """
    if password is None:
        utils_logger.error("Attempted to hash None password")
        raise ValueError("Password cannot be None")

    password_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
    utils_logger.debug("Password hashed successfully")
    return hashed.decode("utf-8")


def verify_password(password: str | None, hashed_password: str | None) -> bool:
    """
    Verify a password against a bcrypt hash.

    Returns False for missing values or a malformed hash instead of raising,
    so callers can treat every failure as "invalid credentials".

    Examples:
        >>> hashed = hash_password("MyPassword123")
        >>> verify_password("MyPassword123", hashed)
        True
        >>> verify_password(None, hashed)
        False
    """
    if password is None or hashed_password is None:
        utils_logger.warning("Password verification attempted with a missing value")
        return False

    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_BCRYPT_MAX_BYTES],
            hashed_password.encode("utf-8"),
        )
    except (ValueError, AttributeError) as e:
        utils_logger.warning(
            f"Password verification failed due to invalid hash format: {type(e).__name__}"
        )
        return False


def create_jwt_token(
    data: dict[str, Any] | None, expires_delta: timedelta | None = None
) -> str:
    """
    Create a signed JWT carrying ``data`` plus ``exp``, ``iat`` and ``jti`` claims.

    Args:
        data: Claims to encode. Cannot be None.
        expires_delta: Token lifetime. Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        str: Encoded JWT (header.payload.signature).

    Raises:
        ValueError: If data is None.

    Examples:
        >>> token = create_jwt_token({"sub": "123", "type": "access"})
        >>> len(token.split("."))
        3
    """
    if data is None:
        utils_logger.error("Attempted to create JWT token with None data")
        raise ValueError("Data cannot be None")

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    issued_at = utc_now()
    to_encode = {
        **data,
        "exp": issued_at + expires_delta,
        "iat": issued_at,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def decode_jwt_token(token: str | None) -> dict[str, Any] | None:
    """
    Decode and validate a JWT.

    Returns:
        dict[str, Any] | None: The claims, or None if the token is missing,
        expired, tampered with or otherwise invalid.
    """
    if not token:
        utils_logger.warning("JWT token decoding attempted with an empty token")
        return None

    try:
        return jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        utils_logger.warning("JWT token decoding failed: token has expired")
        return None
    except jwt.InvalidTokenError as e:
        utils_logger.warning(
            f"JWT token decoding failed: invalid token - {type(e).__name__}"
        )
        return None


def generate_numeric_code(length: int = 6) -> str:
    """
    Generate a uniformly distributed numeric code of exactly ``length`` digits.

    The value is drawn from ``[10^(length-1), 10^length - 1]`` with the
    ``secrets`` CSPRNG, so the code never has a leading zero.

    Args:
        length: Number of digits. Must be at least 1.

    Returns:
        str: The code as a decimal string.

    Raises:
        ValueError: If length is smaller than 1.

    Examples:
        >>> code = generate_numeric_code(6)
        >>> len(code), code.isdigit()
        (6, True)
    """
    if length < 1:
        raise ValueError("Code length must be at least 1")

    lower = 10 ** (length - 1)
    upper = 10**length - 1
    # length == 1 spans 1..9
    return str(lower + secrets.randbelow(upper - lower + 1))


def hash_code(code: str | None) -> str:
    """
    Return the SHA-256 hex digest of a one-time code or reset token.

    Raises:
        ValueError: If code is None or empty.

    Examples:
        >>> len(hash_code("123456"))
        64
    """
    if not code:
        raise ValueError("Code cannot be None or empty")
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def verify_code_hash(code: str | None, code_hash: str | None) -> bool:
    """
    Compare a submitted code to a stored SHA-256 digest in constant time.

    Examples:
        >>> verify_code_hash("123456", hash_code("123456"))
        True
        >>> verify_code_hash("654321", hash_code("123456"))
        False
    """
    if not code or not code_hash:
        return False
    return hmac.compare_digest(hash_code(code), code_hash)


def mask_otp(otp: str) -> str:
    """
    Mask a code for logging, keeping only the first and last digit.

    Examples:
        >>> mask_otp("123456")
        '1****6'
        >>> mask_otp("12")
        '**'
    """
    if len(otp) <= 2:
        return "*" * len(otp)

    return f"{otp[0]}{'*' * (len(otp) - 2)}{otp[-1]}"


def generate_reset_token() -> str:
    """Return a URL-safe random password reset token (plaintext)."""
    return secrets.token_hex(20)


def generate_public_id(prefix: str, sequence: int) -> str:
    """
    Build a human-readable identifier such as ``WD-10001``.

    Examples:
        >>> generate_public_id("CL", 1)
        'CL-10001'
    """
    return f"{prefix}-{10000 + sequence}"


def generate_openapi_json(app: FastAPI) -> str:
    """
    Generate the pretty-printed OpenAPI JSON schema of the application.
    """
    openapi_json = json.dumps(app.openapi(), indent=4)
    utils_logger.info("OpenAPI JSON schema generated successfully")
    return openapi_json


async def write_to_file_async(file_path: str, data: str) -> None:
    """
    Asynchronously write ``data`` to ``file_path``.
    """
    async with aiofiles.open(file_path, mode="w", encoding="utf-8") as file:
        await file.write(data)
    utils_logger.info(f"Data written to file {file_path} successfully.")

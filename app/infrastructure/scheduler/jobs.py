from app.core.config import scheduler_logger
from app.core.db import AsyncSessionLocal
from app.core.services.otp import OTPService


async def purge_expired_codes() -> int:
    """
    Periodic task deleting one-time codes that can no longer be used, either
    to verify or as proof of a recent verification.

    Returns:
        int: The number of records deleted.
    """
    scheduler_logger.info("Starting purge of expired one-time codes")
    async with AsyncSessionLocal() as session:
        deleted = await OTPService.purge_expired(session)
    scheduler_logger.info(
        f"Completed purge of expired one-time codes. Deleted {deleted} record(s)."
    )
    return deleted

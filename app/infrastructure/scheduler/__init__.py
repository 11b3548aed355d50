from app.infrastructure.scheduler.jobs import purge_expired_codes
from app.infrastructure.scheduler.main import (
    initialize_scheduler,
    schedule_purge_expired_codes_job,
    scheduler,
)

__all__ = [
    "scheduler",
    "purge_expired_codes",
    "schedule_purge_expired_codes_job",
    "initialize_scheduler",
]

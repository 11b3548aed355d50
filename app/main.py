from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.cors import CORSMiddleware

from app.core.config import app_logger, settings
from app.core.dependencies import get_async_session
from app.core.exceptions.handlers import (
    authentication_exception_handler,
    bad_request_exception_handler,
    conflict_exception_handler,
    database_exception_handler,
    delivery_failed_exception_handler,
    exception_schema,
    forbidden_exception_handler,
    general_exception_handler,
    not_found_exception_handler,
    otp_throttled_exception_handler,
    rate_limit_exception_handler,
)
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
from app.core.routers import (
    auth_router,
    client_router,
    notification_router,
    otp_router,
    transaction_router,
    withdrawal_router,
)
from app.core.services import (
    AuthService,
    BrevoService,
    EmailManagerService,
    RedisService,
    Renderer,
)
from app.infrastructure.scheduler import initialize_scheduler, scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting application...")

    # Redis only backs the distributed rate limiter
    if settings.RATE_LIMIT_BACKEND == "redis":
        app_logger.info("Initializing Redis service...")
        await RedisService.init(settings.REDIS_URL)
        app_logger.info("Redis service initialized successfully.")

    app_logger.info("Initializing Auth service...")
    AuthService.init()
    app_logger.info("Auth service initialized successfully.")

    app_logger.info("Initializing Brevo service...")
    await BrevoService.init(
        api_key=settings.BREVO_API_KEY,
        sender_email=settings.BREVO_SENDER_EMAIL,
        sender_name=settings.BREVO_SENDER_NAME,
    )
    app_logger.info("Brevo service initialized successfully.")

    app_logger.info("Initializing template renderer...")
    Renderer.initialize("app/templates")
    EmailManagerService.init()
    app_logger.info("Template renderer initialized successfully.")

    if settings.ENABLE_SCHEDULER:
        app_logger.info("Starting scheduler...")
        scheduler.start()
        initialize_scheduler()
        app_logger.info("Scheduler started successfully.")
    else:
        app_logger.info("Scheduler disabled via ENABLE_SCHEDULER setting.")

    yield

    app_logger.info("Shutting down application...")

    if scheduler.running:
        app_logger.info("Stopping scheduler...")
        scheduler.shutdown()
        app_logger.info("Scheduler stopped successfully.")

    await BrevoService.aclose()
    await RedisService.aclose()
    app_logger.info("Application shut down.")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    debug=settings.DEBUG,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    responses=exception_schema,
    root_path_in_servers=False,
    servers=[
        {
            "url": f"{settings.API_DOMAIN}",
        },
    ],
)

# Most specific first; AppException catches whatever is left
EXCEPTION_HANDLERS = (
    (OTPThrottledException, otp_throttled_exception_handler),
    (DeliveryFailedException, delivery_failed_exception_handler),
    (RateLimitExceededException, rate_limit_exception_handler),
    (AuthenticationException, authentication_exception_handler),
    (ForbiddenException, forbidden_exception_handler),
    (NotFoundException, not_found_exception_handler),
    (ConflictException, conflict_exception_handler),
    (BadRequestException, bad_request_exception_handler),
    (DatabaseException, database_exception_handler),
    (AppException, general_exception_handler),
)
for exc_class, handler in EXCEPTION_HANDLERS:
    app.add_exception_handler(exc_class, handler)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

ROUTERS = (
    (auth_router, "/auth", "Authentication"),
    (otp_router, "/otp", "One-Time Codes"),
    (withdrawal_router, "/withdrawals", "Withdrawals"),
    (client_router, "/clients", "Clients"),
    (transaction_router, "/transactions", "Transactions"),
    (notification_router, "/notifications/2fa", "Two-Factor"),
)
for router, prefix, tag in ROUTERS:
    app.include_router(router, prefix=prefix, tags=[tag])


@app.get("/", include_in_schema=False)
async def root(request: Request):
    base_url = request.base_url._url.rstrip("/")
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "documentations": {
            "swagger": f"{base_url}/docs",
            "redoc": f"{base_url}/redoc",
        },
        "version": settings.APP_VERSION,
    }


async def _database_ok(session: AsyncSession) -> bool:
    try:
        async with session.begin():
            return (await session.execute(text("SELECT 1"))).scalar() == 1
    except SQLAlchemyError as e:
        app_logger.error(f"Database health check failed: {e}")
        return False


@app.head("/health", include_in_schema=False)
@app.get("/health")
async def health_check(session: Annotated[AsyncSession, Depends(get_async_session)]):
    """
    Liveness and dependency check.

    Always checks the database. Redis is checked only when it backs the
    rate limiter. Any failed check turns the response into a 503 that
    carries the same body.
    """
    checks = {"database": "ok" if await _database_ok(session) else "unhealthy"}
    if settings.RATE_LIMIT_BACKEND == "redis":
        checks["redis"] = "ok" if await RedisService.ping() else "unhealthy"

    healthy = all(result == "ok" for result in checks.values())
    health_status = {
        "status": "ok" if healthy else "degraded",
        "message": f"{settings.APP_NAME} API is running.",
        "checks": checks,
    }

    if not healthy:
        raise AppException(
            "One or more health checks failed.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=health_status,
        )

    return health_status

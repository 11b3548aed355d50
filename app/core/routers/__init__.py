"""
Routers for the application.

This module exports all FastAPI routers included in the main application.
"""

from app.core.routers.auth import router as auth_router
from app.core.routers.client import router as client_router
from app.core.routers.notification import router as notification_router
from app.core.routers.otp import router as otp_router
from app.core.routers.transaction import router as transaction_router
from app.core.routers.withdrawal import router as withdrawal_router

__all__ = [
    "auth_router",
    "client_router",
    "notification_router",
    "otp_router",
    "transaction_router",
    "withdrawal_router",
]

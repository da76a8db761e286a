"""
Database module for AI Media Studio
"""
from .engine import engine, SessionLocal, get_db, init_db
from .base import Base
from .models import (
    User,
    UsageCounter,
    ContentHistoryItem,
    ContentType,
    CreditPackage,
    PaymentRequest,
    PaymentStatus,
    ApiKey,
)

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "init_db",
    "Base",
    "User",
    "UsageCounter",
    "ContentHistoryItem",
    "ContentType",
    "CreditPackage",
    "PaymentRequest",
    "PaymentStatus",
    "ApiKey",
]

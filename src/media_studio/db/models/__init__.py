"""
Database models for AI Media Studio
"""
from .user import User
from .usage import UsageCounter
from .content import ContentHistoryItem, ContentType
from .payment import CreditPackage, PaymentRequest, PaymentStatus
from .api_key import ApiKey

__all__ = [
    "User",
    "UsageCounter",
    "ContentHistoryItem",
    "ContentType",
    "CreditPackage",
    "PaymentRequest",
    "PaymentStatus",
    "ApiKey",
]

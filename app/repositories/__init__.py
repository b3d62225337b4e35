"""
app/repositories package marker.
"""

from app.repositories.devex_rate_repository import DevExRateRepository
from app.repositories.subscription_repository import SubscriptionRepository
from app.repositories.transaction_repository import TransactionRepository, WindowTotals
from app.repositories.upload_repository import UploadRepository

__all__ = [
    "DevExRateRepository",
    "SubscriptionRepository",
    "TransactionRepository",
    "UploadRepository",
    "WindowTotals",
]

"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.devex_rate import DevExRate
from db.models.subscription import Subscription, SubscriptionProduct
from db.models.transaction import Transaction
from db.models.upload import Upload

__all__ = [
    "DevExRate",
    "Subscription",
    "SubscriptionProduct",
    "Transaction",
    "Upload",
]

"""
app/validators package marker.
"""

from app.validators.transaction_validator import TransactionRowValidator

__all__ = [
    "TransactionRowValidator",
]

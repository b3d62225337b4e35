"""
app/domain package marker.
"""

from app.domain.transactions import (
    AcceptedRow,
    IngestionSummary,
    NormalizedTransaction,
    RawRow,
    RejectedRow,
    RowOutcome,
    RowRejection,
)

__all__ = [
    "AcceptedRow",
    "IngestionSummary",
    "NormalizedTransaction",
    "RawRow",
    "RejectedRow",
    "RowOutcome",
    "RowRejection",
]

"""
app/domain/transactions.py

Domain models used by the transaction ingestion flow.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Union

RawRow = Mapping[str, Any]


@dataclass(frozen=True)
class NormalizedTransaction:
    """
    Typed transaction record prepared for persistence.
    """

    user_id: uuid.UUID
    upload_id: uuid.UUID | None
    transaction_date: date
    source: str
    item_name: str
    item_type: str
    gross_robux: float
    ad_spend: float
    devex_rate: float
    demo_data: bool = False
    expires_at: datetime | None = None

    def derived_figures(self, marketplace_cut_rate: float) -> dict[str, float]:
        """
        Net figures after the marketplace cut, converted at the snapshot rate.
        """

        marketplace_cut = round(self.gross_robux * marketplace_cut_rate, 2)
        net_robux = round(self.gross_robux - marketplace_cut, 2)
        return {
            "marketplace_cut": marketplace_cut,
            "net_robux": net_robux,
            "gross_usd": round(self.gross_robux * self.devex_rate, 4),
            "net_usd": round(net_robux * self.devex_rate, 4),
        }


@dataclass(frozen=True)
class RowRejection:
    """
    Why one submitted row was not accepted. ``row_number`` is 1-based.
    """

    row_number: int
    reason: str

    @property
    def message(self) -> str:
        return f"Row {self.row_number}: {self.reason}"


@dataclass(frozen=True)
class AcceptedRow:
    record: NormalizedTransaction


@dataclass(frozen=True)
class RejectedRow:
    rejection: RowRejection


RowOutcome = Union[AcceptedRow, RejectedRow]


@dataclass(frozen=True)
class IngestionSummary:
    """
    End-of-run ingestion summary.

    ``sample_errors`` is capped; ``rejected`` always carries the full count.
    """

    upload_id: uuid.UUID
    accepted: int
    rejected: int
    sample_errors: list[str] = field(default_factory=list)

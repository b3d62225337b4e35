"""
app/services/metrics_service.py

Deterministic revenue rollups over persisted transactions.

All calculation functions operate on already-loaded rows. No database logic
lives here; the caller fetches a user's transactions and passes them in.
Calling any method twice on the same rows yields the same result.

Formulas
--------
ROI    = (net_usd - ad_spend) / ad_spend * 100     (0 when ad_spend == 0)
Trend  = (current - previous) / previous * 100     (0 when previous == 0)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Protocol, Sequence, Union

logger = logging.getLogger(__name__)

DEFAULT_TOP_ITEMS_LIMIT = 10

Number = Union[int, float, Decimal]


class TransactionLike(Protocol):
    """
    Read-side shape shared by ORM rows and plain test doubles.
    """

    transaction_date: date
    item_name: str
    gross_robux: Number
    marketplace_cut: Number
    ad_spend: Number
    net_robux: Number
    net_usd: Number
    devex_rate: Number


# ---------------------------------------------------------------------------
# Output dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GroupTotals:
    """
    Sums for one group of transactions (a month or an item).

    ``avg_devex_rate`` is the plain mean of per-row snapshot rates.
    """

    key: str
    gross_robux: float
    marketplace_cut: float
    ad_spend: float
    net_robux: float
    net_usd: float
    transaction_count: int
    avg_devex_rate: float

    @property
    def roi(self) -> float:
        return roi(self.net_usd, self.ad_spend)


@dataclass(frozen=True)
class MetricsSummary:
    total_gross_robux: float
    total_marketplace_cut: float
    total_ad_spend: float
    total_net_robux: float
    total_net_usd: float
    transaction_count: int
    roi: float
    month_over_month_trend: float


# ---------------------------------------------------------------------------
# Formulas
# ---------------------------------------------------------------------------


def roi(net_usd: Number, ad_spend: Number) -> float:
    """
    Return on ad spend as a percentage; ``0.0`` when nothing was spent.

    >>> roi(150, 50)
    200.0
    """
    spend = float(ad_spend)
    if spend <= 0:
        return 0.0
    return (float(net_usd) - spend) / spend * 100


def trend(current: Number, previous: Number) -> float:
    """
    Percentage change between two periods; ``0.0`` for a zero baseline.
    """
    baseline = float(previous)
    if baseline == 0:
        return 0.0
    return (float(current) - baseline) / baseline * 100


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class MetricsService:
    """
    Stateless aggregation engine for dashboard rollups.

    Usage::

        service = MetricsService()
        months = service.monthly_rollup(rows)
        best = service.top_items(rows, limit=5)
    """

    def monthly_rollup(self, transactions: Iterable[TransactionLike]) -> list[GroupTotals]:
        """
        Group by calendar month (``YYYY-MM``), oldest month first.
        """
        groups = self._group(transactions, key=lambda row: row.transaction_date.strftime("%Y-%m"))
        return [groups[month] for month in sorted(groups)]

    def item_rollup(self, transactions: Iterable[TransactionLike]) -> list[GroupTotals]:
        """
        Group by item name, in first-seen order.
        """
        return list(self._group(transactions, key=lambda row: row.item_name).values())

    def top_items(
        self,
        transactions: Iterable[TransactionLike],
        *,
        limit: int = DEFAULT_TOP_ITEMS_LIMIT,
    ) -> list[GroupTotals]:
        """
        Items ranked by net USD, highest first.

        Ties keep first-seen order because ``sorted`` is stable.
        """
        if limit <= 0:
            return []
        items = self.item_rollup(transactions)
        ranked = sorted(items, key=lambda group: group.net_usd, reverse=True)
        return ranked[:limit]

    def period_trend(self, monthly: Sequence[GroupTotals]) -> float:
        """
        Net USD trend between the two most recent months in ``monthly``.
        """
        if len(monthly) < 2:
            return 0.0
        return trend(monthly[-1].net_usd, monthly[-2].net_usd)

    def summarize(self, transactions: Iterable[TransactionLike]) -> MetricsSummary:
        rows = list(transactions)
        monthly = self.monthly_rollup(rows)

        total_net_usd = sum(group.net_usd for group in monthly)
        total_ad_spend = sum(group.ad_spend for group in monthly)
        summary = MetricsSummary(
            total_gross_robux=sum(group.gross_robux for group in monthly),
            total_marketplace_cut=sum(group.marketplace_cut for group in monthly),
            total_ad_spend=total_ad_spend,
            total_net_robux=sum(group.net_robux for group in monthly),
            total_net_usd=total_net_usd,
            transaction_count=len(rows),
            roi=roi(total_net_usd, total_ad_spend),
            month_over_month_trend=self.period_trend(monthly),
        )
        logger.debug(
            "Metrics summary computed rows=%d months=%d net_usd=%.4f",
            len(rows),
            len(monthly),
            total_net_usd,
        )
        return summary

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _group(
        self,
        transactions: Iterable[TransactionLike],
        *,
        key: Callable[[TransactionLike], str],
    ) -> dict[str, GroupTotals]:
        buckets: dict[str, list[TransactionLike]] = {}
        for row in transactions:
            buckets.setdefault(key(row), []).append(row)
        return {name: self._totals(name, rows) for name, rows in buckets.items()}

    @staticmethod
    def _totals(key: str, rows: list[TransactionLike]) -> GroupTotals:
        count = len(rows)
        return GroupTotals(
            key=key,
            gross_robux=sum(float(row.gross_robux) for row in rows),
            marketplace_cut=sum(float(row.marketplace_cut) for row in rows),
            ad_spend=sum(float(row.ad_spend) for row in rows),
            net_robux=sum(float(row.net_robux) for row in rows),
            net_usd=sum(float(row.net_usd) for row in rows),
            transaction_count=count,
            avg_devex_rate=sum(float(row.devex_rate) for row in rows) / count,
        )

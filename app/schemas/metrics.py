"""
Schemas for dashboard metric endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GroupTotalsResponse(BaseModel):
    key: str
    gross_robux: float
    marketplace_cut: float
    ad_spend: float
    net_robux: float
    net_usd: float
    transaction_count: int
    avg_devex_rate: float
    roi: float


class MonthlyMetricsResponse(BaseModel):
    months: list[GroupTotalsResponse] = Field(default_factory=list)


class TopItemsResponse(BaseModel):
    items: list[GroupTotalsResponse] = Field(default_factory=list)


class MetricsSummaryResponse(BaseModel):
    total_gross_robux: float
    total_marketplace_cut: float
    total_ad_spend: float
    total_net_robux: float
    total_net_usd: float
    transaction_count: int
    roi: float
    month_over_month_trend: float

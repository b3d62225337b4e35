"""
app/api/routers/metrics_router.py

Dashboard metric endpoints.

Rows are loaded once per request and reduced in memory by MetricsService;
demo rows are included so seeded accounts show a populated dashboard.
"""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user_id
from app.config import get_revenue_settings
from app.repositories.transaction_repository import TransactionRepository
from app.schemas.metrics import (
    GroupTotalsResponse,
    MetricsSummaryResponse,
    MonthlyMetricsResponse,
    TopItemsResponse,
)
from app.services.metrics_service import DEFAULT_TOP_ITEMS_LIMIT, GroupTotals, MetricsService
from db.models.transaction import Transaction
from db.session import get_db

router = APIRouter(prefix="/metrics", tags=["metrics"])


def get_transaction_repository(db: Session = Depends(get_db)) -> TransactionRepository:
    return TransactionRepository(db, marketplace_cut_rate=get_revenue_settings().marketplace_cut_rate)


def get_metrics_service() -> MetricsService:
    return MetricsService()


def _load_transactions(
    repository: TransactionRepository,
    user_id: uuid.UUID,
    start_date: date | None,
    end_date: date | None,
) -> list[Transaction]:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must be on or before end_date.",
        )
    try:
        return repository.list_for_user(user_id, start_date=start_date, end_date=end_date)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch transactions.",
        ) from exc


def _to_response(group: GroupTotals) -> GroupTotalsResponse:
    return GroupTotalsResponse(
        key=group.key,
        gross_robux=group.gross_robux,
        marketplace_cut=group.marketplace_cut,
        ad_spend=group.ad_spend,
        net_robux=group.net_robux,
        net_usd=group.net_usd,
        transaction_count=group.transaction_count,
        avg_devex_rate=group.avg_devex_rate,
        roi=group.roi,
    )


@router.get("/monthly", response_model=MonthlyMetricsResponse)
def monthly_metrics(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    user_id: uuid.UUID = Depends(get_current_user_id),
    repository: TransactionRepository = Depends(get_transaction_repository),
    metrics: MetricsService = Depends(get_metrics_service),
) -> MonthlyMetricsResponse:
    rows = _load_transactions(repository, user_id, start_date, end_date)
    return MonthlyMetricsResponse(months=[_to_response(group) for group in metrics.monthly_rollup(rows)])


@router.get("/top-items", response_model=TopItemsResponse)
def top_items(
    limit: int = Query(default=DEFAULT_TOP_ITEMS_LIMIT, ge=1, le=100),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    user_id: uuid.UUID = Depends(get_current_user_id),
    repository: TransactionRepository = Depends(get_transaction_repository),
    metrics: MetricsService = Depends(get_metrics_service),
) -> TopItemsResponse:
    rows = _load_transactions(repository, user_id, start_date, end_date)
    return TopItemsResponse(items=[_to_response(group) for group in metrics.top_items(rows, limit=limit)])


@router.get("/summary", response_model=MetricsSummaryResponse)
def metrics_summary(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    user_id: uuid.UUID = Depends(get_current_user_id),
    repository: TransactionRepository = Depends(get_transaction_repository),
    metrics: MetricsService = Depends(get_metrics_service),
) -> MetricsSummaryResponse:
    rows = _load_transactions(repository, user_id, start_date, end_date)
    summary = metrics.summarize(rows)
    return MetricsSummaryResponse(
        total_gross_robux=summary.total_gross_robux,
        total_marketplace_cut=summary.total_marketplace_cut,
        total_ad_spend=summary.total_ad_spend,
        total_net_robux=summary.total_net_robux,
        total_net_usd=summary.total_net_usd,
        transaction_count=summary.transaction_count,
        roi=summary.roi,
        month_over_month_trend=summary.month_over_month_trend,
    )

"""
app/services/weekly_report_service.py

Week-over-week revenue summaries for active subscribers.

Each run compares the last 7 days against the 7 days before, excluding demo
rows, and hands one report per active user to a ``ReportNotifier``. Users
with no activity in the current week are skipped.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.repositories.subscription_repository import SubscriptionRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.metrics_service import trend
from db.models.subscription import PlanProduct

logger = logging.getLogger(__name__)

UPGRADE_CTA = "Upgrade to Growth plan for unlimited games and advanced analytics!"


@dataclass(frozen=True)
class WeeklyReport:
    user_id: uuid.UUID
    product_id: str
    week_start: date
    week_end: date
    net_usd: float
    gross_robux: float
    ad_spend: float
    previous_net_usd: float
    week_over_week_change: float
    upgrade_cta: str | None = None

    @property
    def direction(self) -> str:
        return "up" if self.week_over_week_change >= 0 else "down"


@dataclass(frozen=True)
class WeeklyReportRun:
    subscribers: int
    reports_sent: int
    skipped: int
    failed: int


class ReportNotifier(Protocol):
    def send(self, report: WeeklyReport) -> None:
        ...


class LoggingReportNotifier:
    """
    Default notifier. Writes the report to the application log.
    """

    def send(self, report: WeeklyReport) -> None:
        logger.info(
            "Weekly report user_id=%s net_usd=%.2f gross_robux=%.0f ad_spend=%.2f change=%s %.1f%%",
            report.user_id,
            report.net_usd,
            report.gross_robux,
            report.ad_spend,
            report.direction,
            abs(report.week_over_week_change),
        )


class WeeklyReportService:
    def __init__(
        self,
        *,
        notifier: ReportNotifier | None = None,
        clock: Callable[[], datetime] | None = None,
        subscription_repository_factory: Callable[[Session], SubscriptionRepository] = SubscriptionRepository,
        transaction_repository_factory: Callable[[Session], TransactionRepository] | None = None,
    ) -> None:
        self._notifier = notifier or LoggingReportNotifier()
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._subscription_repository_factory = subscription_repository_factory
        # Read-only use; the cut rate only matters for inserts.
        self._transaction_repository_factory = transaction_repository_factory or (
            lambda db: TransactionRepository(db, marketplace_cut_rate=0.0)
        )

    def send_weekly_reports(self, db: Session) -> WeeklyReportRun:
        subscribers = self._subscription_repository_factory(db).list_active_subscribers()
        if not subscribers:
            logger.info("Weekly report: no active subscribers")
            return WeeklyReportRun(subscribers=0, reports_sent=0, skipped=0, failed=0)

        today = self._clock().date()
        week_start = today - timedelta(days=7)
        previous_start = today - timedelta(days=14)
        transactions = self._transaction_repository_factory(db)

        sent = skipped = failed = 0
        for user_id, product_id in subscribers:
            try:
                # Window end is exclusive; include today.
                current = transactions.window_totals(
                    user_id,
                    start_date=week_start,
                    end_date=today + timedelta(days=1),
                )
                previous = transactions.window_totals(
                    user_id,
                    start_date=previous_start,
                    end_date=week_start,
                )
            except SQLAlchemyError as exc:
                db.rollback()
                failed += 1
                logger.error("Weekly report: metrics query failed user_id=%s: %s", user_id, exc)
                continue

            if current.net_usd == 0 and current.gross_robux == 0:
                skipped += 1
                logger.info("Weekly report: no activity user_id=%s, skipping", user_id)
                continue

            report = WeeklyReport(
                user_id=user_id,
                product_id=product_id,
                week_start=week_start,
                week_end=today,
                net_usd=current.net_usd,
                gross_robux=current.gross_robux,
                ad_spend=current.ad_spend,
                previous_net_usd=previous.net_usd,
                week_over_week_change=trend(current.net_usd, previous.net_usd),
                upgrade_cta=UPGRADE_CTA if product_id == PlanProduct.EARLY_BIRD else None,
            )
            self._notifier.send(report)
            sent += 1

        logger.info(
            "Weekly report run complete subscribers=%d sent=%d skipped=%d failed=%d",
            len(subscribers),
            sent,
            skipped,
            failed,
        )
        return WeeklyReportRun(
            subscribers=len(subscribers),
            reports_sent=sent,
            skipped=skipped,
            failed=failed,
        )

"""
app/scheduler/jobs.py

APScheduler-based background jobs.

Schedule (all times UTC)
--------------------------
  demo_purge     : every DEMO_PURGE_INTERVAL_MINUTES (default 60)
  weekly_report  : WEEKLY_REPORT_DAY_OF_WEEK at WEEKLY_REPORT_HOUR:00
                   (default Monday 09:00)

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
Each job opens and closes its own session.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_scheduler_settings
from app.services.demo_data_service import DemoDataError, get_demo_data_service
from app.services.weekly_report_service import WeeklyReportService
from db.session import session_scope

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Expired demo data purge
# ---------------------------------------------------------------------------


def run_demo_purge() -> None:
    """
    Delete demo transactions whose ``expires_at`` has passed.
    """
    logger.info("Scheduler: demo_purge starting")
    try:
        with session_scope() as db:
            deleted = get_demo_data_service().purge_expired_demo_data(db)
    except (DemoDataError, SQLAlchemyError) as exc:
        logger.warning("Scheduler: demo_purge failed: %s", exc)
        return
    logger.info("Scheduler: demo_purge complete deleted=%d", deleted)


# ---------------------------------------------------------------------------
# Job: Weekly report
# ---------------------------------------------------------------------------


def run_weekly_report() -> None:
    """
    Build and hand off week-over-week reports for active subscribers.
    """
    logger.info("Scheduler: weekly_report starting")
    try:
        with session_scope() as db:
            result = WeeklyReportService().send_weekly_reports(db)
    except SQLAlchemyError as exc:
        logger.warning("Scheduler: weekly_report failed: %s", exc)
        return
    logger.info(
        "Scheduler: weekly_report complete sent=%d skipped=%d failed=%d",
        result.reports_sent,
        result.skipped,
        result.failed,
    )


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = get_scheduler_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_demo_purge,
        trigger="interval",
        minutes=settings.demo_purge_interval_minutes,
        id="demo_purge",
        name="Expired demo data purge",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        run_weekly_report,
        trigger="cron",
        day_of_week=settings.weekly_report_day_of_week,
        hour=settings.weekly_report_hour,
        minute=0,
        id="weekly_report",
        name="Weekly profit report",
        replace_existing=True,
        misfire_grace_time=3600,
    )

    logger.info(
        "Scheduler configured: demo_purge every %d min, weekly_report %s %02d:00 UTC",
        settings.demo_purge_interval_minutes,
        settings.weekly_report_day_of_week,
        settings.weekly_report_hour,
    )
    return scheduler

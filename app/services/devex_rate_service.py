"""
app/services/devex_rate_service.py

Versioned registry for the global DevEx conversion rate.

Ingestion reads the current rate once per batch and snapshots it onto every
Transaction, so updating the rate never rewrites historical figures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_revenue_settings
from app.repositories.devex_rate_repository import DevExRateRepository

logger = logging.getLogger(__name__)


class DevExRateUnavailableError(RuntimeError):
    """
    Raised when the current rate cannot be read from storage.
    """


class DevExRateUpdateError(RuntimeError):
    """
    Raised when a new rate version cannot be stored.
    """


@dataclass(frozen=True)
class CurrentRate:
    rate: float
    effective_at: datetime | None
    is_default: bool


@dataclass(frozen=True)
class RateUpdateResult:
    """
    Outcome of appending a new rate version.

    ``notify`` is true when the relative change reaches the configured
    threshold; delivering that notification is left to the caller.
    """

    previous_rate: float
    new_rate: float
    change_percent: float
    notify: bool
    effective_at: datetime


class DevExRateService:
    def __init__(
        self,
        *,
        default_rate: float,
        notify_threshold_percent: float,
        repository_factory: Callable[[Session], DevExRateRepository] = DevExRateRepository,
    ) -> None:
        self._default_rate = default_rate
        self._notify_threshold_percent = notify_threshold_percent
        self._repository_factory = repository_factory

    def get_current_rate(self, db: Session) -> CurrentRate:
        try:
            latest = self._repository_factory(db).latest()
        except SQLAlchemyError as exc:
            raise DevExRateUnavailableError("Unable to read the current DevEx rate.") from exc

        if latest is None:
            return CurrentRate(rate=self._default_rate, effective_at=None, is_default=True)
        return CurrentRate(rate=float(latest.rate), effective_at=latest.effective_at, is_default=False)

    def update_rate(self, db: Session, *, new_rate: float) -> RateUpdateResult:
        if new_rate <= 0:
            raise ValueError("DevEx rate must be positive.")

        current = self.get_current_rate(db)
        effective_at = datetime.now(tz=timezone.utc)
        try:
            self._repository_factory(db).append(
                rate=new_rate,
                previous_rate=current.rate,
                effective_at=effective_at,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DevExRateUpdateError("Unable to store the new DevEx rate.") from exc

        change_percent = abs(new_rate - current.rate) / current.rate * 100
        notify = change_percent >= self._notify_threshold_percent
        logger.info(
            "DevEx rate updated previous=%s new=%s change_percent=%.2f notify=%s",
            current.rate,
            new_rate,
            change_percent,
            notify,
        )
        return RateUpdateResult(
            previous_rate=current.rate,
            new_rate=new_rate,
            change_percent=round(change_percent, 2),
            notify=notify,
            effective_at=effective_at,
        )


@lru_cache(maxsize=1)
def get_devex_rate_service() -> DevExRateService:
    settings = get_revenue_settings()
    return DevExRateService(
        default_rate=settings.default_devex_rate,
        notify_threshold_percent=settings.rate_change_notify_percent,
    )

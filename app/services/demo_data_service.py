"""
app/services/demo_data_service.py

Seeds short-lived demo transactions so new users can explore the dashboard,
and purges them once they expire.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_demo_data_settings, get_revenue_settings
from app.domain.transactions import NormalizedTransaction
from app.repositories.transaction_repository import TransactionRepository
from db.models.transaction import ItemType

logger = logging.getLogger(__name__)

DEMO_ITEM_NAMES: tuple[str, ...] = (
    "Premium Sword",
    "Magic Staff",
    "Dragon Armor",
    "Speed Potion",
    "Health Pack",
    "VIP Access",
    "Gold Coins",
    "Rare Pet",
    "Power Boost",
    "Shield Upgrade",
    "Fire Spell",
    "Ice Spell",
    "Lightning Bolt",
    "Healing Potion",
    "Mana Potion",
    "Diamond Ring",
    "Crystal Gem",
    "Ancient Scroll",
    "Mystic Orb",
    "Epic Mount",
)

DEMO_ITEM_TYPES: tuple[str, ...] = (
    ItemType.GAME_PASS,
    ItemType.DEV_PRODUCT,
    ItemType.UGC,
    ItemType.PREMIUM_PAYOUT,
)


class DemoDataError(RuntimeError):
    """
    Raised when demo rows cannot be replaced or purged.
    """


@dataclass(frozen=True)
class DemoSeedResult:
    transaction_count: int
    expires_at: datetime


class DemoDataService:
    def __init__(
        self,
        *,
        transaction_count: int,
        ttl_hours: int,
        lookback_days: int,
        devex_rate: float,
        marketplace_cut_rate: float,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        repository_factory: Callable[[Session, float], TransactionRepository] | None = None,
    ) -> None:
        self._transaction_count = transaction_count
        self._ttl = timedelta(hours=ttl_hours)
        self._lookback_days = lookback_days
        self._devex_rate = devex_rate
        self._marketplace_cut_rate = marketplace_cut_rate
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._repository_factory = repository_factory or (
            lambda db, cut_rate: TransactionRepository(db, marketplace_cut_rate=cut_rate)
        )

    def seed_demo(self, db: Session, *, user_id: uuid.UUID) -> DemoSeedResult:
        """
        Replace the user's demo rows with a fresh randomized set.
        """

        now = self._clock()
        expires_at = now + self._ttl
        records = [
            self._build_record(user_id=user_id, now=now, expires_at=expires_at)
            for _ in range(self._transaction_count)
        ]

        repository = self._repository_factory(db, self._marketplace_cut_rate)
        try:
            removed = repository.delete_demo_for_user(user_id)
            inserted = repository.bulk_insert(records)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DemoDataError("Failed to create demo data.") from exc

        logger.info(
            "Demo data seeded user_id=%s removed=%d inserted=%d expires_at=%s",
            user_id,
            removed,
            inserted,
            expires_at.isoformat(),
        )
        return DemoSeedResult(transaction_count=inserted, expires_at=expires_at)

    def purge_expired_demo_data(self, db: Session) -> int:
        repository = self._repository_factory(db, self._marketplace_cut_rate)
        try:
            deleted = repository.delete_expired_demo(self._clock())
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DemoDataError("Failed to purge expired demo data.") from exc

        if deleted:
            logger.info("Expired demo transactions purged count=%d", deleted)
        return deleted

    def _build_record(
        self,
        *,
        user_id: uuid.UUID,
        now: datetime,
        expires_at: datetime,
    ) -> NormalizedTransaction:
        rng = self._rng
        has_ad_spend = rng.random() > 0.7
        offset = timedelta(seconds=rng.uniform(0, self._lookback_days * 86400))
        return NormalizedTransaction(
            user_id=user_id,
            upload_id=None,
            transaction_date=(now - offset).date(),
            source=rng.choice(DEMO_ITEM_TYPES),
            item_name=rng.choice(DEMO_ITEM_NAMES),
            item_type=rng.choice(DEMO_ITEM_TYPES),
            gross_robux=float(rng.randint(100, 1099)),
            ad_spend=float(rng.randint(10, 59)) if has_ad_spend else 0.0,
            devex_rate=self._devex_rate,
            demo_data=True,
            expires_at=expires_at,
        )


@lru_cache(maxsize=1)
def get_demo_data_service() -> DemoDataService:
    demo = get_demo_data_settings()
    revenue = get_revenue_settings()
    return DemoDataService(
        transaction_count=demo.transaction_count,
        ttl_hours=demo.ttl_hours,
        lookback_days=demo.lookback_days,
        devex_rate=revenue.default_devex_rate,
        marketplace_cut_rate=revenue.marketplace_cut_rate,
    )

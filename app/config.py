"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for CSV transaction ingestion.
    """

    max_error_sample: int = 10
    log_validation_errors: bool = True
    batch_size: int = 1000


@dataclass(frozen=True)
class RevenueSettings:
    """
    Revenue math shared by ingestion and the demo seeder.
    """

    marketplace_cut_rate: float = 0.30
    default_devex_rate: float = 0.0035
    rate_change_notify_percent: float = 5.0


@dataclass(frozen=True)
class AuthSettings:
    """
    Hosted auth platform used to resolve Bearer tokens to user ids.
    """

    base_url: str | None = None
    api_key: str | None = None
    timeout_seconds: float = 5.0
    admin_api_token: str | None = None


@dataclass(frozen=True)
class StripeSettings:
    """
    Payment-processor webhook settings.
    """

    webhook_secret: str | None = None
    signature_tolerance_seconds: int = 300


@dataclass(frozen=True)
class DemoDataSettings:
    """
    Demo seed size and lifetime.
    """

    transaction_count: int = 30
    ttl_hours: int = 24
    lookback_days: int = 30


@dataclass(frozen=True)
class SchedulerSettings:
    """
    Background job switches.
    """

    enabled: bool = True
    demo_purge_interval_minutes: int = 60
    weekly_report_day_of_week: str = "mon"
    weekly_report_hour: int = 9


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    return IngestionSettings(
        max_error_sample=max(1, _get_int_env("CSV_INGEST_MAX_ERROR_SAMPLE", 10)),
        log_validation_errors=_get_bool_env("CSV_INGEST_LOG_VALIDATION_ERRORS", True),
        batch_size=max(1, _get_int_env("CSV_INGEST_BATCH_SIZE", 1000)),
    )


@lru_cache(maxsize=1)
def get_revenue_settings() -> RevenueSettings:
    """
    Return cached revenue settings. Out-of-range values fall back to defaults.
    """

    cut_rate = _get_float_env("MARKETPLACE_CUT_RATE", 0.30)
    if not 0.0 <= cut_rate < 1.0:
        cut_rate = 0.30
    default_rate = _get_float_env("DEFAULT_DEVEX_RATE", 0.0035)
    if default_rate <= 0:
        default_rate = 0.0035
    return RevenueSettings(
        marketplace_cut_rate=cut_rate,
        default_devex_rate=default_rate,
        rate_change_notify_percent=max(0.0, _get_float_env("DEVEX_RATE_NOTIFY_PERCENT", 5.0)),
    )


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """
    Return cached auth platform settings.
    """

    return AuthSettings(
        base_url=_get_optional_str_env("AUTH_BASE_URL") or _get_optional_str_env("SUPABASE_URL"),
        api_key=_get_optional_str_env("AUTH_API_KEY") or _get_optional_str_env("SUPABASE_ANON_KEY"),
        timeout_seconds=max(1.0, _get_float_env("AUTH_TIMEOUT_SECONDS", 5.0)),
        admin_api_token=_get_optional_str_env("ADMIN_API_TOKEN"),
    )


@lru_cache(maxsize=1)
def get_stripe_settings() -> StripeSettings:
    """
    Return cached webhook settings.
    """

    return StripeSettings(
        webhook_secret=_get_optional_str_env("STRIPE_WEBHOOK_SECRET"),
        signature_tolerance_seconds=max(1, _get_int_env("STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300)),
    )


@lru_cache(maxsize=1)
def get_demo_data_settings() -> DemoDataSettings:
    return DemoDataSettings(
        transaction_count=max(1, _get_int_env("DEMO_TRANSACTION_COUNT", 30)),
        ttl_hours=max(1, _get_int_env("DEMO_DATA_TTL_HOURS", 24)),
        lookback_days=max(1, _get_int_env("DEMO_LOOKBACK_DAYS", 30)),
    )


@lru_cache(maxsize=1)
def get_scheduler_settings() -> SchedulerSettings:
    return SchedulerSettings(
        enabled=_get_bool_env("SCHEDULER_ENABLED", True),
        demo_purge_interval_minutes=max(1, _get_int_env("DEMO_PURGE_INTERVAL_MINUTES", 60)),
        weekly_report_day_of_week=_get_str_env("WEEKLY_REPORT_DAY_OF_WEEK", "mon"),
        weekly_report_hour=min(23, max(0, _get_int_env("WEEKLY_REPORT_HOUR", 9))),
    )

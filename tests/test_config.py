from __future__ import annotations

import pytest

from app.config import get_revenue_settings, get_scheduler_settings
from app.scheduler.jobs import build_scheduler
from db.config import normalize_postgres_url, resolve_database_url

_URL_VARS = ("DATABASE_URL", "SUPABASE_DB_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL", "ENVIRONMENT")


@pytest.fixture()
def clean_env(monkeypatch):
    for name in _URL_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDatabaseUrl:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("postgres://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
            ("postgresql://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
            ("postgresql+psycopg://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_postgres_url(raw) == expected

    def test_database_url_wins(self, clean_env) -> None:
        clean_env.setenv("DATABASE_URL", "postgres://a/primary")
        clean_env.setenv("LOCAL_DATABASE_URL", "postgres://a/local")

        assert resolve_database_url() == "postgresql+psycopg://a/primary"

    def test_cloud_url_only_in_cloud_environment(self, clean_env) -> None:
        clean_env.setenv("CLOUD_DATABASE_URL", "postgres://a/cloud")
        clean_env.setenv("LOCAL_DATABASE_URL", "postgres://a/local")

        assert resolve_database_url() == "postgresql+psycopg://a/local"
        clean_env.setenv("ENVIRONMENT", "production")
        assert resolve_database_url() == "postgresql+psycopg://a/cloud"

    def test_nothing_configured(self, clean_env) -> None:
        with pytest.raises(RuntimeError):
            resolve_database_url()


class TestRevenueSettings:
    @pytest.fixture(autouse=True)
    def _fresh_cache(self):
        get_revenue_settings.cache_clear()
        yield
        get_revenue_settings.cache_clear()

    def test_defaults(self, monkeypatch) -> None:
        for name in ("MARKETPLACE_CUT_RATE", "DEFAULT_DEVEX_RATE", "DEVEX_RATE_NOTIFY_PERCENT"):
            monkeypatch.delenv(name, raising=False)

        settings = get_revenue_settings()

        assert settings.marketplace_cut_rate == 0.30
        assert settings.default_devex_rate == 0.0035
        assert settings.rate_change_notify_percent == 5.0

    def test_out_of_range_cut_rate_falls_back(self, monkeypatch) -> None:
        monkeypatch.setenv("MARKETPLACE_CUT_RATE", "1.5")

        assert get_revenue_settings().marketplace_cut_rate == 0.30


class TestScheduler:
    def test_jobs_registered(self, monkeypatch) -> None:
        monkeypatch.setenv("WEEKLY_REPORT_HOUR", "7")
        get_scheduler_settings.cache_clear()
        try:
            scheduler = build_scheduler()
        finally:
            get_scheduler_settings.cache_clear()

        jobs = {job.id: job for job in scheduler.get_jobs()}
        assert set(jobs) == {"demo_purge", "weekly_report"}
        assert "hour='7'" in str(jobs["weekly_report"].trigger)

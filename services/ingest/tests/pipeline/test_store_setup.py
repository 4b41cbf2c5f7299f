"""
Tests for external store plumbing and error reporting setup.

Covers:
- database URL normalization to the asyncpg driver
- external_place upsert key and columns
- Sentry init gating and header scrubbing
"""

from unittest.mock import MagicMock

import pytest

from services.ingest.config import Settings
from services.ingest.db import ExternalPlace, ExternalSource, to_asyncpg_url
from services.ingest.middleware import sentry as sentry_mw
from services.ingest.pipeline.sink import UPSERT_COLUMNS, is_database_url


class TestDatabaseUrl:
    @pytest.mark.parametrize("url, expected", [
        ("postgresql://u:p@db:5432/ingest", "postgresql+asyncpg://u:p@db:5432/ingest"),
        ("postgres://u:p@db/ingest", "postgresql+asyncpg://u:p@db/ingest"),
        ("postgresql+asyncpg://u:p@db/ingest", "postgresql+asyncpg://u:p@db/ingest"),
    ])
    def test_to_asyncpg_url(self, url, expected):
        assert to_asyncpg_url(url) == expected

    def test_is_database_url(self):
        assert is_database_url("postgresql://u:p@db/ingest")
        assert not is_database_url("https://store.example.supabase.co")
        assert not is_database_url("")


class TestModels:
    def test_table_names(self):
        assert ExternalSource.__tablename__ == "external_source"
        assert ExternalPlace.__tablename__ == "external_place"

    def test_upsert_key(self):
        constraints = [c for c in ExternalPlace.__table__.constraints if c.name == "external_place_source_place_key"]
        assert [col.name for col in constraints[0].columns] == ["source_id", "source_place_id"]

    def test_upsert_columns_exist(self):
        columns = set(ExternalPlace.__table__.columns.keys())
        assert set(UPSERT_COLUMNS) <= columns
        assert "source_id" not in UPSERT_COLUMNS


class TestSentry:
    def test_disabled_without_dsn(self, monkeypatch):
        init = MagicMock()
        monkeypatch.setattr(sentry_mw.sentry_sdk, "init", init)

        assert sentry_mw.setup_sentry(Settings(sentry_dsn="")) is False
        init.assert_not_called()

    def test_enabled_with_dsn(self, monkeypatch):
        init = MagicMock()
        monkeypatch.setattr(sentry_mw.sentry_sdk, "init", init)

        settings = Settings(sentry_dsn="https://key@sentry.example/1", node_env="production")
        assert sentry_mw.setup_sentry(settings) is True
        kwargs = init.call_args.kwargs
        assert kwargs["environment"] == "production"
        assert kwargs["send_default_pii"] is False
        assert kwargs["before_send"] is sentry_mw._strip_sensitive_data

    def test_strips_secret_headers(self):
        event = {"request": {"headers": {"Authorization": "Bearer s3cret", "apikey": "k", "Accept": "*/*"}}}
        scrubbed = sentry_mw._strip_sensitive_data(event, {})
        assert scrubbed["request"]["headers"] == {
            "Authorization": "[Filtered]",
            "apikey": "[Filtered]",
            "Accept": "*/*",
        }

    def test_event_without_request(self):
        assert sentry_mw._strip_sensitive_data({"message": "x"}, {}) == {"message": "x"}

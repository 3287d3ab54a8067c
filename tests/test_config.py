"""
Tests for settings, audit logging and service wiring.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from craftlog.audit import AuditLogger
from craftlog.bootstrap import build_services
from craftlog.config import AppSettings, Settings, StoreSettings, get_settings, validate_all_settings
from craftlog.models.audit import AuditEvent, AuditEventType, AuditSeverity
from craftlog.services.receipts import LocalReceiptStorage
from craftlog.services.storage import InMemoryRecordStore, SQLiteRecordStore

from conftest import entry_input, run


@pytest.fixture
def env(monkeypatch, tmp_path):
    """Point every configured path at tmp_path and reset the settings cache."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CRAFTLOG_STORE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CRAFTLOG_RECEIPTS_LOCAL_DIR", str(tmp_path / "receipts"))
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestSettings:
    """Tests for pydantic-settings configuration."""

    def test_defaults(self, env):
        app = AppSettings()
        assert app.app_slug == "craftlog"
        assert app.default_km_rate == 5.0
        assert app.log_level == "INFO"

    def test_env_overrides(self, env, tmp_path):
        env.setenv("CRAFTLOG_LOG_LEVEL", "debug")
        env.setenv("CRAFTLOG_OWNER_ID", "workshop")
        app = AppSettings()
        assert app.log_level == "DEBUG"
        assert app.owner_id == "workshop"
        assert StoreSettings().db_path == tmp_path / "data" / "craftlog.db"

    def test_invalid_values(self, env):
        env.setenv("CRAFTLOG_LOG_LEVEL", "chatty")
        with pytest.raises(PydanticValidationError):
            AppSettings()
        env.setenv("CRAFTLOG_STORE_BACKEND", "postgres")
        with pytest.raises(PydanticValidationError):
            StoreSettings()

    def test_validate_all_settings_skips_unused_cloudinary(self, env):
        results = validate_all_settings()
        assert results["store"] is True
        assert results["app"] is True
        assert "cloudinary" not in results

    def test_validate_all_settings_reports_missing_cloudinary(self, env):
        env.setenv("CRAFTLOG_RECEIPTS_BACKEND", "cloudinary")
        for name in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"):
            env.delenv(name, raising=False)
        results = validate_all_settings()
        assert results["cloudinary"] is False
        assert "cloudinary_error" in results


class TestAuditLogger:
    """Tests for the audit logger."""

    def test_keeps_history(self):
        audit = AuditLogger(keep_history=True)
        audit.log_backup_rejected("UnsupportedVersionError", "Unsupported backup version: 2")
        assert len(audit.events) == 1
        assert audit.events[0].severity == AuditSeverity.WARNING

    def test_log_never_raises(self):
        class BrokenEvent(AuditEvent):
            def to_log_dict(self) -> dict:
                raise RuntimeError("boom")

        audit = AuditLogger()
        event = BrokenEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x")
        assert audit.log(event) is False

    def test_log_returns_true(self):
        audit = AuditLogger()
        event = AuditEvent(event_type=AuditEventType.BACKUP_EXPORTED, description="x")
        assert audit.log(event) is True


class TestBuildServices:
    """Tests for build_services."""

    def test_sqlite_and_local_by_default(self, env, tmp_path):
        services = build_services(Settings())
        try:
            assert isinstance(services.store, SQLiteRecordStore)
            assert isinstance(services.receipts, LocalReceiptStorage)
            assert (tmp_path / "data" / "craftlog.db").exists()
        finally:
            services.close()

    def test_services_share_one_store(self, env):
        env.setenv("CRAFTLOG_STORE_BACKEND", "memory")
        services = build_services(Settings())
        assert isinstance(services.store, InMemoryRecordStore)

        job = run(services.jobs.create({"name": "Roof", "client": "Novak", "defaultHourlyRate": 500}))
        run(services.entries.create_entry(entry_input(job.id)))
        document = run(services.backup.export_full_backup())
        assert len(document["workEntries"]) == 1
        assert run(services.summary.monthly_summary("2025-06")).totals.grand == 3100.0

"""Tests for settings loading and the startup check."""

import pytest

from familybank.config import LedgerSettings, get_settings, validate_all_settings


@pytest.fixture
def fresh_settings(monkeypatch):
    for name in ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestValidateAllSettings:
    """Tests for validate_all_settings."""

    def test_memory_backend_skips_sheets(self, fresh_settings):
        fresh_settings.setenv("FAMILYBANK_STORAGE_BACKEND", "memory")
        results = validate_all_settings()
        assert results["ledger"] is True
        assert "google_sheets" not in results

    def test_sheets_backend_reports_missing_config(self, fresh_settings):
        fresh_settings.setenv("FAMILYBANK_STORAGE_BACKEND", "google_sheets")
        results = validate_all_settings()
        assert results["ledger"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results

    def test_bad_ledger_value_is_reported(self, fresh_settings):
        fresh_settings.setenv("FAMILYBANK_SESSION_TTL_MINUTES", "soon")
        results = validate_all_settings()
        assert results["ledger"] is False
        assert "ledger_error" in results


class TestLedgerSettings:
    def test_auto_post_roles_are_normalized(self):
        settings = LedgerSettings(auto_post_roles=" Requester , ADMIN ")
        assert settings.auto_post_roles_set == {"requester", "admin"}

"""
Configuration Management for Family Bank

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Policy switches (such as which roles get their deposits auto-posted) are
explicit settings rather than assumptions buried in business logic.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger and approval-workflow policy."""

    model_config = SettingsConfigDict(
        env_prefix="FAMILYBANK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Auto-post policy
    auto_post_deposits: bool = Field(
        default=True,
        description="Fulfil qualifying deposit requests immediately"
    )
    auto_post_roles: str = Field(
        default="requester",
        description="Comma-separated roles whose deposit requests are auto-posted"
    )
    system_decider_id: str = Field(
        default="system",
        min_length=1,
        description="Decider recorded on auto-posted requests"
    )

    # Input limits
    max_purpose_length: int = Field(
        default=200,
        ge=1,
        le=2000,
        description="Maximum length of a request purpose"
    )
    max_notes_length: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Maximum length of request notes and admin notes"
    )

    # Listings
    recent_transactions_limit: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Default number of transactions in a statement"
    )

    # Sessions
    session_ttl_minutes: int = Field(
        default=720,
        ge=1,
        description="Lifetime of sessions issued by the in-memory gate"
    )

    # Storage and logging
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which persistence backend to use"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def auto_post_roles_set(self) -> set[str]:
        """Get auto-post roles as a set of role values."""
        return {role.strip().lower() for role in self.auto_post_roles.split(",") if role.strip()}


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet, one per collection
    transactions_sheet_name: str = Field(default="Transactions")
    requests_sheet_name: str = Field(default="Requests")
    goal_accounts_sheet_name: str = Field(default="GoalAccounts")
    goal_actions_sheet_name: str = Field(default="GoalLedger")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v

    def sheet_name_for(self, collection: str) -> str:
        """Map a collection name to its worksheet title."""
        return getattr(self, f"{collection}_sheet_name")


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    try:
        ledger = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)
        return results

    if ledger.storage_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results

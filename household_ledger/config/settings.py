"""
Configuration Management for Household Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Ledger constants (currency, tolerances) live next to the optional
Google Sheets sinks so a deployment can see every knob in one place.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Numeric rules of the ledger."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    default_currency: str = Field(
        default="COP",
        min_length=3,
        max_length=3,
        description="Currency code reported on budgets and movements"
    )
    # 0.01 percentage points expressed as a fraction of 1
    percentage_tolerance: Decimal = Field(
        default=Decimal("0.0001"),
        ge=0,
        description="Allowed deviation of percentage sums from 100%"
    )
    percentage_places: int = Field(
        default=8,
        ge=2,
        le=12,
        description="Decimal places kept for stored participant percentages"
    )
    budget_warning_threshold: Decimal = Field(
        default=Decimal("80"),
        gt=0,
        le=100,
        description="Percent of budget used above which a category is 'on track' instead of 'under budget'"
    )

    @property
    def percentage_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.percentage_places)


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets audit trail and movement mirror configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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

    # Sheet names within the spreadsheet
    movements_sheet_name: str = Field(
        default="Movements",
        description="Name of the sheet mirroring created movements"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

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


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    audit_enabled: bool = Field(
        default=True,
        description="Write audit events to the configured sink"
    )
    sheets_mirror_enabled: bool = Field(
        default=False,
        description="Append every created movement to the Movements sheet"
    )


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


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

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries for the groups that failed. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results

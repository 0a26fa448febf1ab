"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TenderLedgerConfig(BaseSettings):
    """Tender ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="TENDER_LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    database_url: str = "sqlite:///tender_ledger.db"  # or memory://

    # Business rules configuration
    currency: str = "INR"
    daily_installment_amount: Decimal = Decimal("100")

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Logbook configuration
    enable_audit_logging: bool = True
    default_actor: str = "admin"

    # Dashboard configuration
    recent_payments_limit: int = 10
    trend_months: int = 6

    @field_validator("daily_installment_amount")
    @classmethod
    def _positive_daily_amount(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("daily_installment_amount must be positive")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value


# Global configuration instance
config = TenderLedgerConfig()


def get_config() -> TenderLedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> TenderLedgerConfig:
    """Reload configuration from environment"""
    global config
    config = TenderLedgerConfig()
    return config

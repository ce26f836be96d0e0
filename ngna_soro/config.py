"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import List, Optional


class NgnaSoroConfig(BaseSettings):
    """N'GNA SÔRÔ! loan engine configuration"""

    # Database configuration
    database_url: str = "sqlite:///ngna_soro.db"  # "memory://" for in-memory storage

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Display
    currency_label: str = "FCFA"

    # Late fee policy
    grace_period_days: int = 7
    late_fee_tier1_days: int = 30  # Last day of the first tier
    late_fee_tier1_rate: Decimal = Decimal("0.05")
    late_fee_tier2_rate: Decimal = Decimal("0.10")

    # Delinquency notifications
    notification_threshold_days: List[int] = [1, 7, 30]
    severe_delinquency_days: int = 30  # Strictly greater is severe

    # Payment reminders
    reminder_days_before: int = 5

    # Notification delivery
    notification_webhook_url: Optional[str] = None  # None = webhook channel disabled
    notification_timeout: float = 10.0

    # Performance configuration
    cache_ttl_seconds: int = 300  # 5 minutes default

    class Config:
        env_prefix = "NGNA_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = NgnaSoroConfig()


def get_config() -> NgnaSoroConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> NgnaSoroConfig:
    """Reload configuration from environment"""
    global config
    config = NgnaSoroConfig()
    return config

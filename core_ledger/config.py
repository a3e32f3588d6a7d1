"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings


class LedgerConfig(BaseSettings):
    """Ledger configuration"""

    # Business rules configuration
    min_opening_deposit: Decimal = Decimal("100.00")
    min_balance_savings: Decimal = Decimal("100.00")
    min_balance_current: Decimal = Decimal("0.00")
    daily_withdrawal_limit: Decimal = Decimal("50000.00")
    account_number_base: int = 1_000_000_000

    # Security configuration
    admin_user: str = "admin"
    admin_default_password: str = "admin123"  # Change with set_admin_password
    pbkdf2_iterations: int = 100_000
    pbkdf2_key_length: int = 32  # bytes (256 bits)

    # Persistence configuration
    state_file: str = "bank_data.json"
    state_backend: str = "json"  # json or sqlite

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config

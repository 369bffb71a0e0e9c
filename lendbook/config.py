"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LendbookConfig(BaseSettings):
    """Lendbook loan administration configuration"""

    # Storage configuration
    use_sqlite: bool = True
    database_path: str = "lendbook.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Money
    default_currency: str = "PHP"

    # Lending policy limits
    min_loan_amount: str = "1000.00"
    max_loan_amount: str = "10000000.00"
    min_loan_term_months: int = 1
    max_loan_term_months: int = 60

    # Dashboard
    collection_series_months: int = 6
    recent_loans_limit: int = 5

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "LENDBOOK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LendbookConfig()


def get_config() -> LendbookConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LendbookConfig:
    """Reload configuration from environment"""
    global config
    config = LendbookConfig()
    return config

"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./payroll_ledger.db"

    # External Services
    employee_directory_url: str = "http://localhost:8003"

    # Service
    service_name: str = "payroll-ledger"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 5.0

    # Advance policy defaults (cents)
    default_max_advance_cents: int = 300_000  # $3000
    min_advance_cents: int = 5_000  # $50
    default_weekly_repayment_limit_cents: int = 50_000  # $500
    default_max_repayment_weeks: int = 26
    max_repayment_weeks_ceiling: int = 52

    # Escrow
    default_escrow_target_cents: int = 300_000  # $3000


settings = Settings()

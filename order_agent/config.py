"""
Configuration management using Pydantic settings.
Loads process-level settings (paths, timeouts, polling limits, logging) from environment variables.
The store credentials and vendor the agent polls for live in the persisted AgentConfig instead.
"""
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # Application Configuration
    app_environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""  # Empty logs to stdout

    # Local storage
    data_dir: str = "data"
    processed_orders_file: str = "processed_orders.json"
    config_file: str = "config.json"
    order_history_dir: str = "logs/orders"

    # Remote API
    request_timeout_seconds: float = 20.0
    verify_ssl: bool = True
    max_retry_attempts: int = 3
    retry_backoff_multiplier: float = 2.0
    retry_initial_delay_seconds: float = 1.0

    # Polling
    default_check_interval_seconds: int = 60
    min_check_interval_seconds: int = 10
    orders_page_size: int = 20
    fetch_all_page_size: int = 50
    vendor_lookup_page_size: int = 100
    vendor_detection_sample_size: int = 10

    # Processed-order ledger bounds
    ledger_max_size: int = 1000
    ledger_retain_size: int = 500

    # Order history
    order_history_retention_days: int = 7
    order_history_load_limit: int = 50
    timezone: str = "UTC"

    # Local control API
    control_api_host: str = "127.0.0.1"
    control_api_port: int = 8765

    # Fernet key used to encrypt the store password at rest (optional)
    config_encryption_key: str = ""

    # Slack alerts for print/fetch failures (optional)
    slack_webhook_url: str = ""
    slack_alerts_enabled: str = "false"

    # Printing
    print_width: int = 48
    print_command: str = "lp"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    @property
    def processed_orders_path(self) -> Path:
        return self.data_path / self.processed_orders_file

    @property
    def config_path(self) -> Path:
        return self.data_path / self.config_file


# Global settings instance
settings = Settings()

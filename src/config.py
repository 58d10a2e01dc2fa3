"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "SmartCoach"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Local user store ---
    database_url: str = ""  # empty = identity lookups always fall back

    # --- Fitrockr (health provider) ---
    fitrockr_base_url: str = "https://api-02.fitrockr.com/v1"
    fitrockr_tenant: str = ""
    fitrockr_api_key: str = ""
    fitrockr_page_size: int = 100

    # --- Text generation ---
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    openai_base_url: str = "https://api.openai.com/v1"
    message_language: str = "Dutch"
    default_message: str = "Here's your daily health update!"

    # --- Notification backend ---
    notify_auth_url: str = ""
    notify_url: str = ""
    notify_auth_email: str = ""
    notify_auth_password: str = ""

    # --- Outbound HTTP ---
    http_timeout_seconds: float = 30.0

    # --- Scheduling ---
    scheduler_timezone: str | None = None  # None = host local time
    start_automation: bool = False
    sweep_hour: int = 0
    sweep_minute: int = 0
    manual_lookback_days: int = 7

    # --- Audit log ---
    audit_log_capacity: int = 500
    audit_query_limit: int = 200

    # --- CORS ---
    cors_origins: list[str] = ["*"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()

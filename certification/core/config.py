from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "Certification Workflow"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./certification.db"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = False
    log_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 5

    # Workflow (fees, revision quota, lead times)
    workflow_config_path: Optional[str] = None

    # Collaborators; unset URLs fall back to log-only delivery
    payment_webhook_url: Optional[str] = None
    scheduling_webhook_url: Optional[str] = None
    certificate_webhook_url: Optional[str] = None
    notification_webhook_url: Optional[str] = None
    collaborator_token: Optional[str] = None
    webhook_timeout: int = 30

    # Outbox
    max_delivery_attempts: int = 5
    dispatch_batch_size: int = 100

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CERTIFICATION_",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()

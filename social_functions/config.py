from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the social functions service"""

    # Application settings
    service_name: str = "social-functions"
    log_level: str = "INFO"
    environment: str = "dev"
    app_name: str = "Social Connect"

    # Firebase settings
    firebase_secret: Optional[str] = None
    firebase_project_id: Optional[str] = None

    # AWS S3 settings
    aws_region: str = "ap-southeast-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_s3_bucket_name: str = "social-connect-media"
    aws_s3_endpoint_url: Optional[str] = None
    # Persistent media links: CDN base when set, otherwise this service's /media proxy
    media_base_url: Optional[str] = None
    public_base_url: str = "http://localhost:8080"
    media_url_expiration: int = 3600  # presigned redirect target lifetime

    # Image derivative settings
    thumbnail_size: int = 200
    optimized_max_edge: int = 1920
    image_quality: int = 85

    # Expiry settings
    story_ttl_hours: int = 24
    token_ttl_days: int = 60

    # Firestore batches hold at most 500 writes
    story_sweep_limit: int = 250
    token_sweep_limit: int = 500

    # Schedules (crontab syntax)
    story_cleanup_schedule: str = "0 * * * *"
    story_cleanup_timezone: str = "UTC"
    token_cleanup_schedule: str = "0 0 * * *"
    token_cleanup_timezone: str = "Asia/Riyadh"

    # Notification settings
    default_locale: str = "ar"
    click_action: str = "FLUTTER_NOTIFICATION_CLICK"
    push_max_concurrency: int = 100

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def is_production_environment(self) -> bool:
        return self.environment.lower() in ("prod", "production")


settings = Settings()

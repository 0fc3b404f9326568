"""Application configuration"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Trial Notification Engine"
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    # database
    DATABASE_URL: str
    DB_ECHO: bool = False
    SSL_CA_PATH: Optional[str] = None

    # auth
    SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Email
    RESEND_API_KEY: Optional[str] = None
    FROM_EMAIL: str = "Trial Notifications <notifications@example.com>"
    EMAIL_NOTIFICATIONS_ENABLED: bool = True

    # Frontend
    APP_URL: str = "http://localhost:3000"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # 通知
    PROTOCOL_CACHE_TTL_SECONDS: int = 10 * 60
    NOTIFICATION_LIST_DEFAULT_LIMIT: int = 50

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


settings = Settings()

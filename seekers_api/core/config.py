# seekers_api/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import Field
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)

    # Application Settings
    APP_NAME: str = "Seekers API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # Database Settings
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./seekers.db")

    # Security Settings
    SECRET_KEY: str = Field(default="change-me-in-prod", alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60
    PASSWORD_HASH_ROUNDS: int = 10
    SESSION_COOKIE_NAME: str = "session"
    COOKIE_SECURE: bool = False

    # CORS Settings
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")
    ALLOWED_METHODS: str = os.environ.get("ALLOWED_METHODS", "GET,POST,PUT,DELETE,OPTIONS")
    ALLOWED_HEADERS: str = os.environ.get("ALLOWED_HEADERS", "*")
    CORS_ALLOW_CREDENTIALS: bool = True

    # Request limits
    MAX_REQUEST_SIZE: int = 1 * 1024 * 1024  # 1MB
    GZIP_MIN_SIZE: int = 500

    # Email (Brevo transactional API)
    BREVO_API_KEY: str = os.environ.get("BREVO_API_KEY", "")
    FROM_EMAIL: str = "noreply@seductiveseekers.com"
    FROM_NAME: str = "Seductive Seekers"
    SIGNUP_OTP_TEMPLATE_ID: Optional[int] = None
    LOGIN_OTP_TEMPLATE_ID: Optional[int] = None
    RESET_PASSWORD_OTP_TEMPLATE_ID: Optional[int] = None
    EMAIL_SEND_TIMEOUT_SEC: float = 30.0

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60
    REDIS_URL: Optional[str] = os.environ.get("REDIS_URL", None)

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Helper methods for list envs
    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def allowed_methods_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_METHODS)

    @property
    def allowed_headers_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_HEADERS)

@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    # Normalize ALLOWED_ORIGINS if provided as comma-separated string env var CORS_ORIGINS
    cors_env = os.environ.get("CORS_ORIGINS")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s

settings: Settings = get_settings()

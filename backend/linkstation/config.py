from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from pydantic import field_validator, model_validator
import sys


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Link Station"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"  # TRACE, DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL
    LOG_TO_FILE: bool = True
    LOG_DIR: str = "logs"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Store backend: auto, memory, rest, redis
    STORE_BACKEND: str = "auto"
    UPSTASH_REDIS_KV_REST_API_URL: str = ""
    UPSTASH_REDIS_KV_REST_API_TOKEN: str = ""
    REDIS_URL: str = ""
    STORE_HTTP_TIMEOUT: float = 5.0

    # Admin
    # Seeds the stored admin password hash on first start; empty disables admin login
    ADMIN_PASSWORD: str = ""
    ADMIN_TOKEN_TTL_SECONDS: int = 30 * 60

    # User timeout (heartbeat / room actions refresh last activity)
    USER_TIMEOUT_SECONDS: int = 30 * 60
    USER_WARNING_SECONDS: int = 29 * 60

    # Room timeout (only game actions refresh room activity, not heartbeats)
    ZOMBIE_ROOM_TIMEOUT_SECONDS: int = 2 * 60 * 60
    ROOM_WARNING_SECONDS: int = 2 * 60 * 60 - 60

    # Cleanup job
    CLEANUP_ENABLED: bool = True
    CLEANUP_INTERVAL_SECONDS: int = 5 * 60

    # Short-lived facts
    DELETED_ROOM_TTL_SECONDS: int = 10 * 60
    MARKER_TTL_SECONDS: int = 10 * 60

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("STORE_BACKEND")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Only known backend names are accepted."""
        v = v.lower().strip()
        if v not in ("auto", "memory", "rest", "redis"):
            raise ValueError(
                f"STORE_BACKEND must be one of auto, memory, rest, redis (got {v!r})"
            )
        return v

    @field_validator("ADMIN_TOKEN_TTL_SECONDS", "DELETED_ROOM_TTL_SECONDS", "MARKER_TTL_SECONDS")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        """Stored facts always expire; a TTL of 0 would be refused by the store."""
        if v <= 0:
            raise ValueError("TTL settings must be positive")
        return v

    @model_validator(mode="after")
    def validate_warning_windows(self) -> "Settings":
        """Warnings must fire before the corresponding timeout."""
        if self.USER_WARNING_SECONDS >= self.USER_TIMEOUT_SECONDS:
            raise ValueError("USER_WARNING_SECONDS must be less than USER_TIMEOUT_SECONDS")
        if self.ROOM_WARNING_SECONDS >= self.ZOMBIE_ROOM_TIMEOUT_SECONDS:
            raise ValueError("ROOM_WARNING_SECONDS must be less than ZOMBIE_ROOM_TIMEOUT_SECONDS")
        return self

    @property
    def rest_store_configured(self) -> bool:
        return bool(self.UPSTASH_REDIS_KV_REST_API_URL and self.UPSTASH_REDIS_KV_REST_API_TOKEN)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Exits the process if configuration is invalid.
    """
    try:
        return Settings()
    except Exception as e:
        print(f"\n{'='*70}")
        print(f"CONFIGURATION ERROR: {e}")
        print(f"{'='*70}\n")
        sys.exit(1)


settings = get_settings()

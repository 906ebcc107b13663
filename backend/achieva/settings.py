"""Application settings using Pydantic.

Provides configuration management for security, CORS, polling and cache
tuning. Values are read from environment variables at import time.
"""
import os
from typing import List
from pydantic import BaseModel

DEV_SECRET = "dev-secret-change-in-production"  # pragma: allowlist secret


class Settings(BaseModel):
    """Application settings with validation."""

    # Security settings
    JWT_SECRET: str = DEV_SECRET
    JWT_TTL_SECONDS: int = 3600
    DEV_MODE: bool = True

    # CORS settings
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8081"]

    # Storage / database
    STORAGE_PATH: str = "storage"
    DATABASE_URL: str = ""
    LOG_FILE: str = "storage/app.log"

    # Rate limiting
    RATE_LIMIT_WRITE: int = 120  # per minute
    RATE_LIMIT_DEFAULT: int = 300  # per minute

    # Polling endpoints (seconds)
    MESSAGE_POLL_INTERVAL: float = 2.0
    COMMENT_POLL_INTERVAL: float = 3.0
    POLL_MAX_WAIT: float = 25.0

    # In-process caches
    PROFILE_CACHE_TTL: int = 300
    GOAL_CACHE_TTL: int = 120
    PROFILE_CACHE_MAX: int = 500
    GOAL_CACHE_MAX: int = 1000

    def __init__(self, **data):
        # Load from environment variables
        env_data = {}
        for field_name, field in type(self).model_fields.items():
            env_value = os.getenv(field_name)
            if env_value is None:
                continue
            if field.annotation is bool:
                env_data[field_name] = env_value.lower() in ('true', '1', 'yes')
            elif field.annotation == List[str]:
                env_data[field_name] = [item.strip() for item in env_value.split(',') if item.strip()]
            elif field.annotation is int:
                env_data[field_name] = int(env_value)
            elif field.annotation is float:
                env_data[field_name] = float(env_value)
            else:
                env_data[field_name] = env_value

        # Merge environment data with provided data
        merged_data = {**env_data, **data}
        super().__init__(**merged_data)

        if not self.DATABASE_URL:
            self.DATABASE_URL = f"sqlite:///{os.path.join(self.STORAGE_PATH, 'achieva.db')}"

        # Validate JWT secret in production
        if not self.DEV_MODE and (len(self.JWT_SECRET) < 32 or self.JWT_SECRET == DEV_SECRET):
            raise ValueError("JWT_SECRET must be at least 32 characters in production mode")


# Global settings instance
settings = Settings()

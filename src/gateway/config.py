"""
Configuration

Settings are read from environment variables once and cached.
"""

import os
from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field

__version__ = "0.1.0"


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseModel):
    """Runtime settings for the gateway persistence layer and its server."""
    database_url: str = Field(default="sqlite:///gateway.db")
    migration_components: List[str] = Field(default_factory=lambda: ["compliance", "gateway"])
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.environ.get("DATABASE_URL", "sqlite:///gateway.db"),
            migration_components=_split(os.environ.get("MIGRATION_COMPONENTS", "compliance,gateway")),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", 8000)),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            json_logs=os.environ.get("JSON_LOGS", "false").lower() == "true",
            cors_origins=_split(os.environ.get("CORS_ORIGINS", "*")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings built from the environment."""
    return Settings.from_env()


__all__ = ["Settings", "get_settings"]

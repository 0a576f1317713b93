"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "crm-assistant"
    app_env: str = "dev"
    app_debug: bool = False
    log_level: str = "INFO"
    app_id: str = "default-app-id"
    default_user_id: str = "local-user"
    storage_backend: Literal["memory", "postgres"] = "memory"
    database_url: str = ""
    llm_model: str = "gemini-2.0-flash"
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    llm_timeout_s: float = Field(default=30.0, ge=0.5)
    gemini_api_key: str = ""

    model_config = SettingsConfigDict(
        env_prefix="CRM_ASSISTANT_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("CRM_DATABASE_URL", "")

    def resolved_gemini_api_key(self) -> str:
        return self.gemini_api_key or os.getenv("GEMINI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

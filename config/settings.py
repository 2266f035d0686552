"""Application settings and configuration management."""
from __future__ import annotations

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    STORE_BACKEND: str = Field(default="memory", pattern="^(memory|sqlite)$")

    DEFAULT_LANGUAGE: str = "en"
    DEFAULT_JOB_TITLE: str = "Software Engineer"
    MAX_USER_MESSAGES: int = Field(default=8, ge=1)

    AI_PROVIDER: str = Field(default="mock", pattern="^(mock|llm)$")
    AI_REQUEST_TIMEOUT_S: float = Field(default=30.0, gt=0)
    LLM_CONFIG_PATH: str = Field(default="app_config.json")

    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
    )

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()

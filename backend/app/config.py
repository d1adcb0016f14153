"""
Configuration settings using Pydantic Settings.
"""

from pathlib import Path
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings
from functools import lru_cache

import os

BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    DATABASE_PATH: str = "database/inkwell.db"
    STORAGE_KEY: str = "notes-storage"

    DEFAULT_NOTE_TITLE: str = "Untitled Note"
    AUTOSAVE_DELAY_SECONDS: float = 0.5

    # Most recent settled messages fed back into the prompt. 0 disables the
    # window and sends the whole thread.
    CONTEXT_WINDOW_MESSAGES: int = Field(default=4, ge=0)
    PLACEHOLDER_TEXT: str = "Thinking..."
    ASSISTANT_FAILURE_MESSAGE: str = "Sorry, I encountered an error while processing your request."

    GENERATION_PROVIDER: str = "gemini"
    GENERATION_TIMEOUT_SECONDS: float = 30.0
    GENERATION_MAX_RETRIES: int = 2
    GENERATION_RETRY_BASE_SECONDS: float = 0.5
    GENERATION_RETRY_MAX_SECONDS: float = 4.0

    GEMINI_API_KEY: str = os.environ.get("GEMINI_API_KEY") or ""
    GEMINI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_MODEL: str = "gemini-2.0-flash"

    BACKBOARD_API_KEY: str = os.environ.get("BACKBOARD_API_KEY") or ""
    BACKBOARD_LLM_PROVIDER: str = "google"
    BACKBOARD_MODEL_NAME: str = "gemini-2.0-flash"

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    DEBUG: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @model_validator(mode="after")
    def resolve_relative_paths(self):
        db_path = Path(self.DATABASE_PATH)
        if not db_path.is_absolute():
            self.DATABASE_PATH = str((BASE_DIR / db_path).resolve())

        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    :return: Cached Settings instance
    :rtype: Settings
    """
    return Settings()


settings = get_settings()

"""
Configuration — Pydantic v2 Settings (env / .env)
=================================================

Purpose
-------
Centralized, strongly-typed application configuration using:
- Pydantic v2 `BaseSettings` for environment-driven values
- `pydantic-settings` v2 for `.env` loading and model config

Load Order & Behavior
---------------------
- Values are read from the environment; if not present, `.env` is used.
- Missing required fields raise a validation error at import time.
- `extra="ignore"`: unknown env vars are ignored (not an error).

Usage
-----
from tutorbot.database.config.config import settings

# Example
database_url = settings.DATABASE_URL
openai_model = settings.OPEN_AI_MODEL

Security
--------
- Never commit secrets or the `.env` file to source control.
- Prefer runtime environment variables in production (K8s/Secrets Manager/etc.).
"""


from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file. Provides strongly typed access to environment values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    FRONTEND_URL: str = Field(..., description="Base URL of the frontend client application (CORS origin).")
    DATABASE_URL: str = Field(..., description="SQLAlchemy database URL (e.g., `postgresql+psycopg2://...`, `sqlite:///./tutor.db`).")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(..., description="Duration (in minutes) before access tokens expire.")
    API_KEY: str = Field(..., description="OpenAI API key used by the completion/classification oracle.")
    SECRET_KEY: str = Field(..., description="Secret key for signing tokens.")
    ALGORITHM: str = Field(..., description="Algorithm used for JWT signing (e.g., `HS256`).")
    OPEN_AI_MODEL: str = Field(..., description="Chat model streaming tutor replies (e.g., `gpt-4o-mini`).")
    CLASSIFIER_MODEL: str = Field("gpt-4o", description="Chat model used for reliance classification and feedback.")
    INIT_MODE: str = Field("runtime", description="If `runtime`, create tables and the oracle during app startup.")
    LOG_LEVEL: str = Field("INFO", description="Root logging level.")
    TURN_CHAR_CAP: int = Field(4000, description="Maximum characters of a single cleaned turn sent to the oracle.")
    TRANSCRIPT_CHAR_BUDGET: int = Field(24000, description="Total character budget of the transcript sent to the oracle (oldest dropped first).")
    COLLAPSE_THRESHOLD: int = Field(3, description="Assistant turns at or above this reliance level are collapsed/locked.")
    FEEDBACK_THRESHOLD: int = Field(3, description="Automatic feedback is requested when the max observed level reaches this value.")
    EXCHANGE_TIMEOUT_SECONDS: float = Field(0, description="Per-exchange streaming deadline; 0 disables it.")

# Singleton instance of Settings, ready to be imported across the app
settings = Settings()
"""Defines a Settings object that contains the contents of the .env file"""

"""Veritas configuration — loaded from environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "VERITAS_", "env_file": ".env"}

    # LLM
    google_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    request_timeout: float = 300.0
    transcription_temperature: float = 0.2
    analysis_temperature: float = 0.1
    chat_temperature: float = 0.2

    # Transcript sanitizer: what to do when a marker jumps back in time
    time_policy: Literal["lenient", "skip", "truncate"] = "lenient"

    # Citation excerpts
    citation_tolerance_seconds: int = 2
    citation_context_before: int = 1
    citation_context_after: int = 6

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]


settings = Settings()

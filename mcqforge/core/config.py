from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, field_validator
from typing import List, Optional

from mcqforge.core.errors import ConfigurationError


# Values shipped in sample .env files that must never reach a provider.
PLACEHOLDER_CREDENTIALS = {
    "your_api_key_here",
    "your-api-key",
    "your_gemini_api_key",
    "changeme",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── AI Providers ──────────────────────────────────────────────────────────
    AI_PROVIDER: str = "gemini"

    @field_validator("AI_PROVIDER")
    @classmethod
    def validate_ai_provider(cls, v: str) -> str:
        allowed = {"gemini", "groq"}
        if v.lower() not in allowed:
            raise ValueError(f"AI_PROVIDER must be one of {allowed}, got '{v}'")
        return v.lower()

    # Google (Gemini)
    GOOGLE_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    )
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # Groq (Llama 3)
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    # ── Sampling ──────────────────────────────────────────────────────────────
    TOP_K: int = 40
    TOP_P: float = 0.95
    MAX_OUTPUT_TOKENS: int = 8192
    AI_TIMEOUT_SECONDS: int = 120

    # ── Generation backend (used by MCQSession) ───────────────────────────────
    GENERATION_BACKEND: str = "local"

    @field_validator("GENERATION_BACKEND")
    @classmethod
    def validate_generation_backend(cls, v: str) -> str:
        allowed = {"local", "remote"}
        if v.lower() not in allowed:
            raise ValueError(f"GENERATION_BACKEND must be one of {allowed}, got '{v}'")
        return v.lower()

    MCQ_BACKEND_URL: Optional[str] = None
    MCQ_BACKEND_API_KEY: Optional[str] = None
    BACKEND_TIMEOUT_SECONDS: int = 180

    # ── Content extraction ────────────────────────────────────────────────────
    EXTRACTION_TIMEOUT_SECONDS: float = 15.0
    MIN_CONTENT_CHARS: int = 100
    MAX_CONTENT_CHARS: int = 8000

    # ── Core ──────────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:5174",
        "http://localhost:3000",
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def require_credential(value: Optional[str], name: str) -> str:
    """Return a usable credential or raise ConfigurationError."""
    cleaned = (value or "").strip()
    if not cleaned or cleaned.lower() in PLACEHOLDER_CREDENTIALS:
        raise ConfigurationError(f"{name} not configured in environment")
    return cleaned


settings = Settings()

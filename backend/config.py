# backend/config.py
"""
Runtime configuration for the interview coaching backend.

Values come from the process environment, optionally seeded from a `.env` file
that sits next to this module. A single Settings object is built once and handed
to the services that need it.
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PATH = Path(__file__).parent / ".env"

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={value!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


class Settings(BaseModel):
    """Process-wide configuration."""

    ai_provider: str = "openai"
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    groq_base_url: Optional[str] = None
    deepgram_api_key: Optional[str] = None

    question_model: str = "gpt-4o-mini"
    voice_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 30.0
    voice_response_timeout_seconds: float = 45.0
    max_generation_calls: int = Field(default=5, ge=1)
    llm_log_enabled: bool = False

    tts_model: str = "tts-1"
    tts_voice: str = "nova"
    tts_speed: float = 1.1

    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            load_env_file: Load backend/.env first (existing variables win)

        Returns:
            Settings instance
        """
        if load_env_file:
            load_dotenv(dotenv_path=ENV_PATH)

        origins = os.getenv("CORS_ORIGINS")
        cors_origins = (
            [o.strip() for o in origins.split(",") if o.strip()]
            if origins else list(DEFAULT_CORS_ORIGINS)
        )

        return cls(
            ai_provider=(os.getenv("AI_PROVIDER") or "openai").strip().lower(),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            groq_base_url=os.getenv("GROQ_BASE_URL") or None,
            deepgram_api_key=os.getenv("DEEPGRAM_API_KEY") or None,
            question_model=os.getenv("QUESTION_MODEL") or "gpt-4o-mini",
            voice_model=os.getenv("VOICE_MODEL") or "gpt-4o-mini",
            llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0),
            voice_response_timeout_seconds=_env_float("VOICE_RESPONSE_TIMEOUT_SECONDS", 45.0),
            max_generation_calls=max(1, _env_int("MAX_GENERATION_CALLS", 5)),
            llm_log_enabled=_env_bool("LLM_LOG_ENABLED"),
            tts_model=os.getenv("TTS_MODEL") or "tts-1",
            tts_voice=os.getenv("TTS_VOICE") or "nova",
            tts_speed=_env_float("TTS_SPEED", 1.1),
            cors_origins=cors_origins,
        )


# ==================== Singleton Instance ====================

_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide Settings, building it on first use."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.from_env()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached Settings so the next call re-reads the environment."""
    global _settings_instance
    _settings_instance = None

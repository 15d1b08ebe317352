"""
Gateway configuration loaded from environment variables.
Uses pydantic-settings for validation and type coercion.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_QUEUE: tuple[str, ...] = (
    # detail-heavy prompts first, speed/cost backups after
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-pro-latest",
    "gemini-flash-latest",
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
)

SDXL_SCHEDULERS: tuple[str, ...] = (
    "DDIM",
    "DPMSolverMultistep",
    "HeunDiscrete",
    "KarrasDPM",
    "K_EULER_ANCESTRAL",
    "K_EULER",
    "PNDM",
)


class Settings(BaseSettings):
    """Gateway settings loaded from the environment or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────────────────
    APP_NAME: str = "wava-gateway"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGIN: str = "*"

    # ── Gemini (text generation) ─────────────────────────────────────────
    GEMINI_API_KEY: str = ""
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"
    GEMINI_TIMEOUT_S: float = 60.0
    GEMINI_MODEL_QUEUE: list[str] = list(DEFAULT_MODEL_QUEUE)
    GEMINI_MAX_RETRIES_PER_MODEL: int = 2
    GEMINI_TEMPERATURE: float = 0.7
    GEMINI_MAX_OUTPUT_TOKENS: int = 2048
    GEMINI_TOP_P: float = 0.95
    GEMINI_TOP_K: int = 64

    # ── Replicate (image generation) ─────────────────────────────────────
    REPLICATE_API_TOKEN: str = ""
    REPLICATE_API_URL: str = "https://api.replicate.com/v1/predictions"
    REPLICATE_TIMEOUT_S: float = 30.0
    REPLICATE_PROXY_URL: str = "http://localhost:8000/api/replicate"
    REPLICATE_POLL_INTERVAL_S: float = 1.5
    REPLICATE_MAX_POLL_ATTEMPTS: int = 60
    SDXL_SCHEDULER: str = "K_EULER"

    @field_validator("SDXL_SCHEDULER")
    @classmethod
    def _check_scheduler(cls, value: str) -> str:
        if value not in SDXL_SCHEDULERS:
            raise ValueError(
                f"SDXL_SCHEDULER must be one of {', '.join(SDXL_SCHEDULERS)}; got {value!r}"
            )
        return value

    @field_validator("GEMINI_MAX_RETRIES_PER_MODEL", "REPLICATE_MAX_POLL_ATTEMPTS")
    @classmethod
    def _check_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()

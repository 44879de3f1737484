"""
blogsite/config.py — Pydantic BaseSettings configuration
Secrets are optional at load time: a missing secret disables its feature
(fail closed) instead of preventing the app from starting.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"

    # ── Admin authentication ──────────────────────────────────────────────────
    # No defaults: an unset password or session secret denies all admin access.
    admin_password: Optional[str] = None
    admin_session_secret: Optional[str] = None
    admin_session_max_age_seconds: int = 24 * 60 * 60

    # ── Programmatic import ───────────────────────────────────────────────────
    api_key: Optional[str] = None

    # ── Sanity content store ──────────────────────────────────────────────────
    sanity_project_id: Optional[str] = None
    sanity_dataset: str = "production"
    sanity_api_version: str = "2024-01-01"
    sanity_api_token: Optional[str] = None
    sanity_timeout_seconds: float = 15.0

    # ── Request limits ────────────────────────────────────────────────────────
    max_import_bytes: int = 10 * 1024 * 1024
    max_markdown_chars: int = 5 * 1024 * 1024
    max_title_length: int = 200
    max_excerpt_length: int = 500
    max_post_id_length: int = 100
    max_slug_length: int = 200

    # ── Editor ────────────────────────────────────────────────────────────────
    editor_image_width: int = 800

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Use this everywhere."""
    return Settings()

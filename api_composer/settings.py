from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Engine defaults, overridable through `API_COMPOSER_*` environment variables."""

    model_config = SettingsConfigDict(env_prefix="API_COMPOSER_", extra="ignore")

    max_depth: int = Field(default=4, ge=1)
    preview_limit: int = Field(default=3, ge=1)
    ambiguity_policy: Literal["first-match", "error"] = "first-match"
    log_level: str = "INFO"
    acquisition_workers: int = Field(default=4, ge=1)


@lru_cache()
def get_settings() -> EngineSettings:
    return EngineSettings()

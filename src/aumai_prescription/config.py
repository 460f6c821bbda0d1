"""Engine settings loaded from the environment.

Every field can be overridden with an ``AUMAI_PRESCRIPTION_`` prefixed
environment variable, e.g. ``AUMAI_PRESCRIPTION_SEED=7``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


class EngineSettings(BaseSettings):
    """Runtime configuration for the evaluator, advice simulator and CLI."""

    model_config = SettingsConfigDict(
        env_prefix="AUMAI_PRESCRIPTION_",
        extra="ignore",
    )

    log_level: str = Field(default="WARNING", description="Root log level for the CLI")
    seed: Optional[int] = Field(default=None, description="Seed for the advice tie-break RNG")
    combination_warning_threshold: int = Field(
        default=4096,
        ge=1,
        description="Warn when a rule's evidence combinations exceed this count",
    )
    strict_validation: bool = Field(
        default=True,
        description="Reject malformed rule sets before evaluating from the CLI",
    )

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LEVELS:
            raise ValueError(f"unknown log level: {value!r}")
        return level


@lru_cache
def get_settings() -> EngineSettings:
    """Return the process-wide settings, read once from the environment."""
    return EngineSettings()

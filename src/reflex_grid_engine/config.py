"""Engine configuration using pydantic-settings.

Settings come from built-in defaults, overridden by environment
variables with the ``REFLEX_GRID_`` prefix, e.g.::

    REFLEX_GRID_CONFLICT_POLICY=prompt
    REFLEX_GRID_LOG_LEVEL=DEBUG

Keyword arguments passed to :class:`~reflex_grid_engine.store.GridStore`
take precedence over both.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reflex_grid_engine.types import ConflictPolicy


class GridSettings(BaseSettings):
    """Defaults applied to every new grid store."""

    model_config = SettingsConfigDict(
        env_prefix="REFLEX_GRID_",
        extra="ignore",
    )

    conflict_policy: ConflictPolicy = Field(
        default=ConflictPolicy.PREFER_LOCAL_EDITS,
        description="How push updates interact with cells under local edit",
    )
    density: Literal["compact", "standard", "comfortable"] = Field(
        default="standard",
        description="Initial row density",
    )
    page_size: int = Field(default=25, ge=1, description="Initial pagination page size")
    log_level: str = Field(default="WARNING", description="Package log level")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> GridSettings:
    """Return the process-wide settings (read once from the environment)."""
    return GridSettings()


def clear_settings_cache() -> None:
    """Forget cached settings so the next :func:`get_settings` re-reads the environment."""
    get_settings.cache_clear()

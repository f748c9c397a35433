"""Typed configuration models for cloudenvelope.

Provides Pydantic validation for cloudenvelope.toml, catching typos, wrong
types and invalid values at startup rather than at runtime.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("cloudenvelope.toml")


class RuntimeConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = False
    log_dir: str | None = None
    module_levels: dict[str, str] | None = None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class CloudEnvelopeConfig(BaseModel):
    """Root configuration model for cloudenvelope.toml."""

    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    model_config = {"extra": "allow"}


def load_config(path: Path | None = None) -> CloudEnvelopeConfig:
    """Load and validate cloudenvelope.toml, returning a typed config.

    Missing file or sections are filled with defaults.
    Raises pydantic.ValidationError on invalid values.
    """
    config_path = path or DEFAULT_CONFIG_PATH
    raw: dict[str, Any] = {}

    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    config = CloudEnvelopeConfig.model_validate(raw)
    log.debug(
        "config.loaded path=%s log_level=%s log_json=%s log_dir=%s",
        config_path,
        config.runtime.log_level,
        config.runtime.log_json,
        config.runtime.log_dir,
    )
    return config

"""Configuration: a YAML file plus ``ROUTEDOC_*`` environment overrides.

Precedence, highest first:
    1. Environment variables (``ROUTEDOC_SAMPLES_PER_TYPE``, ``ROUTEDOC_SEED``, ...)
    2. The YAML file passed to ``load_config``
    3. Defaults
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class RouteDocConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ROUTEDOC_", extra="ignore")

    # document info
    title: str = ""
    version: str = ""
    description: str | None = None
    servers: list[str] = []

    # conformance
    samples_per_type: int = 100
    seed: int | None = None

    log_format: Literal["console", "json"] = "console"
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # file values arrive as init kwargs; the environment beats them
        return env_settings, init_settings


def load_config(path: Path | None = None) -> RouteDocConfig:
    """Read ``path`` (if given); environment variables override its values."""
    data = {}
    if path is not None:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
    return RouteDocConfig(**data)

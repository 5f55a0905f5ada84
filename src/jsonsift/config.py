"""Typed configuration — single source of truth for all jsonsift runtime settings.

Loading priority (highest to lowest):
  1. Explicit init kwargs (programmatic overrides, CLI flags, tests)
  2. Environment variables: JSONSIFT_<SECTION>__<KEY>  (double-underscore separator)
  3. Config file: JSONSIFT_CONFIG_FILE env var, or conf/settings.toml at project root
  4. Model field defaults

Example env overrides:
  JSONSIFT_OUTPUT__MODE=jsonl
  JSONSIFT_OUTPUT__STRINGIFIER=default
  JSONSIFT_HELPERS__PATH=/home/me/helpers.py
  JSONSIFT_DEBUG=true
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# Derive project root from this file's location: src/jsonsift/config.py → ../../..
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_DEFAULT_CONFIG = _PROJECT_ROOT / "conf" / "settings.toml"

OutputMode = Literal["raw", "json", "json_pretty", "jsonl"]
Stringifier = Literal["stable", "default"]


def _config_file() -> Path:
    """Resolve the config file path.

    Returns JSONSIFT_CONFIG_FILE if set (raises FileNotFoundError if missing),
    otherwise returns the bundled default at conf/settings.toml.
    """
    if env_val := os.environ.get("JSONSIFT_CONFIG_FILE"):
        p = Path(env_val)
        if not p.is_file():
            raise FileNotFoundError(f"JSONSIFT_CONFIG_FILE not found: {p}")
        return p
    return _DEFAULT_CONFIG


# ---------------------------------------------------------------------------
# Section models — each maps to a [section] in conf/settings.toml
# ---------------------------------------------------------------------------


class OutputSettings(BaseModel):
    """How evaluated results are written to stdout."""

    mode: OutputMode = "json_pretty"
    # "stable" sorts object keys; "default" keeps insertion order.
    stringifier: Stringifier = "stable"
    color: Literal["auto", "always", "never"] = "auto"


class IngestSettings(BaseModel):
    """Controls line-mode ingestion of non-document input."""

    # Add a _lineError field to records degraded by a failed parse.
    annotate_errors: bool = False
    # Emit a pretty-printed object left open at end of input as a degraded
    # record instead of dropping it.
    emit_dangling_block: bool = False


class HelpersSettings(BaseModel):
    """User-supplied helper functions made available to expressions."""

    path: Path | None = None


class LoggingSettings(BaseModel):
    """Logging verbosity and output format."""

    level: str = "WARNING"
    format: Literal["json", "text"] = "text"

    @field_validator("level", mode="before")
    @classmethod
    def _normalise_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"level must be one of {sorted(valid)}, got {v!r}")
        return v.upper()


# ---------------------------------------------------------------------------
# Root settings class
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """All jsonsift runtime settings, fully resolved and validated."""

    debug: bool = False
    output: OutputSettings = OutputSettings()
    ingest: IngestSettings = IngestSettings()
    helpers: HelpersSettings = HelpersSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_prefix="JSONSIFT_",
        env_nested_delimiter="__",  # JSONSIFT_OUTPUT__MODE → output.mode
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Exclude dotenv and file-secret sources; jsonsift uses TOML + env only.
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=_config_file()),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide Settings instance (loaded once, cached thereafter).

    Tests should call ``get_settings.cache_clear()`` before each test that
    patches environment variables or the config file.
    """
    return Settings()

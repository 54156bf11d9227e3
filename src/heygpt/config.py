"""Configuration resolution.

Sources, lowest to highest precedence: defaults, ``~/.heygpt.toml``,
environment variables, command-line overrides. The result is a frozen
``Config`` handed to the transport; nothing in the core reads the
environment on its own.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    SettingsError,
    TomlConfigSettingsSource,
)

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_API_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 60.0
CONFIG_FILENAME = ".heygpt.toml"


class Config(BaseSettings):
    # Env names are case sensitive so a stray MODEL or API_KEY is never read
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("api_key", "OPENAI_API_KEY"),
    )
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        validation_alias=AliasChoices("api_base_url", "OPENAI_API_BASE", "OPENAI_BASE_URL"),
    )
    model: str = Field(
        default=DEFAULT_MODEL,
        validation_alias=AliasChoices("model", "HEYGPT_MODEL"),
    )
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    top_p: Optional[float] = Field(default=None, ge=0, le=1)
    stream: bool = True
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    model_config = SettingsConfigDict(
        case_sensitive=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # First source wins: flags, then environment, then the config file
        return (init_settings, env_settings, TomlConfigSettingsSource(settings_cls))


def default_config_path(env: Optional[Mapping[str, str]] = None) -> Path:
    if env is None:
        env = os.environ
    override = env.get("HEYGPT_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.home() / CONFIG_FILENAME


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "config"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def load_config(
    overrides: Optional[Mapping[str, Any]] = None,
    path: Optional[Path] = None,
) -> Config:
    """Merge every configuration source into a single ``Config``.

    ``overrides`` holds command-line values; ``None`` entries are ignored so
    unset flags do not mask lower sources.
    """
    if path is None:
        path = default_config_path()

    class FileConfig(Config):
        model_config = SettingsConfigDict(toml_file=path)

    values = {k: v for k, v in (overrides or {}).items() if v is not None}
    try:
        config = FileConfig(**values)
    except (tomllib.TOMLDecodeError, OSError) as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except SettingsError as e:
        raise ConfigError(f"cannot read configuration: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"invalid configuration ({path}): {_describe(e)}") from e

    logger.debug(f"Resolved config model={config.model} base={config.api_base_url}")
    return config

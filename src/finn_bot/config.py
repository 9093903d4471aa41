"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

DEFAULT_SYSTEM_PROMPT = "You are Finn, a helpful AI assistant."


def _unset_placeholder(value: Optional[str]) -> Optional[str]:
    """An uninterpolated ``${VAR}`` means the variable was never set."""
    if value is None or _ENV_VAR_PATTERN.fullmatch(value.strip()):
        return None
    return value.strip() or None


class AnthropicConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_retries: int = 0
    timeout: int = 120
    max_tokens: int = 4096

    @field_validator("api_key")
    @classmethod
    def check_api_key(cls, value: Optional[str]) -> Optional[str]:
        return _unset_placeholder(value)


class OpenRouterConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: str = "https://openrouter.ai/api/v1"
    public_url: str = "https://example.com"  # sent as HTTP-Referer
    app_title: str = "Finn Slack Bot"
    max_retries: int = 0
    timeout: int = 120
    max_tokens: int = 4096

    @field_validator("api_key")
    @classmethod
    def check_api_key(cls, value: Optional[str]) -> Optional[str]:
        return _unset_placeholder(value)


class StorageConfig(BaseModel):
    db_path: str = "./data/finn.db"


class CatalogConfig(BaseModel):
    path: Optional[str] = None  # defaults to openrouter-models.json beside the database
    max_age_hours: float = 24


class AppConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = False
    data_dir: str = "./data"
    default_model: str = "claude-opus"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    anthropic: Optional[AnthropicConfig] = None
    openrouter: OpenRouterConfig = Field(default_factory=OpenRouterConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    @property
    def catalog_path(self) -> Path:
        if self.catalog.path:
            return Path(self.catalog.path)
        return Path(self.storage.db_path).parent / "openrouter-models.json"


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced as ${data_dir} elsewhere in the file
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(raw_data.get("data_dir", "./data"))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)

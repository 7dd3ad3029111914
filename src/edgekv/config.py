"""Client configuration with environment variable substitution."""

import json
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from edgekv.exceptions import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")

DEFAULT_BASE_URL = "https://api.fastly.com"
DEFAULT_TIMEOUT_SECONDS = 30.0

ENV_API_KEY = "EDGEKV_API_KEY"
ENV_BASE_URL = "EDGEKV_BASE_URL"
ENV_TIMEOUT = "EDGEKV_TIMEOUT"


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables."""
    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class ClientConfig(BaseModel):
    """Settings for talking to the store service."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    user_agent: str | None = None  # Defaults to edgekv/<version>

    @classmethod
    def from_file(cls, path: str | Path) -> "ClientConfig":
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        with path.open() as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientConfig":
        """Load configuration from a dictionary."""
        data = substitute_env_vars(data)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from EDGEKV_* environment variables."""
        data: dict[str, Any] = {}
        if ENV_API_KEY in os.environ:
            data["api_key"] = os.environ[ENV_API_KEY]
        if ENV_BASE_URL in os.environ:
            data["base_url"] = os.environ[ENV_BASE_URL]
        if ENV_TIMEOUT in os.environ:
            data["timeout_seconds"] = os.environ[ENV_TIMEOUT]
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

"""Config Loader - Loads named client configurations from YAML.

A clients file maps target names to ClientConfig settings. String values
may reference environment variables as ``${ENV_VAR}``, so credentials stay
out of the file:

    targets:
      local:
        base_url: http://localhost:8474
        user: admin
        password: ${API_PASSWORD}
        headers:
          Content-Type: application/json
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from rest_api.models import ClientConfig


class ConfigError(Exception):
    """Raised when configuration loading fails."""


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ClientsFile(BaseModel):
    """Top-level structure of a clients file."""

    model_config = ConfigDict(extra="forbid")

    targets: dict[str, ClientConfig] = Field(description="Target name -> connection settings")


def load_clients_file(config_path: Path) -> ClientsFile:
    """Load a clients file from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _substitute_env_vars(raw_config)

    try:
        return ClientsFile.model_validate(raw_config)
    except Exception as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def get_client_config(clients: ClientsFile, name: str) -> ClientConfig:
    """Return the settings for target *name*."""
    if name not in clients.targets:
        available = ", ".join(clients.targets.keys()) or "(none)"
        raise ConfigError(f"Target '{name}' not found in config. Available: {available}")
    return clients.targets[name]


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)

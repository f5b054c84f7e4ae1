"""TOML configuration loader for divban.

Example ``divban.toml``::

    [timeouts]
    backup = 600
    restore = 1800

    [services.immich]
    data_dir = "/srv/immich"
    user = "immich"
    uid = 1100
    backup = { type = "postgres", container = { kind = "separate", name = "immich-postgres" }, database = "immich", user = "immich" }

    [services.actual]
    data_dir = "/srv/actual"
    user = "actual"
    uid = 1101
    backup = { type = "sqlite-stop", container = "actual", sqlitePath = "server-files/account.sqlite", includeFiles = ["user-files/"] }
"""

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from divban.config.models import DivbanConfig, ServiceProfile
from divban.errors import ConfigError, ErrorCode

DEFAULT_CONFIG_PATH = Path("/etc/divban/divban.toml")
CONFIG_ENV_VAR = "DIVBAN_CONFIG"


def default_config_path() -> Path:
    """Config path from ``DIVBAN_CONFIG``, else ``/etc/divban/divban.toml``."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_divban_config(config_path: Path | None = None) -> DivbanConfig:
    """Load divban configuration from a TOML file.

    Args:
        config_path: Path to divban.toml (default: see ``default_config_path``)

    Returns:
        DivbanConfig with all services

    Raises:
        ConfigError: CONFIG_NOT_FOUND, CONFIG_PARSE_ERROR or
            CONFIG_VALIDATION_ERROR
    """
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        raise ConfigError(
            ErrorCode.CONFIG_NOT_FOUND,
            f"Config not found: {config_path}",
            path=str(config_path),
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(
            ErrorCode.CONFIG_PARSE_ERROR,
            f"Invalid TOML in {config_path}: {e}",
            path=str(config_path),
        ) from e

    try:
        return DivbanConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            ErrorCode.CONFIG_VALIDATION_ERROR,
            f"Invalid configuration in {config_path}:\n{e}",
            path=str(config_path),
        ) from e


def get_service_profile(config: DivbanConfig, name: str) -> ServiceProfile:
    """Look up a service profile by name.

    Raises:
        ConfigError: CONFIG_VALIDATION_ERROR if the service is not declared
    """
    if name not in config.services:
        available = ", ".join(config.services.keys()) or "(none)"
        raise ConfigError(
            ErrorCode.CONFIG_VALIDATION_ERROR,
            f"Service '{name}' not found. Available: {available}",
        )
    return config.services[name]

"""divban: backup and restore for rootless, systemd-managed containers.

Provides per-backend backup strategies (PostgreSQL, SQLite with container
stop, FreshRSS CLI), TOML service configuration and a small CLI.

Usage:
    from divban import backup_service, restore_service, BackupOptions
    from divban import load_divban_config, get_service_profile
    from divban import DivbanError, ErrorCode
"""

from divban.version import DIVBAN_VERSION

__version__ = DIVBAN_VERSION

# Errors
from divban.errors import (
    BackupError,
    ConfigError,
    DivbanError,
    ErrorCode,
    GeneralError,
    HostSystemError,
    ServiceError,
)

# Config
from divban.config.loader import get_service_profile, load_divban_config
from divban.config.models import BackupConfig, DivbanConfig, ServiceProfile

# Backup
from divban.backup.models import BackupOptions, RestoreOptions
from divban.backup.workflow import backup_service, restore_service

__all__ = [
    # Errors
    "DivbanError",
    "ErrorCode",
    "GeneralError",
    "ConfigError",
    "HostSystemError",
    "ServiceError",
    "BackupError",
    # Config
    "load_divban_config",
    "get_service_profile",
    "BackupConfig",
    "DivbanConfig",
    "ServiceProfile",
    # Backup
    "BackupOptions",
    "RestoreOptions",
    "backup_service",
    "restore_service",
]

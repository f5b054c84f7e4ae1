"""Configuration management: service profiles, backup configs, TOML loading.

Usage:
    >>> from divban.config import load_divban_config, BackupConfig, DivbanConfig
"""

from divban.config.loader import get_service_profile, load_divban_config
from divban.config.models import (
    BackupConfig,
    ContainerLocation,
    DivbanConfig,
    FreshRssCliBackupConfig,
    PostgresBackupConfig,
    SeparateContainer,
    ServiceContainer,
    ServiceProfile,
    SqliteStopBackupConfig,
    TimeoutSettings,
)

__all__ = [
    "load_divban_config",
    "get_service_profile",
    "BackupConfig",
    "ContainerLocation",
    "DivbanConfig",
    "FreshRssCliBackupConfig",
    "PostgresBackupConfig",
    "SeparateContainer",
    "ServiceContainer",
    "ServiceProfile",
    "SqliteStopBackupConfig",
    "TimeoutSettings",
]

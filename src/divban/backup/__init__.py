"""Backup and restore for containerized service databases.

One strategy per backend (PostgreSQL dump, stopped SQLite, FreshRSS CLI),
selected by the service's backup config.  Archives are compressed tars
carrying a ``divban.backup.metadata.json`` entry.

Usage:
    from divban.backup import BackupOptions, backup_service, restore_service
"""

from divban.backup.compat import (
    BACKUP_METADATA_FILENAME,
    CURRENT_BACKUP_SCHEMA_VERSION,
    validate_backup_compatibility,
)
from divban.backup.files import list_backup_files, validate_filename
from divban.backup.models import (
    ArchiveMetadata,
    BackupOptions,
    CollectedFiles,
    RestoreOptions,
)
from divban.backup.workflow import backup_service, restore_service

__all__ = [
    "ArchiveMetadata",
    "BackupOptions",
    "CollectedFiles",
    "RestoreOptions",
    "backup_service",
    "restore_service",
    "list_backup_files",
    "validate_filename",
    "validate_backup_compatibility",
    "BACKUP_METADATA_FILENAME",
    "CURRENT_BACKUP_SCHEMA_VERSION",
]

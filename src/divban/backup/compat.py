"""Backup schema/producer version compatibility.

- Schema version: format of the metadata entry.  Restoring an
  unsupported schema version is a hard error.
- Producer version: divban release that wrote the archive.  A newer
  producer only logs a warning.

When to bump ``CURRENT_BACKUP_SCHEMA_VERSION``:
- Major: breaking change, older divban cannot read
- Minor: new optional field, older divban can still read
- Patch: metadata bug fix, no structural change
"""

import logging

from packaging.version import InvalidVersion, Version

from divban.errors import BackupError, ErrorCode

logger = logging.getLogger(__name__)

PRODUCER_NAME = "divban"

BACKUP_METADATA_FILENAME = "divban.backup.metadata.json"

CURRENT_BACKUP_SCHEMA_VERSION = "1.0.0"

# Add older versions here to keep restoring them
SUPPORTED_BACKUP_SCHEMA_VERSIONS: tuple[str, ...] = ("1.0.0",)


def _parse(value: object) -> Version | None:
    if not isinstance(value, str):
        return None
    try:
        return Version(value)
    except InvalidVersion:
        return None


def is_schema_supported(schema_version: object) -> bool:
    """Exact string match; "1.0" or "v1.0.0" are not "1.0.0"."""
    return isinstance(schema_version, str) and schema_version in SUPPORTED_BACKUP_SCHEMA_VERSIONS


def is_producer_newer(producer_version: str, current_version: str) -> bool:
    return Version(producer_version) > Version(current_version)


def validate_backup_compatibility(
    schema_version: object,
    producer_version: object,
    current_version: str,
) -> None:
    """Check that an archive's versions allow restoring it.

    Raises:
        BackupError: RESTORE_FAILED for an unsupported schema version or an
            unparseable producer version.
    """
    if not is_schema_supported(schema_version):
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Backup schema version {schema_version} is not supported. "
            f"Supported versions: {', '.join(SUPPORTED_BACKUP_SCHEMA_VERSIONS)}",
        )

    if _parse(producer_version) is None:
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Backup producer version {producer_version!r} is not a valid version",
        )

    if is_producer_newer(str(producer_version), current_version):
        logger.warning(
            "Backup created by divban %s (newer than %s). "
            "Some features may not be fully restored.",
            producer_version,
            current_version,
        )

"""Generic backup and restore driven by a service's backup config.

The config's ``type`` selects a strategy; everything around it (archive
naming, metadata, compression, validation) is shared.

Usage:
    from divban.backup.workflow import backup_service, restore_service
    from divban.backup.models import BackupOptions

    options = BackupOptions(
        service_name="immich", data_dir="/srv/immich", user="immich", uid=1100
    )

    # Backup
    path = await backup_service(profile.backup, options)

    # Restore
    await restore_service(path, profile.backup, options)
"""

import json
import logging
from typing import Any, assert_never

from divban.backup.compat import (
    BACKUP_METADATA_FILENAME,
    PRODUCER_NAME,
    validate_backup_compatibility,
)
from divban.backup.files import create_backup_timestamp
from divban.backup.models import (
    BackupOptions,
    RestoreOptions,
    RestoreStrategyOptions,
    create_backup_metadata,
)
from divban.backup.strategies import (
    FORCE_REQUIRED_MESSAGE,
    BackupStrategy,
    freshrss_cli_strategy,
    postgres_strategy,
    sqlite_stop_strategy,
)
from divban.config.models import (
    BackupConfig,
    FreshRssCliBackupConfig,
    PostgresBackupConfig,
    SqliteStopBackupConfig,
)
from divban.errors import BackupError, ErrorCode, GeneralError
from divban.system.archive import (
    compression_extension,
    create_archive,
    detect_compression_format,
    extract_archive,
)
from divban.system.fs import ensure_directory, file_exists, read_bytes, write_bytes
from divban.types import join_path, user_id_to_group_id
from divban.version import DIVBAN_VERSION

logger = logging.getLogger(__name__)

BACKUP_SUBDIR = "backups"


def select_strategy(config: BackupConfig) -> BackupStrategy[Any]:
    """Strategy paired with ``config.type``.

    A config variant missing from this match fails type checking at
    ``assert_never``.
    """
    match config:
        case PostgresBackupConfig():
            return postgres_strategy
        case SqliteStopBackupConfig():
            return sqlite_stop_strategy
        case FreshRssCliBackupConfig():
            return freshrss_cli_strategy
        case _:
            assert_never(config)


def backup_filename(service: str, infix: str, timestamp: str, extension: str) -> str:
    return f"{service}-{infix}-backup-{timestamp}.tar{extension}"


async def backup_service(config: BackupConfig, options: BackupOptions) -> str:
    """Back up one service into ``<data_dir>/backups/``.

    Collects the strategy's files, packs them with a metadata entry and
    writes the archive atomically.  Nothing is written to the final path
    unless collecting and packing both succeed.

    Args:
        config: The service's backup config (selects the strategy).
        options: Service identity, timeouts and ``force``.

    Returns:
        Absolute path of the written archive.

    Raises:
        GeneralError: ``force`` is required but was not given.
        BackupError: BACKUP_FAILED from collecting or packing.
        ServiceError: Container stop/start failed.
        HostSystemError: Command execution or filesystem failure.
    """
    strategy = select_strategy(config)
    if strategy.requires_force and not options.force:
        raise GeneralError(ErrorCode.GENERAL_ERROR, FORCE_REQUIRED_MESSAGE)

    backup_dir = join_path(options.data_dir, BACKUP_SUBDIR)
    filename = backup_filename(
        options.service_name,
        strategy.filename_infix,
        create_backup_timestamp(),
        compression_extension(strategy.compression),
    )
    backup_path = join_path(backup_dir, filename)

    await ensure_directory(
        backup_dir, uid=options.uid, gid=user_id_to_group_id(options.uid)
    )

    logger.info("Collecting files for %s (%s)", options.service_name, config.type)
    collected = await strategy.collect(config, options)

    if BACKUP_METADATA_FILENAME in collected.files:
        raise BackupError(
            ErrorCode.BACKUP_FAILED,
            f"Collected files contain reserved name {BACKUP_METADATA_FILENAME}",
        )

    metadata = create_backup_metadata(options.service_name, collected.file_list)
    archive = await create_archive(
        collected.files,
        compress=strategy.compression,
        metadata=metadata.to_json_dict(),
        metadata_name=BACKUP_METADATA_FILENAME,
    )

    await write_bytes(backup_path, archive)
    logger.info(
        "Backup written: %s (%d files, %d bytes)",
        backup_path,
        len(collected.file_list),
        len(archive),
    )
    return backup_path


def _parse_metadata(files: dict[str, bytes]) -> dict[str, Any]:
    raw = files.get(BACKUP_METADATA_FILENAME)
    if raw is None:
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Invalid backup: missing {BACKUP_METADATA_FILENAME}",
        )
    try:
        metadata = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Invalid backup: malformed {BACKUP_METADATA_FILENAME}: {e}",
        ) from e
    if not isinstance(metadata, dict):
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Invalid backup: malformed {BACKUP_METADATA_FILENAME}: not a JSON object",
        )
    return metadata


def validate_metadata(metadata: dict[str, Any], service: str) -> None:
    """Check provenance, target service and version compatibility.

    Raises:
        BackupError: RESTORE_FAILED naming the mismatched field.
    """
    producer = metadata.get("producer")
    if producer != PRODUCER_NAME:
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Backup was created by '{producer or 'unknown'}', not '{PRODUCER_NAME}'",
        )

    backup_service_name = metadata.get("service")
    if backup_service_name != service:
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Backup is for '{backup_service_name}', not '{service}'",
        )

    validate_backup_compatibility(
        metadata.get("schemaVersion"),
        metadata.get("producerVersion"),
        DIVBAN_VERSION,
    )


async def restore_service(
    backup_path: str, config: BackupConfig, options: RestoreOptions
) -> None:
    """Restore one service from an archive written by ``backup_service``.

    Raises:
        BackupError: BACKUP_NOT_FOUND if ``backup_path`` does not exist;
            RESTORE_FAILED for a corrupt archive, missing/invalid metadata,
            provenance or service mismatch, incompatible versions, or a
            failed strategy restore.
        ServiceError: Container stop/start failed.
        HostSystemError: Command execution or filesystem failure.
    """
    strategy = select_strategy(config)

    if not await file_exists(backup_path):
        raise BackupError(
            ErrorCode.BACKUP_NOT_FOUND,
            f"Backup file not found: {backup_path}",
            path=backup_path,
        )

    data = await read_bytes(backup_path)
    compression = detect_compression_format(backup_path) or strategy.compression
    files = await extract_archive(data, decompress=compression)

    metadata = _parse_metadata(files)
    validate_metadata(metadata, options.service_name)

    logger.info(
        "Restoring %s from %s (%d entries)",
        options.service_name,
        backup_path,
        len(files) - 1,
    )
    strategy_options = RestoreStrategyOptions(**options.model_dump(), files=files)
    await strategy.restore(config, strategy_options)
    logger.info("Restore complete: %s", options.service_name)

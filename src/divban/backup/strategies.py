"""Backup strategy implementations for containerized databases.

- ``PostgresStrategy``: hot backup via ``pg_dumpall`` inside the container.
- ``SqliteStopStrategy``: cold backup -- stops the unit, snapshots the
  SQLite file with the engine's serialize API, restarts the unit.
  Requires ``force``.
- ``FreshRssCliStrategy``: hot backup via FreshRSS's own PHP CLI export,
  then archives the whole data directory.

Every strategy implements the ``BackupStrategy`` protocol; the workflow
selects one by the config's ``type`` discriminant.
"""

import asyncio
import logging
import os
import sqlite3
from pathlib import Path
from typing import Protocol, TypeVar, assert_never

from divban.backup.compat import BACKUP_METADATA_FILENAME
from divban.backup.files import (
    collect_files_with_content,
    validate_filenames,
    write_validated_files,
)
from divban.backup.models import (
    BackupOptions,
    CollectedFiles,
    Compression,
    RestoreStrategyOptions,
)
from divban.config.models import (
    ContainerLocation,
    FreshRssCliBackupConfig,
    PostgresBackupConfig,
    SeparateContainer,
    ServiceContainer,
    SqliteStopBackupConfig,
)
from divban.errors import BackupError, DivbanError, ErrorCode, GeneralError
from divban.retry import HEAVY_RETRY, is_transient_system_error, retry_async
from divban.system.exec import ExecResult, exec_as_user
from divban.system.fs import file_exists
from divban.system.systemctl import start_service, stop_service
from divban.types import join_path

logger = logging.getLogger(__name__)

C = TypeVar("C", contravariant=True)

# Time for the container runtime to release file handles after a stop
SETTLE_DELAY_SECONDS = 1.0

POSTGRES_DUMP_ENTRY = "database.sql"

FORCE_REQUIRED_MESSAGE = (
    "SQLite databases require stopping the container for safe backup. "
    "Use --force to stop the container and create a consistent backup."
)


class BackupStrategy(Protocol[C]):
    """Contract every backend strategy implements."""

    filename_infix: str
    compression: Compression
    requires_force: bool

    async def collect(self, config: C, options: BackupOptions) -> CollectedFiles:
        """Produce the archive payload for ``config``."""
        ...

    async def restore(self, config: C, options: RestoreStrategyOptions) -> None:
        """Put the extracted archive entries back in place."""
        ...


# ============================================================================
# Helpers
# ============================================================================


async def exec_with_retry(
    user: str,
    uid: int,
    command: list[str],
    timeout: float,
    capture_stdout: bool = True,
    capture_stderr: bool = True,
    stdin: str | bytes | None = None,
) -> ExecResult:
    """``exec_as_user`` retried on transient failures with ``HEAVY_RETRY``."""
    return await retry_async(
        lambda: exec_as_user(
            user,
            uid,
            command,
            timeout=timeout,
            capture_stdout=capture_stdout,
            capture_stderr=capture_stderr,
            stdin=stdin,
        ),
        schedule=HEAVY_RETRY,
        should_retry=is_transient_system_error,
    )


def resolve_container(service_name: str, location: ContainerLocation) -> str:
    match location:
        case ServiceContainer():
            return service_name
        case SeparateContainer(name=name):
            return name
        case _:
            assert_never(location)


async def settle() -> None:
    await asyncio.sleep(SETTLE_DELAY_SECONDS)


def _unit(container: str) -> str:
    return f"{container}.service"


async def _restart_after_failure(unit: str, user: str, uid: int) -> None:
    """Best-effort restart while another error is propagating."""
    try:
        await start_service(unit, user, uid)
    except DivbanError as e:
        logger.error("Failed to restart %s after error: %s", unit, e)


# ============================================================================
# PostgreSQL Strategy -- hot backup safe
# ============================================================================


class PostgresStrategy:
    filename_infix = "db"
    compression: Compression = "zstd"
    requires_force = False

    async def collect(
        self, config: PostgresBackupConfig, options: BackupOptions
    ) -> CollectedFiles:
        container = resolve_container(options.service_name, config.container)
        logger.info("Dumping PostgreSQL in container %s", container)

        result = await exec_with_retry(
            options.user,
            options.uid,
            ["podman", "exec", container, "pg_dumpall", "-U", config.user, "--clean", "--if-exists"],
            timeout=options.timeouts.backup,
        )
        if result.exit_code != 0:
            raise BackupError(
                ErrorCode.BACKUP_FAILED, f"Database dump failed: {result.stderr}"
            )

        return CollectedFiles(
            files={POSTGRES_DUMP_ENTRY: result.stdout},
            file_list=[POSTGRES_DUMP_ENTRY],
        )

    async def restore(
        self, config: PostgresBackupConfig, options: RestoreStrategyOptions
    ) -> None:
        container = resolve_container(options.service_name, config.container)

        sql_bytes = options.files.get(POSTGRES_DUMP_ENTRY)
        if sql_bytes is None:
            raise BackupError(
                ErrorCode.RESTORE_FAILED,
                f"Missing {POSTGRES_DUMP_ENTRY} in backup archive",
            )

        logger.info("Restoring PostgreSQL database %s in container %s", config.database, container)
        result = await exec_with_retry(
            options.user,
            options.uid,
            ["podman", "exec", "-i", container, "psql", "-U", config.user, "-d", config.database],
            timeout=options.timeouts.restore,
            stdin=sql_bytes,
        )
        # psql keeps going past failed statements; only a nonzero exit that
        # reports an ERROR counts as a failed restore.
        if result.exit_code != 0 and "ERROR" in result.stderr:
            raise BackupError(
                ErrorCode.RESTORE_FAILED, f"Database restore failed: {result.stderr}"
            )


# ============================================================================
# SQLite-Stop Strategy -- requires force to stop the container
# ============================================================================


def _serialize_sqlite(sqlite_path: str) -> bytes:
    uri = Path(sqlite_path).as_uri() + "?mode=ro"
    conn = sqlite3.connect(uri, uri=True)
    try:
        return conn.serialize()
    finally:
        conn.close()


def _export_sqlite(sqlite_path: str, data: bytes) -> None:
    tmp_path = f"{sqlite_path}.divban-restore"
    if os.path.exists(tmp_path):
        os.unlink(tmp_path)
    os.makedirs(os.path.dirname(sqlite_path) or ".", exist_ok=True)

    image = bytearray(data)
    # In-memory databases cannot open WAL-mode images; mark as rollback-journal
    if len(image) >= 20 and image[18] == 2 and image[19] == 2:
        image[18] = image[19] = 1

    conn = sqlite3.connect(":memory:")
    try:
        conn.deserialize(bytes(image))
        conn.execute("VACUUM INTO ?", (tmp_path,))
    finally:
        conn.close()

    # Journals of the replaced database must not be replayed onto the new one
    for suffix in ("-wal", "-shm", "-journal"):
        stale = sqlite_path + suffix
        if os.path.exists(stale):
            os.unlink(stale)
    os.replace(tmp_path, sqlite_path)


async def serialize_sqlite(sqlite_path: str) -> bytes:
    """Snapshot a SQLite file through the engine's serialize API.

    Raises:
        BackupError: BACKUP_FAILED
    """
    try:
        return await asyncio.to_thread(_serialize_sqlite, sqlite_path)
    except (sqlite3.Error, OSError) as e:
        raise BackupError(
            ErrorCode.BACKUP_FAILED, f"Failed to serialize SQLite database: {e}"
        ) from e


async def deserialize_sqlite(sqlite_path: str, data: bytes) -> None:
    """Load a serialized database and export it over ``sqlite_path`` atomically.

    Raises:
        BackupError: RESTORE_FAILED
    """
    try:
        await asyncio.to_thread(_export_sqlite, sqlite_path, data)
    except (sqlite3.Error, OSError) as e:
        raise BackupError(
            ErrorCode.RESTORE_FAILED, f"Failed to restore SQLite database: {e}"
        ) from e


class SqliteStopStrategy:
    filename_infix = "data"
    compression: Compression = "gzip"
    requires_force = True

    async def collect(
        self, config: SqliteStopBackupConfig, options: BackupOptions
    ) -> CollectedFiles:
        if not options.force:
            raise GeneralError(ErrorCode.GENERAL_ERROR, FORCE_REQUIRED_MESSAGE)

        unit = _unit(config.container)
        await stop_service(unit, options.user, options.uid)

        try:
            collected = await self._snapshot(config, options)
        except Exception:
            await _restart_after_failure(unit, options.user, options.uid)
            raise

        await start_service(unit, options.user, options.uid)
        return collected

    async def _snapshot(
        self, config: SqliteStopBackupConfig, options: BackupOptions
    ) -> CollectedFiles:
        await settle()

        sqlite_path = join_path(options.data_dir, config.sqlite_path)
        if not await file_exists(sqlite_path):
            raise BackupError(
                ErrorCode.BACKUP_FAILED, f"SQLite database not found: {sqlite_path}"
            )

        sqlite_data = await serialize_sqlite(sqlite_path)

        exclusions = ["backups/", "backups", config.sqlite_path, *config.exclude]
        additional = await collect_files_with_content(options.data_dir, exclusions)
        included = [
            name
            for name in additional.file_list
            if any(name.startswith(prefix) for prefix in config.include_files)
        ]

        files: dict[str, str | bytes] = {config.sqlite_path: sqlite_data}
        files.update({name: additional.files[name] for name in included})
        return CollectedFiles(files=files, file_list=[config.sqlite_path, *included])

    async def restore(
        self, config: SqliteStopBackupConfig, options: RestoreStrategyOptions
    ) -> None:
        skip = {BACKUP_METADATA_FILENAME, config.sqlite_path}
        validate_filenames(name for name in options.files if name not in skip)

        unit = _unit(config.container)
        await stop_service(unit, options.user, options.uid)

        try:
            await self._put_back(config, options, skip)
        except Exception:
            await _restart_after_failure(unit, options.user, options.uid)
            raise

        await start_service(unit, options.user, options.uid)

    async def _put_back(
        self,
        config: SqliteStopBackupConfig,
        options: RestoreStrategyOptions,
        skip: set[str],
    ) -> None:
        await settle()

        sqlite_bytes = options.files.get(config.sqlite_path)
        if sqlite_bytes is None:
            raise BackupError(
                ErrorCode.RESTORE_FAILED,
                f"Missing {config.sqlite_path} in backup archive",
            )

        await deserialize_sqlite(join_path(options.data_dir, config.sqlite_path), sqlite_bytes)
        written = await write_validated_files(options.data_dir, options.files, skip=skip)
        logger.info("Restored %s and %d additional files", config.sqlite_path, len(written))


# ============================================================================
# FreshRSS CLI Strategy -- hot backup safe via PHP CLI
# ============================================================================


class FreshRssCliStrategy:
    filename_infix = "data"
    compression: Compression = "gzip"
    requires_force = False

    async def collect(
        self, config: FreshRssCliBackupConfig, options: BackupOptions
    ) -> CollectedFiles:
        result = await exec_with_retry(
            options.user,
            options.uid,
            ["podman", "exec", config.container, "./cli/db-backup.php"],
            timeout=options.timeouts.backup,
        )
        if result.exit_code != 0:
            raise BackupError(
                ErrorCode.BACKUP_FAILED, f"FreshRSS backup CLI failed: {result.stderr}"
            )

        # The data directory now holds the CLI's own SQLite exports
        exclusions = ["backups/", "backups", *config.exclude]
        return await collect_files_with_content(options.data_dir, exclusions)

    async def restore(
        self, config: FreshRssCliBackupConfig, options: RestoreStrategyOptions
    ) -> None:
        written = await write_validated_files(
            options.data_dir, options.files, skip={BACKUP_METADATA_FILENAME}
        )
        logger.info("Wrote %d files to %s", len(written), options.data_dir)

        result = await exec_with_retry(
            options.user,
            options.uid,
            ["podman", "exec", config.container, "./cli/db-restore.php"],
            timeout=options.timeouts.restore,
        )
        if result.exit_code != 0:
            raise BackupError(
                ErrorCode.RESTORE_FAILED, f"FreshRSS restore CLI failed: {result.stderr}"
            )


postgres_strategy = PostgresStrategy()
sqlite_stop_strategy = SqliteStopStrategy()
freshrss_cli_strategy = FreshRssCliStrategy()

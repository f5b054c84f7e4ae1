"""File-level helpers for backup and restore.

Covers archive naming, collecting a data directory into memory, and
writing archive entries back under a data directory with path-traversal
checks.
"""

import asyncio
import os
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from divban.backup.models import CollectedFiles
from divban.errors import BackupError, ErrorCode


def create_backup_timestamp(now: datetime | None = None) -> str:
    """Filename-safe UTC timestamp, e.g. ``2026-01-05T10-11-12-123Z``."""
    now = now or datetime.now(timezone.utc)
    iso = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{now.microsecond // 1000:03d}Z"
    )
    return iso.replace(":", "-").replace(".", "-")


# ============================================================================
# Collecting
# ============================================================================


def _is_excluded(path: str, exclude: Iterable[str]) -> bool:
    return any(path.startswith(ex) or path == ex for ex in exclude)


def _collect(directory: str, exclude: list[str]) -> CollectedFiles:
    root = Path(directory)
    names = sorted(
        p.relative_to(root).as_posix()
        for p in root.rglob("*")
        if p.is_file()
    )
    names = [n for n in names if not _is_excluded(n, exclude)]
    files: dict[str, str | bytes] = {n: (root / n).read_bytes() for n in names}
    return CollectedFiles(files=files, file_list=names)


async def collect_files_with_content(
    directory: str, exclude: Iterable[str] = ()
) -> CollectedFiles:
    """Read every regular file under ``directory`` into memory.

    Names are POSIX paths relative to ``directory``, sorted.  A name is
    skipped when it starts with (or equals) any ``exclude`` entry.

    Raises:
        BackupError: BACKUP_FAILED if the directory cannot be read.
    """
    try:
        return await asyncio.to_thread(_collect, directory, list(exclude))
    except OSError as e:
        raise BackupError(
            ErrorCode.BACKUP_FAILED, f"Failed to collect files from {directory}: {e}"
        ) from e


# ============================================================================
# Restore-side validation and writing
# ============================================================================


def is_unsafe_filename(name: str) -> bool:
    """Parent-directory segments, absolute paths and NUL bytes are unsafe."""
    if not name or name.startswith("/") or "\x00" in name:
        return True
    return ".." in name.replace("\\", "/").split("/")


def validate_filename(name: str) -> None:
    if is_unsafe_filename(name):
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Invalid filename in backup archive: {name!r}. "
            "Potential path traversal detected.",
        )


def validate_filenames(names: Iterable[str]) -> None:
    for name in names:
        validate_filename(name)


def _write(data_dir: str, name: str, content: bytes) -> None:
    full_path = os.path.join(data_dir, name)
    parent = os.path.dirname(full_path)
    if parent and os.path.normpath(parent) != os.path.normpath(data_dir):
        os.makedirs(parent, exist_ok=True)
    with open(full_path, "wb") as f:
        f.write(content)


async def write_validated_file(data_dir: str, name: str, content: bytes) -> None:
    """Write one archive entry to ``data_dir/name`` after validating ``name``.

    Raises:
        BackupError: RESTORE_FAILED for an unsafe name or a failed write.
    """
    validate_filename(name)
    try:
        await asyncio.to_thread(_write, data_dir, name, content)
    except OSError as e:
        raise BackupError(
            ErrorCode.RESTORE_FAILED,
            f"Failed to write file {os.path.join(data_dir, name)}: {e}",
        ) from e


async def write_validated_files(
    data_dir: str, files: Mapping[str, bytes], skip: Iterable[str] = ()
) -> list[str]:
    """Write entries one at a time, in archive order.

    All names are validated before the first write, so an archive with a
    single unsafe entry writes nothing.

    Returns:
        Names written.
    """
    skipped = set(skip)
    to_write = [(name, content) for name, content in files.items() if name not in skipped]
    validate_filenames(name for name, _ in to_write)
    for name, content in to_write:
        await write_validated_file(data_dir, name, content)
    return [name for name, _ in to_write]


# ============================================================================
# Listing
# ============================================================================


def list_backup_files(backup_dir: str, pattern: str = "*.tar.*") -> list[str]:
    """Archive names in ``backup_dir``, newest first by modification time.

    A missing directory yields an empty list.
    """
    directory = Path(backup_dir)
    if not directory.is_dir():
        return []
    entries = [p for p in directory.glob(pattern) if p.is_file()]
    entries.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return [p.name for p in entries]

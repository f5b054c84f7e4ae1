"""Async filesystem primitives.

Blocking calls run in a worker thread via ``asyncio.to_thread``; every
failure is mapped to ``HostSystemError`` with a file-specific code.
"""

import asyncio
import os
import tempfile
from pathlib import Path

from divban.errors import ErrorCode, HostSystemError
from divban.retry import SYSTEM_RETRY, is_transient_system_error, retry_async


async def file_exists(path: str) -> bool:
    return await asyncio.to_thread(os.path.isfile, path)


async def read_bytes(path: str) -> bytes:
    """Read a whole file.

    Raises:
        HostSystemError: FILE_READ_FAILED
    """
    try:
        return await asyncio.to_thread(Path(path).read_bytes)
    except OSError as e:
        raise HostSystemError(
            ErrorCode.FILE_READ_FAILED, f"Failed to read {path}: {e}"
        ) from e


def _write_atomic(path: str, data: bytes) -> None:
    directory = os.path.dirname(path) or "."
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".divban-", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


async def write_bytes(path: str, data: bytes) -> None:
    """Write a file atomically: temp file in the same directory, then rename.

    Readers never observe a partially written file, and a failed write
    leaves nothing at ``path``.

    Raises:
        HostSystemError: FILE_WRITE_FAILED
    """
    try:
        await asyncio.to_thread(_write_atomic, path, data)
    except OSError as e:
        raise HostSystemError(
            ErrorCode.FILE_WRITE_FAILED, f"Failed to write {path}: {e}"
        ) from e


def _ensure_directory(path: str, uid: int | None, gid: int | None) -> None:
    os.makedirs(path, exist_ok=True)
    # chown only works (and only matters) when running as root
    if uid is not None and hasattr(os, "geteuid") and os.geteuid() == 0:
        os.chown(path, uid, gid if gid is not None else uid)


async def _ensure_directory_once(path: str, uid: int | None, gid: int | None) -> None:
    try:
        await asyncio.to_thread(_ensure_directory, path, uid, gid)
    except OSError as e:
        raise HostSystemError(
            ErrorCode.DIRECTORY_CREATE_FAILED,
            f"Failed to create directory {path}: {e}",
        ) from e


async def ensure_directory(path: str, uid: int | None = None, gid: int | None = None) -> None:
    """Create ``path`` (and parents) and hand it to ``uid``/``gid``.

    Transient failures (busy device, EAGAIN) are retried with ``SYSTEM_RETRY``.

    Raises:
        HostSystemError: DIRECTORY_CREATE_FAILED
    """
    await retry_async(
        lambda: _ensure_directory_once(path, uid, gid),
        schedule=SYSTEM_RETRY,
        should_retry=is_transient_system_error,
    )

"""In-memory tar archive codec with gzip or zstd compression.

Archives are built and read entirely in memory -- no temp files, no
external ``tar`` process.

Usage:
    from divban.system.archive import create_archive, extract_archive

    data = await create_archive(
        {"database.sql": "-- dump --"},
        compress="zstd",
        metadata={"service": "immich"},
        metadata_name="divban.backup.metadata.json",
    )
    files = await extract_archive(data, decompress="zstd")
"""

import asyncio
import gzip
import io
import json
import tarfile
import time
import zlib
from collections.abc import Mapping
from typing import Any, Literal

import zstandard

from divban.errors import BackupError, ErrorCode

Compression = Literal["gzip", "zstd"]

_COMPRESSION_EXTENSIONS: list[tuple[tuple[str, ...], Compression]] = [
    ((".tar.gz", ".gz"), "gzip"),
    ((".tar.zst", ".zst"), "zstd"),
]


def detect_compression_format(path: str) -> Compression | None:
    """Detect compression from a file extension, ``None`` if unknown."""
    for extensions, fmt in _COMPRESSION_EXTENSIONS:
        if any(path.endswith(ext) for ext in extensions):
            return fmt
    return None


def compression_extension(compress: Compression) -> str:
    return ".zst" if compress == "zstd" else ".gz"


def _add_entry(tar: tarfile.TarFile, name: str, content: bytes, mtime: float) -> None:
    info = tarfile.TarInfo(name=name)
    info.size = len(content)
    info.mtime = int(mtime)
    info.mode = 0o644
    tar.addfile(info, io.BytesIO(content))


def _build(
    files: Mapping[str, str | bytes],
    compress: Compression,
    metadata: dict[str, Any] | None,
    metadata_name: str,
) -> bytes:
    buffer = io.BytesIO()
    now = time.time()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        if metadata is not None:
            _add_entry(tar, metadata_name, json.dumps(metadata, indent=2).encode(), now)
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else bytes(content)
            _add_entry(tar, name, data, now)

    tar_bytes = buffer.getvalue()
    if compress == "zstd":
        return zstandard.ZstdCompressor().compress(tar_bytes)
    return gzip.compress(tar_bytes)


def _decompress(data: bytes, decompress: Compression | None) -> bytes:
    if decompress == "gzip":
        return gzip.decompress(data)
    if decompress == "zstd":
        # Parallel zstd writes one frame per chunk
        reader = zstandard.ZstdDecompressor().stream_reader(
            io.BytesIO(data), read_across_frames=True
        )
        with reader:
            return reader.read()
    return data


def _read(data: bytes, decompress: Compression | None) -> dict[str, bytes]:
    tar_bytes = _decompress(data, decompress)
    result: dict[str, bytes] = {}
    with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r:") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            extracted = tar.extractfile(member)
            if extracted is None:
                continue
            result[member.name] = extracted.read()
    return result


async def create_archive(
    files: Mapping[str, str | bytes],
    compress: Compression,
    metadata: dict[str, Any] | None = None,
    metadata_name: str = "metadata.json",
) -> bytes:
    """Pack ``files`` into a compressed tar.

    The metadata entry (when given) is written first as indented JSON,
    followed by ``files`` in insertion order.  Text content is UTF-8 encoded.
    """
    return await asyncio.to_thread(_build, files, compress, metadata, metadata_name)


async def extract_archive(
    data: bytes, decompress: Compression | None = None
) -> dict[str, bytes]:
    """Unpack a (compressed) tar into an ordered name -> bytes map.

    Only regular files are returned; directories, links and devices are
    skipped.  Nothing touches the filesystem.

    Raises:
        BackupError: RESTORE_FAILED if the data is not a valid archive.
    """
    try:
        return await asyncio.to_thread(_read, data, decompress)
    except (tarfile.TarError, OSError, EOFError, zlib.error, zstandard.ZstdError) as e:
        raise BackupError(
            ErrorCode.RESTORE_FAILED, f"Failed to extract backup archive: {e}"
        ) from e

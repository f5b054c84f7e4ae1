"""Host collaborators: process execution, unit control, filesystem, archives."""

from divban.system.archive import (
    create_archive,
    detect_compression_format,
    extract_archive,
)
from divban.system.exec import ExecResult, exec_as_user, exec_command
from divban.system.fs import ensure_directory, file_exists, read_bytes, write_bytes
from divban.system.systemctl import start_service, stop_service

__all__ = [
    "ExecResult",
    "create_archive",
    "detect_compression_format",
    "ensure_directory",
    "exec_as_user",
    "exec_command",
    "extract_archive",
    "file_exists",
    "read_bytes",
    "start_service",
    "stop_service",
    "write_bytes",
]

"""Error taxonomy for divban operations.

Every failure raised by the library is a ``DivbanError`` subclass carrying an
``ErrorCode``.  Codes are grouped by category and map directly onto process
exit codes via ``to_exit_code``.

Usage:
    from divban.errors import BackupError, ErrorCode

    raise BackupError(ErrorCode.RESTORE_FAILED, "Missing database.sql in backup archive")
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Error codes for all divban operations, organized by category."""

    # General (0-9)
    SUCCESS = 0
    GENERAL_ERROR = 1
    INVALID_ARGS = 2
    ROOT_REQUIRED = 3
    DEPENDENCY_MISSING = 4

    # Config (10-19)
    CONFIG_NOT_FOUND = 10
    CONFIG_PARSE_ERROR = 11
    CONFIG_VALIDATION_ERROR = 12
    CONFIG_MERGE_ERROR = 13

    # System (20-29)
    USER_CREATE_FAILED = 20
    SUBUID_CONFIG_FAILED = 21
    DIRECTORY_CREATE_FAILED = 22
    LINGER_ENABLE_FAILED = 23
    UID_RANGE_EXHAUSTED = 24
    SUBUID_RANGE_EXHAUSTED = 25
    EXEC_FAILED = 26
    FILE_READ_FAILED = 27
    FILE_WRITE_FAILED = 28

    # Service (30-39)
    SERVICE_NOT_FOUND = 30
    SERVICE_START_FAILED = 31
    SERVICE_STOP_FAILED = 32
    SERVICE_ALREADY_RUNNING = 33
    SERVICE_NOT_RUNNING = 34
    SERVICE_RELOAD_FAILED = 35

    # Backup/Restore (50-59)
    BACKUP_FAILED = 50
    RESTORE_FAILED = 51
    BACKUP_NOT_FOUND = 52


def to_exit_code(code: ErrorCode) -> int:
    """Exit codes above 125 have special meaning in POSIX shells."""
    return min(int(code), 125)


def error_code_name(code: int) -> str:
    try:
        return ErrorCode(code).name
    except ValueError:
        return "UNKNOWN"


class DivbanError(Exception):
    """Base class for all divban errors.

    Subclasses restrict ``code`` to their own category; constructing one
    with a foreign code is a programming error and raises ``ValueError``.
    """

    allowed_codes: frozenset[ErrorCode] = frozenset(ErrorCode)

    def __init__(self, code: ErrorCode, message: str) -> None:
        if code not in self.allowed_codes:
            raise ValueError(
                f"{type(self).__name__} cannot carry error code {code!r}"
            )
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def exit_code(self) -> int:
        return to_exit_code(self.code)

    def __str__(self) -> str:
        return self.message


class GeneralError(DivbanError):
    """Caller misuse or invalid input (codes 1-4)."""

    allowed_codes = frozenset(
        {
            ErrorCode.GENERAL_ERROR,
            ErrorCode.INVALID_ARGS,
            ErrorCode.ROOT_REQUIRED,
            ErrorCode.DEPENDENCY_MISSING,
        }
    )


class ConfigError(DivbanError):
    """Configuration loading/validation failures (codes 10-13)."""

    allowed_codes = frozenset(
        {
            ErrorCode.CONFIG_NOT_FOUND,
            ErrorCode.CONFIG_PARSE_ERROR,
            ErrorCode.CONFIG_VALIDATION_ERROR,
            ErrorCode.CONFIG_MERGE_ERROR,
        }
    )

    def __init__(self, code: ErrorCode, message: str, path: str | None = None) -> None:
        super().__init__(code, message)
        self.path = path


class HostSystemError(DivbanError):
    """Process execution and filesystem failures (codes 20-28).

    Named to avoid shadowing the ``SystemError`` builtin.
    """

    allowed_codes = frozenset(c for c in ErrorCode if 20 <= c <= 28)


class ServiceError(DivbanError):
    """Container/unit lifecycle failures (codes 30-35)."""

    allowed_codes = frozenset(c for c in ErrorCode if 30 <= c <= 35)

    def __init__(self, code: ErrorCode, message: str, service: str | None = None) -> None:
        super().__init__(code, message)
        self.service = service


class BackupError(DivbanError):
    """Archive build, validation, and lookup failures (codes 50-52)."""

    allowed_codes = frozenset(
        {
            ErrorCode.BACKUP_FAILED,
            ErrorCode.RESTORE_FAILED,
            ErrorCode.BACKUP_NOT_FOUND,
        }
    )

    def __init__(self, code: ErrorCode, message: str, path: str | None = None) -> None:
        super().__init__(code, message)
        self.path = path

"""Tests for the error taxonomy and exit code mapping."""

import pytest

from divban.errors import (
    BackupError,
    ConfigError,
    DivbanError,
    ErrorCode,
    GeneralError,
    HostSystemError,
    ServiceError,
    error_code_name,
    to_exit_code,
)


class TestErrorCodes:
    """ErrorCode values and exit code mapping."""

    def test_backup_codes(self):
        assert ErrorCode.BACKUP_FAILED == 50
        assert ErrorCode.RESTORE_FAILED == 51
        assert ErrorCode.BACKUP_NOT_FOUND == 52

    def test_exit_code_passthrough(self):
        assert to_exit_code(ErrorCode.RESTORE_FAILED) == 51

    def test_exit_code_capped(self):
        assert to_exit_code(200) == 125

    def test_error_code_name(self):
        assert error_code_name(51) == "RESTORE_FAILED"
        assert error_code_name(99) == "UNKNOWN"


class TestErrorClasses:
    """Each subclass only carries codes from its own category."""

    def test_message_and_code(self):
        err = BackupError(ErrorCode.BACKUP_NOT_FOUND, "Backup file not found: /x", path="/x")
        assert str(err) == "Backup file not found: /x"
        assert err.code == ErrorCode.BACKUP_NOT_FOUND
        assert err.path == "/x"
        assert err.exit_code == 52
        assert isinstance(err, DivbanError)

    @pytest.mark.parametrize(
        "cls, code",
        [
            (GeneralError, ErrorCode.BACKUP_FAILED),
            (ConfigError, ErrorCode.EXEC_FAILED),
            (HostSystemError, ErrorCode.SERVICE_STOP_FAILED),
            (ServiceError, ErrorCode.CONFIG_NOT_FOUND),
            (BackupError, ErrorCode.INVALID_ARGS),
        ],
    )
    def test_foreign_code_rejected(self, cls, code):
        with pytest.raises(ValueError):
            cls(code, "nope")

    def test_service_error_carries_service(self):
        err = ServiceError(ErrorCode.SERVICE_START_FAILED, "boom", service="actual.service")
        assert err.service == "actual.service"

    def test_host_system_error_is_not_builtin(self):
        err = HostSystemError(ErrorCode.EXEC_FAILED, "Failed to execute: x")
        assert not isinstance(err, SystemError)

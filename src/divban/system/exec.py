"""Async command execution as a service user.

Commands are always passed as an argument list to
``asyncio.create_subprocess_exec`` -- never through a shell.

Usage:
    from divban.system.exec import exec_as_user

    result = await exec_as_user("immich", 1100, ["podman", "ps"], timeout=30)
    if result.exit_code != 0:
        ...
"""

import asyncio
import logging
import os
import shlex
import signal
from dataclasses import dataclass

from divban.errors import ErrorCode, GeneralError, HostSystemError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a finished process."""

    stdout: str
    stderr: str
    exit_code: int


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """SIGKILL the process and everything it spawned.

    sudo cannot forward SIGKILL to its child, so the whole session group
    created at spawn time is killed instead.
    """
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass  # already exited


def user_session_env(uid: int) -> dict[str, str]:
    """Environment a rootless user session needs for systemctl/podman."""
    return {
        "XDG_RUNTIME_DIR": f"/run/user/{uid}",
        "DBUS_SESSION_BUS_ADDRESS": f"unix:path=/run/user/{uid}/bus",
    }


async def exec_command(
    command: list[str],
    timeout: float | None = None,
    capture_stdout: bool = True,
    capture_stderr: bool = True,
    stdin: str | bytes | None = None,
) -> ExecResult:
    """Run a command and wait for it to exit.

    Args:
        command: Program and arguments.
        timeout: Seconds before the process is killed.  ``None`` waits forever.
        capture_stdout: Capture stdout (otherwise inherited, returned as "").
        capture_stderr: Capture stderr (otherwise inherited, returned as "").
        stdin: Data piped to the process's standard input.

    Returns:
        ExecResult -- a nonzero exit code is *not* an error here.

    Raises:
        GeneralError: INVALID_ARGS if ``command`` is empty.
        HostSystemError: EXEC_FAILED if the process cannot be spawned or
            exceeds ``timeout``.
    """
    if not command or not command[0]:
        raise GeneralError(ErrorCode.INVALID_ARGS, "Command array cannot be empty")

    printable = shlex.join(command)
    logger.debug("exec: %s", printable)

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE if capture_stdout else None,
            stderr=asyncio.subprocess.PIPE if capture_stderr else None,
            start_new_session=True,
        )
    except OSError as e:
        raise HostSystemError(
            ErrorCode.EXEC_FAILED, f"Failed to execute: {printable}: {e}"
        ) from e

    data = stdin.encode() if isinstance(stdin, str) else stdin

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(input=data), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        _kill_process_group(process)
        await process.wait()
        raise HostSystemError(
            ErrorCode.EXEC_FAILED,
            f"Command exceeded timeout of {timeout}s: {printable}",
        ) from e

    return ExecResult(
        stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
        stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
        exit_code=process.returncode if process.returncode is not None else -1,
    )


async def exec_as_user(
    user: str,
    uid: int,
    command: list[str],
    timeout: float | None = None,
    capture_stdout: bool = True,
    capture_stderr: bool = True,
    stdin: str | bytes | None = None,
) -> ExecResult:
    """Run a command as ``user`` inside that user's systemd session.

    sudo resets the environment, so the session variables are passed
    through ``env`` on the target side.
    """
    if not command:
        raise GeneralError(ErrorCode.INVALID_ARGS, "Command array cannot be empty")

    session = [f"{key}={value}" for key, value in user_session_env(uid).items()]
    return await exec_command(
        ["sudo", "-u", user, "--", "env", *session, *command],
        timeout=timeout,
        capture_stdout=capture_stdout,
        capture_stderr=capture_stderr,
        stdin=stdin,
    )

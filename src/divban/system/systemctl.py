"""systemd user-unit lifecycle control for rootless services."""

import logging

from divban.errors import ErrorCode, ServiceError
from divban.system.exec import exec_as_user

logger = logging.getLogger(__name__)


async def _systemctl(action: str, unit: str, user: str, uid: int) -> str:
    result = await exec_as_user(user, uid, ["systemctl", "--user", action, unit])
    if result.exit_code != 0:
        code = (
            ErrorCode.SERVICE_START_FAILED
            if action == "start"
            else ErrorCode.SERVICE_STOP_FAILED
        )
        raise ServiceError(
            code,
            f"Failed to {action} {unit}: systemctl {action} {unit} failed "
            f"with exit code {result.exit_code}: {result.stderr.strip()}",
            service=unit,
        )
    return result.stdout.strip()


async def start_service(unit: str, user: str, uid: int) -> None:
    """Start a systemd user service.

    Raises:
        ServiceError: SERVICE_START_FAILED on nonzero systemctl exit.
    """
    logger.info("Starting %s", unit)
    await _systemctl("start", unit, user, uid)


async def stop_service(unit: str, user: str, uid: int) -> None:
    """Stop a systemd user service.

    Raises:
        ServiceError: SERVICE_STOP_FAILED on nonzero systemctl exit.
    """
    logger.info("Stopping %s", unit)
    await _systemctl("stop", unit, user, uid)

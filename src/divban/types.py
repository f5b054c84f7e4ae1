"""Validated identifier types.

Each identifier has a smart constructor that raises ``GeneralError`` with
``INVALID_ARGS`` on bad input, and a pydantic ``Annotated`` alias carrying
the same rule for use inside config models.

Usage:
    from divban.types import absolute_path, service_name

    data_dir = absolute_path("/srv/immich")
    name = service_name("immich")
"""

import re
from collections.abc import Callable
from typing import Annotated, NewType

from pydantic import AfterValidator

from divban.errors import ErrorCode, GeneralError

AbsolutePath = NewType("AbsolutePath", str)
ServiceName = NewType("ServiceName", str)
ContainerName = NewType("ContainerName", str)
Username = NewType("Username", str)
UserId = NewType("UserId", int)
GroupId = NewType("GroupId", int)

_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]*$")
_SERVICE_NAME_RE = re.compile(r"^[a-z][a-z0-9-]*$")
_CONTAINER_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")


# ============================================================================
# Validation rules (return an error message, or None when valid)
# ============================================================================


def _absolute_path_problem(value: str) -> str | None:
    if not value.startswith("/"):
        return f"Not an absolute path: {value}. Must start with /."
    return None


def _service_name_problem(value: str) -> str | None:
    if not _SERVICE_NAME_RE.match(value):
        return f"Invalid service name: {value}. Must match [a-z][a-z0-9-]*."
    return None


def _container_name_problem(value: str) -> str | None:
    if not _CONTAINER_NAME_RE.match(value):
        return f"Invalid container name: {value}."
    return None


def _username_problem(value: str) -> str | None:
    if not _USERNAME_RE.match(value):
        return f"Invalid username: {value}. Must match [a-z_][a-z0-9_-]*."
    if len(value) > 32:
        return f"Username too long: {value}. Max 32 characters."
    return None


def _user_id_problem(value: int) -> str | None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 65534:
        return f"Invalid UserId: {value}. Must be integer 0-65534."
    return None


# ============================================================================
# Smart constructors
# ============================================================================


def _validated(rule: Callable, value):
    problem = rule(value)
    if problem is not None:
        raise GeneralError(ErrorCode.INVALID_ARGS, problem)
    return value


def absolute_path(value: str) -> AbsolutePath:
    return AbsolutePath(_validated(_absolute_path_problem, value))


def service_name(value: str) -> ServiceName:
    return ServiceName(_validated(_service_name_problem, value))


def container_name(value: str) -> ContainerName:
    return ContainerName(_validated(_container_name_problem, value))


def username(value: str) -> Username:
    return Username(_validated(_username_problem, value))


def user_id(value: int) -> UserId:
    return UserId(_validated(_user_id_problem, value))


def user_id_to_group_id(uid: UserId) -> GroupId:
    """POSIX convention: GID matches UID for service users."""
    return GroupId(int(uid))


def join_path(base: AbsolutePath, *segments: str) -> AbsolutePath:
    """Join segments onto an absolute path using ``/`` separators."""
    parts = [base.rstrip("/")] + [s.strip("/") for s in segments if s]
    return AbsolutePath("/".join(parts) or "/")


# ============================================================================
# Pydantic field types
# ============================================================================


def _pydantic_rule(rule: Callable) -> AfterValidator:
    def check(value):
        problem = rule(value)
        if problem is not None:
            raise ValueError(problem)
        return value

    return AfterValidator(check)


AbsolutePathField = Annotated[str, _pydantic_rule(_absolute_path_problem)]
ServiceNameField = Annotated[str, _pydantic_rule(_service_name_problem)]
ContainerNameField = Annotated[str, _pydantic_rule(_container_name_problem)]
UsernameField = Annotated[str, _pydantic_rule(_username_problem)]
UserIdField = Annotated[int, _pydantic_rule(_user_id_problem)]

"""Shared fixtures: fake host collaborators for strategy/workflow tests."""

from unittest.mock import AsyncMock

import pytest

from divban.system.exec import ExecResult


@pytest.fixture(autouse=True)
def no_settle_delay(monkeypatch):
    """Skip the post-stop settle sleep."""
    monkeypatch.setattr("divban.backup.strategies.SETTLE_DELAY_SECONDS", 0)


@pytest.fixture
def host(monkeypatch):
    """Replace exec/stop/start with mocks that record call order.

    ``host.exec.return_value`` defaults to a successful empty result;
    ``host.calls`` lists ``("exec", argv)``, ``("stop", unit)`` and
    ``("start", unit)`` in the order they happened.
    """
    calls: list[tuple[str, object]] = []

    exec_mock = AsyncMock(return_value=ExecResult(stdout="", stderr="", exit_code=0))
    stop_mock = AsyncMock()
    start_mock = AsyncMock()

    async def _exec(user, uid, command, **kwargs):
        calls.append(("exec", command))
        return await exec_mock(user, uid, command, **kwargs)

    async def _stop(unit, user, uid):
        calls.append(("stop", unit))
        return await stop_mock(unit, user, uid)

    async def _start(unit, user, uid):
        calls.append(("start", unit))
        return await start_mock(unit, user, uid)

    monkeypatch.setattr("divban.backup.strategies.exec_as_user", _exec)
    monkeypatch.setattr("divban.backup.strategies.stop_service", _stop)
    monkeypatch.setattr("divban.backup.strategies.start_service", _start)

    class Host:
        pass

    h = Host()
    h.exec = exec_mock
    h.stop = stop_mock
    h.start = start_mock
    h.calls = calls
    return h

"""
Unit tests for the Supervisor startup sequence, exit codes and the
asymmetric failure policy.

The connection is an in-process fake; the control plane is real and bound to
an ephemeral loopback port.
"""

import asyncio
import logging
import time

import aiohttp
import discord
import pytest

from src.bot.supervisor import (
    EXIT_FAILURE,
    EXIT_OK,
    ConnectionLifeline,
    FailurePolicy,
    HttpLifeline,
    Supervisor,
    SupervisorSettings,
)
from src.core.config.config import Config
from src.web.server import ControlPlane
from src.web.state import ControlPlaneState
from tests.conftest import EVENT_FIXTURES, FakeConnection


def _settings(**overrides):
    values = dict(
        token="test-token",
        handler_locations=[EVENT_FIXTURES],
        webhook_host="127.0.0.1",
        webhook_port=0,
        webhook_secret="s3cret",
    )
    values.update(overrides)
    return SupervisorSettings(**values)


def _services(mocker):
    monitor = mocker.MagicMock()
    monitor.stop = mocker.AsyncMock()
    cleanup = mocker.MagicMock()
    cleanup.stop = mocker.AsyncMock()
    return monitor, cleanup


def _supervisor(mocker, settings=None, **connection_kwargs):
    monitor, cleanup = _services(mocker)
    created = []

    def factory(registry):
        connection = FakeConnection(registry, **connection_kwargs)
        created.append(connection)
        return connection

    supervisor = Supervisor(
        settings or _settings(),
        connection_factory=factory,
        monitor_service=monitor,
        cleanup_service=cleanup,
    )
    return supervisor, created


async def _wait_for(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def _get_health(port):
    async with aiohttp.ClientSession() as session:
        async with session.get(f"http://127.0.0.1:{port}/health") as resp:
            return resp.status, await resp.json()


@pytest.mark.asyncio
class TestStartupFailures:
    async def test_missing_token_exits_1_without_services(self, mocker):
        supervisor, created = _supervisor(mocker, _settings(token=""))

        exit_code = await supervisor.run()

        assert exit_code == EXIT_FAILURE
        assert supervisor.connection_lifeline is ConnectionLifeline.FAILED
        assert supervisor.http_lifeline is HttpLifeline.LISTENING
        supervisor.monitor_service.start.assert_not_called()
        supervisor.cleanup_service.start.assert_not_called()
        assert created[0].connect_calls == 0

    async def test_rejected_login_exits_1(self, mocker, caplog):
        caplog.set_level(logging.CRITICAL)
        supervisor, created = _supervisor(
            mocker, login_error=discord.LoginFailure("Improper token has been passed.")
        )

        exit_code = await supervisor.run()

        assert exit_code == EXIT_FAILURE
        assert created[0].logged_in_with is None
        supervisor.monitor_service.start.assert_not_called()
        assert any(r.getMessage() == "Failed to login to Discord" for r in caplog.records)

    async def test_control_plane_stopped_after_login_failure(self, mocker):
        supervisor, _ = _supervisor(mocker, _settings(token=""))

        await supervisor.run()

        assert supervisor.control_plane.listening is False

    async def test_unreadable_handler_location_exits_1(self, mocker):
        supervisor, created = _supervisor(
            mocker, _settings(handler_locations=["tests.fixtures.handlers.missing"])
        )

        exit_code = await supervisor.run()

        assert exit_code == EXIT_FAILURE
        assert created == []
        assert supervisor.control_plane is None

    async def test_port_in_use_exits_1_before_login(self, mocker):
        blocker = ControlPlane(
            ControlPlaneState(connection=None, queries=mocker.MagicMock(), notify_handler=None),
            host="127.0.0.1",
            port=0,
        )
        await blocker.start()
        try:
            supervisor, created = _supervisor(mocker, _settings(webhook_port=blocker.port))
            exit_code = await supervisor.run()
        finally:
            await blocker.stop()

        assert exit_code == EXIT_FAILURE
        assert supervisor.http_lifeline is HttpLifeline.FAILED
        assert created[0].logged_in_with is None


@pytest.mark.asyncio
class TestRunningProcess:
    async def test_successful_start_then_shutdown_exits_0(self, mocker):
        supervisor, created = _supervisor(mocker)
        run = asyncio.create_task(supervisor.run())

        await _wait_for(lambda: created and created[0].connect_calls == 1)
        connection = created[0]

        assert connection.logged_in_with == "test-token"
        assert supervisor.connection_lifeline is ConnectionLifeline.READY
        supervisor.monitor_service.start.assert_called_once_with(connection)
        supervisor.cleanup_service.start.assert_called_once_with()

        supervisor.request_shutdown()
        exit_code = await asyncio.wait_for(run, 5)

        assert exit_code == EXIT_OK
        assert connection.is_closed()
        supervisor.monitor_service.stop.assert_awaited_once()
        supervisor.cleanup_service.stop.assert_awaited_once()

    async def test_health_reflects_readiness(self, mocker):
        supervisor, created = _supervisor(mocker)
        run = asyncio.create_task(supervisor.run())
        await _wait_for(lambda: created and created[0].connect_calls == 1)

        try:
            status, body = await _get_health(supervisor.control_plane.port)
            assert status == 200
            assert body["bot_status"] == "not_ready"

            created[0].set_ready()
            _, body = await _get_health(supervisor.control_plane.port)
            assert body["bot_status"] == "ready"
        finally:
            supervisor.request_shutdown()
            await asyncio.wait_for(run, 5)

    async def test_uptime_counts_from_process_start(self, mocker):
        monitor, cleanup = _services(mocker)
        created = []

        def factory(registry):
            created.append(FakeConnection(registry))
            return created[-1]

        supervisor = Supervisor(
            _settings(),
            connection_factory=factory,
            monitor_service=monitor,
            cleanup_service=cleanup,
            started_at=time.monotonic() - 120,
        )
        run = asyncio.create_task(supervisor.run())
        await _wait_for(lambda: created and created[0].connect_calls == 1)

        try:
            _, body = await _get_health(supervisor.control_plane.port)
            assert body["uptime"] >= 120
        finally:
            supervisor.request_shutdown()
            await asyncio.wait_for(run, 5)

    async def test_gateway_error_exits_1(self, mocker):
        supervisor, _ = _supervisor(mocker, connect_error=ConnectionResetError("gateway lost"))

        exit_code = await asyncio.wait_for(supervisor.run(), 5)

        assert exit_code == EXIT_FAILURE

    async def test_gateway_closed_cleanly_exits_0(self, mocker):
        supervisor, created = _supervisor(mocker)
        run = asyncio.create_task(supervisor.run())
        await _wait_for(lambda: created and created[0].connect_calls == 1)

        await created[0].close()

        assert await asyncio.wait_for(run, 5) == EXIT_OK


@pytest.mark.asyncio
class TestFailurePolicy:
    async def test_async_fault_is_logged_and_process_keeps_running(self, mocker, caplog):
        caplog.set_level(logging.ERROR)
        supervisor, created = _supervisor(mocker)
        run = asyncio.create_task(supervisor.run())
        await _wait_for(lambda: created and created[0].connect_calls == 1)

        loop = asyncio.get_running_loop()
        orphan = loop.create_future()
        loop.call_exception_handler(
            {
                "message": "Task exception was never retrieved",
                "exception": RuntimeError("background failure"),
                "future": orphan,
            }
        )
        await asyncio.sleep(0.05)

        try:
            assert not run.done()
            assert supervisor.policy.async_faults == 1
            status, _ = await _get_health(supervisor.control_plane.port)
            assert status == 200
            assert any(r.levelno == logging.ERROR for r in caplog.records)
        finally:
            supervisor.request_shutdown()

        assert await asyncio.wait_for(run, 5) == EXIT_OK

    async def test_sync_fault_exits_1(self, mocker, caplog):
        caplog.set_level(logging.CRITICAL)
        supervisor, created = _supervisor(mocker)
        run = asyncio.create_task(supervisor.run())
        await _wait_for(lambda: created and created[0].connect_calls == 1)

        def explode():
            raise ValueError("raised from a plain callback")

        asyncio.get_running_loop().call_soon(explode)

        assert await asyncio.wait_for(run, 5) == EXIT_FAILURE
        assert "ValueError" in supervisor.policy.fatal_reason
        assert any(r.levelno == logging.CRITICAL for r in caplog.records)

    async def test_policies_removed_after_run(self, mocker):
        loop = asyncio.get_running_loop()
        before = loop.get_exception_handler()
        supervisor, _ = _supervisor(mocker, _settings(token=""))

        await supervisor.run()

        assert loop.get_exception_handler() is before
        assert supervisor.policy.installed is False

    @pytest.mark.parametrize(
        "context, expected",
        [
            ({"message": "m", "exception": ValueError(), "future": object()}, True),
            ({"message": "m", "exception": ValueError(), "task": object()}, True),
            ({"message": "m", "exception": OSError(), "transport": object()}, True),
            ({"message": "m", "exception": ValueError(), "handle": object()}, False),
            ({"message": "slow callback"}, True),
        ],
    )
    async def test_fault_classification(self, context, expected):
        assert FailurePolicy.is_async_fault(context) is expected


class TestSettings:
    def test_from_config(self, monkeypatch):
        monkeypatch.setattr(Config, "WEBHOOK_PORT", 4100)
        monkeypatch.setattr(Config, "MAX_CONCURRENT_SERVERS", 9)

        settings = SupervisorSettings.from_config()

        assert settings.webhook_port == 4100
        assert settings.max_concurrent_servers == 9
        assert settings.handler_locations == list(Config.HANDLER_LOCATIONS)

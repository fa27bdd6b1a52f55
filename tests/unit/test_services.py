"""
Unit tests for the periodic background services.
"""

import asyncio
import logging

import pytest

from src.core.database.queries import StatsQueries
from src.services.base import PeriodicService
from src.services.code_cleanup import CodeCleanupService
from src.services.server_monitor import ServerMonitorService, ServerSnapshot
from tests.conftest import FakeConnection, make_queries


class _Counter(PeriodicService):
    def __init__(self, fail=False):
        super().__init__("counter", interval_seconds=0.01)
        self.count = 0
        self.fail = fail

    async def tick(self):
        self.count += 1
        if self.fail:
            raise RuntimeError("tick failed")


@pytest.mark.asyncio
class TestPeriodicService:
    async def test_start_twice_is_noop(self, caplog):
        caplog.set_level(logging.WARNING)
        service = _Counter()

        assert service.start() is True
        assert service.start() is False
        await service.stop()

        assert any("already started" in r.getMessage() for r in caplog.records)

    async def test_ticks_repeatedly(self):
        service = _Counter()
        service.start()
        await asyncio.sleep(0.1)
        await service.stop()

        assert service.count >= 2
        assert service.metrics.ticks == service.count

    async def test_failing_tick_keeps_loop_alive(self):
        service = _Counter(fail=True)
        service.start()
        await asyncio.sleep(0.1)

        assert service.running
        await service.stop()

        assert service.metrics.tick_failures >= 2
        assert service.metrics.last_error == "RuntimeError: tick failed"

    async def test_stop_is_idempotent(self):
        service = _Counter()

        await service.stop()
        service.start()
        await service.stop()
        await service.stop()

        assert not service.running
        assert service.started


class TestServiceContract:
    def test_subclass_without_tick_cannot_be_created(self):
        class Forgetful(PeriodicService):
            pass

        with pytest.raises(TypeError):
            Forgetful("forgetful", 1)

    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            PeriodicService("bare", 1)


@pytest.mark.asyncio
class TestServerMonitor:
    async def test_skips_until_ready(self):
        connection = FakeConnection()
        monitor = ServerMonitorService(make_queries(active=2), max_concurrent=6)
        monitor._connection = connection

        await monitor.tick()
        assert monitor.last_snapshot is None

        connection.set_ready()
        await monitor.tick()
        assert monitor.last_snapshot == ServerSnapshot(2, 0, 6)

    async def test_warns_over_capacity(self, caplog):
        caplog.set_level(logging.WARNING)
        monitor = ServerMonitorService(make_queries(active=8, queue=3), max_concurrent=6)
        monitor._connection = FakeConnection(ready=True)

        await monitor.tick()

        assert monitor.last_snapshot.over_capacity
        record = next(r for r in caplog.records if r.levelno == logging.WARNING)
        assert record.active_servers == 8
        assert record.max_concurrent == 6

    async def test_missing_accessors_report_zero(self):
        monitor = ServerMonitorService(StatsQueries.unavailable(), max_concurrent=6)
        monitor._connection = FakeConnection(ready=True)

        await monitor.tick()

        assert monitor.last_snapshot == ServerSnapshot(0, 0, 6)

    async def test_start_keeps_first_connection(self):
        monitor = ServerMonitorService(
            StatsQueries.unavailable(), max_concurrent=6, interval_seconds=60
        )
        first, second = FakeConnection(), FakeConnection()

        assert monitor.start(first) is True
        assert monitor.start(second) is False
        await monitor.stop()

        assert monitor._connection is first


@pytest.mark.asyncio
class TestCodeCleanup:
    async def test_accumulates_deleted_rows(self):
        service = CodeCleanupService(make_queries(deleted=4))

        await service.tick()
        await service.tick()

        assert service.total_deleted == 8

    async def test_skips_without_data_layer(self):
        service = CodeCleanupService(StatsQueries.unavailable())

        await service.tick()

        assert service.total_deleted == 0

    async def test_accessor_failure_is_isolated(self, caplog):
        caplog.set_level(logging.ERROR)

        async def broken():
            raise RuntimeError("locked")

        service = CodeCleanupService(StatsQueries(delete_expired_codes=broken))

        await service._run_tick()

        assert service.metrics.tick_failures == 1
        assert any(getattr(r, "service", None) == "code_cleanup" for r in caplog.records)

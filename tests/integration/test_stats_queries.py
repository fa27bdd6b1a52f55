"""
Integration Tests for the stats accessors
=========================================

Purpose
-------
Run the SQL behind StatsQueries against a real SQLite database (aiosqlite)
and check the aggregates the control plane and services consume.

Testing Strategy
----------------
- Each test gets a fresh database file under tmp_path
- The data-layer tables are created with plain SQL; Beacon owns no schema
- DatabaseService is shut down after every test
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import text

from src.core.config.config import Config
from src.core.database.queries import StatsQueries, build_stats_queries
from src.core.database.service import DatabaseNotInitializedError, DatabaseService
from src.core.exceptions import DatabaseError

SCHEMA = [
    "CREATE TABLE users (id INTEGER PRIMARY KEY)",
    "CREATE TABLE servers (id INTEGER PRIMARY KEY, status TEXT NOT NULL)",
    "CREATE TABLE server_queue (id INTEGER PRIMARY KEY)",
    "CREATE TABLE transactions (id INTEGER PRIMARY KEY, amount INTEGER NOT NULL)",
    "CREATE TABLE redeem_codes (code TEXT PRIMARY KEY, expires_at TIMESTAMP NOT NULL)",
]


@pytest_asyncio.fixture
async def database(tmp_path):
    await DatabaseService.initialize(f"sqlite+aiosqlite:///{tmp_path / 'beacon.db'}")
    async with DatabaseService.get_transaction() as session:
        for statement in SCHEMA:
            await session.execute(text(statement))
    yield
    await DatabaseService.shutdown()


async def _insert(sql, rows):
    async with DatabaseService.get_transaction() as session:
        for row in rows:
            await session.execute(text(sql), row)


# ============================================================================
# AGGREGATES
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestAggregates:
    async def test_empty_tables_report_zero(self, database):
        queries = build_stats_queries()

        assert await queries.count_users() == 0
        assert await queries.count_active_servers() == 0
        assert await queries.get_queue_size() == 0
        assert await queries.get_economy_stats() == {
            "total_earned": 0,
            "total_spent": 0,
            "transaction_count": 0,
        }

    async def test_counts(self, database):
        await _insert("INSERT INTO users (id) VALUES (:id)", [{"id": i} for i in range(4)])
        await _insert(
            "INSERT INTO servers (status) VALUES (:status)",
            [{"status": "active"}, {"status": "active"}, {"status": "stopped"}],
        )
        await _insert("INSERT INTO server_queue (id) VALUES (:id)", [{"id": 1}])
        queries = build_stats_queries()

        assert await queries.count_users() == 4
        assert await queries.count_active_servers() == 2
        assert await queries.get_queue_size() == 1

    async def test_economy_splits_earned_and_spent(self, database):
        await _insert(
            "INSERT INTO transactions (amount) VALUES (:amount)",
            [{"amount": 100}, {"amount": 250}, {"amount": -75}, {"amount": -25}],
        )

        stats = await build_stats_queries().get_economy_stats()

        assert stats == {"total_earned": 350, "total_spent": 100, "transaction_count": 4}


# ============================================================================
# CLEANUP
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestExpiredCodes:
    async def test_deletes_only_expired(self, database):
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        await _insert(
            "INSERT INTO redeem_codes (code, expires_at) VALUES (:code, :expires_at)",
            [
                {"code": "OLD1", "expires_at": now - timedelta(days=1)},
                {"code": "OLD2", "expires_at": now - timedelta(minutes=5)},
                {"code": "NEW", "expires_at": now + timedelta(days=1)},
            ],
        )
        queries = build_stats_queries()

        assert await queries.delete_expired_codes() == 2
        assert await queries.delete_expired_codes() == 0

        async with DatabaseService.get_session() as session:
            remaining = (await session.execute(text("SELECT code FROM redeem_codes"))).scalars()
            assert list(remaining) == ["NEW"]


# ============================================================================
# SERVICE LIFECYCLE
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.asyncio
class TestDatabaseService:
    async def test_health_check(self, database):
        assert await DatabaseService.health_check() is True

    async def test_transaction_rolls_back_on_error(self, database):
        with pytest.raises(RuntimeError):
            async with DatabaseService.get_transaction() as session:
                await session.execute(text("INSERT INTO users (id) VALUES (1)"))
                raise RuntimeError("abort")

        assert await build_stats_queries().count_users() == 0

    async def test_unavailable_without_initialization(self):
        await DatabaseService.shutdown()

        queries = build_stats_queries()

        assert queries == StatsQueries.unavailable()
        assert queries.available() == []
        assert await DatabaseService.health_check() is False
        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_session():
                pass

    async def test_empty_url_raises(self, monkeypatch):
        monkeypatch.setattr(Config, "DATABASE_URL", "")

        with pytest.raises(DatabaseError):
            await DatabaseService.initialize("")

"""
Pytest Configuration and Fixtures for the Beacon Test Suite
===========================================================

Purpose
-------
Centralized fixtures for unit and integration tests: environment defaults,
fake Discord objects and stats accessors.

Architecture Notes
------------------
- Environment defaults are applied before ``src`` is imported, because
  ``Config`` loads on import.
- Unit tests use mocks and in-process fakes (fast, isolated).
- Integration tests use a temporary SQLite file through aiosqlite.
- Handler discovery tests scan the packages under ``tests.fixtures.handlers``.
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("DISCORD_BOT_TOKEN", "")
os.environ.setdefault("WEBHOOK_SECRET", "")
os.environ.setdefault("DATABASE_URL", "")

import asyncio  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

import discord  # noqa: E402
import pytest  # noqa: E402

from src.bot.registry import HandlerRegistry  # noqa: E402
from src.core.database.queries import StatsQueries  # noqa: E402
from src.core.event.bus import EventBus  # noqa: E402

COMMAND_FIXTURES = "tests.fixtures.handlers.commands_ok"
EVENT_FIXTURES = "tests.fixtures.handlers.events_ok"


# ============================================================================
# FAKE CONNECTION
# ============================================================================


class FakeConnection:
    """
    In-process stand-in for BeaconBot.

    Records login/connect/close calls; ``connect()`` parks until close() or
    cancellation, like a live gateway session.
    """

    def __init__(
        self,
        registry: Optional[HandlerRegistry] = None,
        *,
        login_error: Optional[BaseException] = None,
        connect_error: Optional[BaseException] = None,
        ready: bool = False,
    ) -> None:
        self.registry = registry or HandlerRegistry()
        self.event_bus = EventBus()
        self.guilds: List[Any] = []
        self.users: List[Any] = []
        self.login_error = login_error
        self.connect_error = connect_error
        self.logged_in_with: Optional[str] = None
        self.connect_calls = 0
        self.close_calls = 0
        self._ready = ready
        self._closed = asyncio.Event()

    def is_ready(self) -> bool:
        return self._ready

    def set_ready(self, value: bool = True) -> None:
        self._ready = value

    def is_closed(self) -> bool:
        return self._closed.is_set()

    async def login(self, token: str) -> None:
        if self.login_error is not None:
            raise self.login_error
        self.logged_in_with = token

    async def connect(self, *, reconnect: bool = True) -> None:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        await self._closed.wait()

    async def close(self) -> None:
        self.close_calls += 1
        self._closed.set()


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()


# ============================================================================
# STATS ACCESSORS
# ============================================================================


def make_queries(
    *,
    users: Optional[int] = 0,
    active: Optional[int] = 0,
    queue: Optional[int] = 0,
    economy: Optional[Dict[str, Any]] = None,
    deleted: Optional[int] = 0,
) -> StatsQueries:
    """StatsQueries whose accessors return fixed values."""

    def constant(value: Any):
        async def accessor() -> Any:
            return value

        return accessor

    return StatsQueries(
        count_users=constant(users),
        count_active_servers=constant(active),
        get_queue_size=constant(queue),
        get_economy_stats=constant(economy),
        delete_expired_codes=constant(deleted),
    )


@pytest.fixture
def stats_queries() -> StatsQueries:
    return make_queries(
        users=42,
        active=3,
        queue=5,
        economy={"total_earned": 1000, "total_spent": 400, "transaction_count": 17},
    )


# ============================================================================
# DISCORD.PY MOCK FIXTURES
# ============================================================================


@pytest.fixture
def mock_interaction(mocker):
    """
    Mock application-command interaction for ``/ping``.

    Scope: function
    Uses: dispatcher and command handler tests
    """
    interaction = mocker.MagicMock()
    interaction.type = discord.InteractionType.application_command
    interaction.data = {"name": "ping"}
    interaction.user.id = 987654321
    interaction.guild_id = 111222333
    interaction.response.is_done = mocker.MagicMock(return_value=False)
    interaction.response.send_message = mocker.AsyncMock()
    interaction.followup.send = mocker.AsyncMock()
    return interaction

"""
Stats query accessors.

The control plane and the background services consume the external data
layer only through the optional async accessors collected in StatsQueries.
An accessor left as None means "unavailable": /metrics reports 0 for it and
the cleanup service skips its tick.

build_stats_queries() binds the accessors to DatabaseService with plain SQL
over the tables the data layer owns:

- ``users``                             count_users
- ``servers`` (``status = 'active'``)   count_active_servers
- ``server_queue``                      get_queue_size
- ``transactions`` (signed ``amount``)  get_economy_stats
- ``redeem_codes`` (``expires_at``)     delete_expired_codes
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import text

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

CountAccessor = Callable[[], Awaitable[Optional[int]]]
EconomyAccessor = Callable[[], Awaitable[Optional[Dict[str, Any]]]]


@dataclass(slots=True)
class StatsQueries:
    """Optional accessors into the external data layer."""

    count_users: Optional[CountAccessor] = None
    count_active_servers: Optional[CountAccessor] = None
    get_queue_size: Optional[CountAccessor] = None
    get_economy_stats: Optional[EconomyAccessor] = None
    delete_expired_codes: Optional[CountAccessor] = None

    @classmethod
    def unavailable(cls) -> "StatsQueries":
        return cls()

    def available(self) -> list[str]:
        return [
            name
            for name in (
                "count_users",
                "count_active_servers",
                "get_queue_size",
                "get_economy_stats",
                "delete_expired_codes",
            )
            if getattr(self, name) is not None
        ]


# ============================================================================
# SQL accessors
# ============================================================================


async def _scalar(sql: str, **params: Any) -> int:
    async with DatabaseService.get_session() as session:
        result = await session.execute(text(sql), params)
        value = result.scalar()
    return int(value or 0)


async def count_users() -> int:
    return await _scalar("SELECT COUNT(*) FROM users")


async def count_active_servers() -> int:
    return await _scalar("SELECT COUNT(*) FROM servers WHERE status = :status", status="active")


async def get_queue_size() -> int:
    return await _scalar("SELECT COUNT(*) FROM server_queue")


async def get_economy_stats() -> Dict[str, int]:
    """
    Aggregate the transaction ledger.

    Positive amounts are earnings, negative amounts are spending; both are
    reported as non-negative totals.
    """
    async with DatabaseService.get_session() as session:
        result = await session.execute(
            text(
                "SELECT "
                "COALESCE(SUM(CASE WHEN amount > 0 THEN amount ELSE 0 END), 0), "
                "COALESCE(SUM(CASE WHEN amount < 0 THEN -amount ELSE 0 END), 0), "
                "COUNT(*) "
                "FROM transactions"
            )
        )
        earned, spent, count = result.one()

    return {
        "total_earned": int(earned or 0),
        "total_spent": int(spent or 0),
        "transaction_count": int(count or 0),
    }


async def delete_expired_codes() -> int:
    """Delete redeem codes whose ``expires_at`` is in the past; returns rows removed."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    async with DatabaseService.get_transaction() as session:
        result = await session.execute(
            text("DELETE FROM redeem_codes WHERE expires_at < :now"),
            {"now": now},
        )
    return int(result.rowcount or 0)


def build_stats_queries() -> StatsQueries:
    """
    Accessors bound to DatabaseService, or an all-unavailable set when the
    service has not been initialized.
    """
    if not DatabaseService.is_initialized():
        logger.info("Stats accessors unavailable (no database configured)")
        return StatsQueries.unavailable()

    return StatsQueries(
        count_users=count_users,
        count_active_servers=count_active_servers,
        get_queue_size=get_queue_size,
        get_economy_stats=get_economy_stats,
        delete_expired_codes=delete_expired_codes,
    )

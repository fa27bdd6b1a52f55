"""
/metrics snapshot assembly.

Every accessor is optional. A missing accessor, or one returning None or a
partial mapping, contributes 0 for the affected figures. Exceptions are not
caught here; the route turns them into a generic 500.
"""

from __future__ import annotations

import platform
import sys
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import psutil

from src.web.state import ControlPlaneState

_PROCESS = psutil.Process()


def memory_usage_mb() -> int:
    """Current resident set size of this process in MiB."""
    return _PROCESS.memory_info().rss // (1024 * 1024)


async def _count(accessor: Optional[Callable[[], Awaitable[Optional[int]]]]) -> int:
    if accessor is None:
        return 0
    value = await accessor()
    return int(value or 0)


def _figure(stats: Optional[Dict[str, Any]], key: str) -> int:
    if not stats:
        return 0
    return int(stats.get(key) or 0)


async def build_metrics_snapshot(state: ControlPlaneState) -> Dict[str, Any]:
    connection = state.connection
    queries = state.queries

    economy: Optional[Dict[str, Any]] = None
    if queries.get_economy_stats is not None:
        economy = await queries.get_economy_stats()

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": round(state.uptime(), 3),
        "memory_usage_mb": memory_usage_mb(),
        "bot": {
            "status": "online" if state.is_ready() else "offline",
            "guilds": len(connection.guilds) if connection is not None else 0,
            "users": await _count(queries.count_users),
            "commands_loaded": (
                connection.registry.command_count if connection is not None else 0
            ),
        },
        "servers": {
            "active": await _count(queries.count_active_servers),
            "queue_size": await _count(queries.get_queue_size),
            "max_concurrent": state.max_concurrent_servers,
        },
        "economy": {
            "total_coins_earned": _figure(economy, "total_earned"),
            "total_coins_spent": _figure(economy, "total_spent"),
            "total_transactions": _figure(economy, "transaction_count"),
        },
        "system": {
            "python_version": platform.python_version(),
            "platform": sys.platform,
            "env": state.environment,
            "version": state.version,
        },
    }

"""
Server monitoring service.

Each tick, while the connection is ready, reads the active-server and queue
counts from the data layer and warns when more servers are active than
MAX_CONCURRENT_SERVERS allows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from src.core.database.queries import StatsQueries
from src.core.logging.logger import get_logger
from src.services.base import PeriodicService

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServerSnapshot:
    active: int
    queue_size: int
    max_concurrent: int

    @property
    def over_capacity(self) -> bool:
        return self.active > self.max_concurrent


class ServerMonitorService(PeriodicService):
    def __init__(
        self,
        queries: StatsQueries,
        *,
        max_concurrent: int,
        interval_seconds: float = 60,
    ) -> None:
        super().__init__("server_monitor", interval_seconds)
        self._queries = queries
        self._max_concurrent = max_concurrent
        self._connection: Optional[Any] = None
        self.last_snapshot: Optional[ServerSnapshot] = None

    def start(self, connection: Any) -> bool:  # type: ignore[override]
        """Start monitoring on behalf of ``connection``."""
        if not self.started:
            self._connection = connection
        return self._launch()

    async def tick(self) -> None:
        connection = self._connection
        if connection is None or not connection.is_ready():
            logger.debug("Server monitor skipped; connection not ready")
            return

        active = 0
        if self._queries.count_active_servers is not None:
            active = int(await self._queries.count_active_servers() or 0)

        queue_size = 0
        if self._queries.get_queue_size is not None:
            queue_size = int(await self._queries.get_queue_size() or 0)

        snapshot = ServerSnapshot(active, queue_size, self._max_concurrent)
        self.last_snapshot = snapshot

        if snapshot.over_capacity:
            logger.warning(
                "Active servers exceed concurrency limit",
                extra={
                    "active_servers": active,
                    "queue_size": queue_size,
                    "max_concurrent": self._max_concurrent,
                },
            )
        else:
            logger.debug(
                "Server monitor tick",
                extra={"active_servers": active, "queue_size": queue_size},
            )

"""Periodic deletion of expired redeem codes."""

from __future__ import annotations

from src.core.database.queries import StatsQueries
from src.core.logging.logger import get_logger
from src.services.base import PeriodicService

logger = get_logger(__name__)


class CodeCleanupService(PeriodicService):
    def __init__(self, queries: StatsQueries, *, interval_seconds: float = 3600) -> None:
        super().__init__("code_cleanup", interval_seconds)
        self._queries = queries
        self.total_deleted = 0

    async def tick(self) -> None:
        if self._queries.delete_expired_codes is None:
            logger.debug("Code cleanup skipped; no data layer")
            return

        deleted = int(await self._queries.delete_expired_codes() or 0)
        self.total_deleted += deleted

        if deleted:
            logger.info("Deleted expired redeem codes", extra={"deleted": deleted})

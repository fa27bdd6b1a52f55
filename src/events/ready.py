"""Log once when the gateway handshake completes."""

from __future__ import annotations

from src.core.logging.logger import get_logger

logger = get_logger(__name__)

name = "ready"
once = True


async def execute() -> None:
    logger.info("=" * 60)
    logger.info("✓ Beacon is ONLINE")
    logger.info("=" * 60)

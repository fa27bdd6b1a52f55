"""
Beacon - Application Entry Point
================================

Bootstrap
---------
- Logging
- Config validation
- Data layer (optional; metrics degrade to zeros without it)
- Supervisor: handler discovery, control plane, Discord login, services
- Signal-driven graceful shutdown

Exit codes: 0 on an external stop signal, 1 on any fatal startup or
runtime failure.
"""

import asyncio
import signal
import sys
import time

from src.bot.supervisor import EXIT_FAILURE, EXIT_OK, Supervisor, SupervisorSettings
from src.core.config.config import Config
from src.core.database.queries import StatsQueries, build_stats_queries
from src.core.database.service import DatabaseService
from src.core.exceptions import DatabaseError
from src.core.logging.logger import get_logger, setup_logging, shutdown_logging

logger = get_logger(__name__)

# Read at import, before logging setup and handler discovery
PROCESS_STARTED_AT = time.monotonic()


# ============================================================================
# Application Bootstrap
# ============================================================================


async def _init_data_layer() -> StatsQueries:
    """Connect the stats accessors, or leave them unavailable."""
    if not Config.DATABASE_URL:
        return StatsQueries.unavailable()

    try:
        await DatabaseService.initialize(Config.DATABASE_URL)
    except DatabaseError as exc:
        logger.error(
            "Database unavailable; metrics will report zeros",
            extra={"error": str(exc), "error_type": type(exc).__name__},
        )
        return StatsQueries.unavailable()

    if not await DatabaseService.health_check():
        logger.warning("Database health check failed at startup")

    logger.info("✓ Data layer initialized")
    return build_stats_queries()


async def _shutdown() -> None:
    try:
        await DatabaseService.shutdown()
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, supervisor: Supervisor) -> None:
    """SIGTERM and SIGINT request an orderly stop (exit code 0)."""
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, supervisor.request_shutdown)
        except (NotImplementedError, RuntimeError):
            logger.debug("%s handler not supported on this platform", sig.name)


# ============================================================================
# Application Entrypoint
# ============================================================================


async def main() -> int:
    """
    Beacon entry point.

    Lifecycle:
        1. Validate configuration
        2. Initialize the optional data layer
        3. Hand over to the Supervisor
        4. Release the data layer
    """
    logger.info("========== BEACON INITIALIZATION START ==========")
    Config.validate()
    logger.info("✓ Configuration validated", extra=Config.get_config_summary())

    queries = await _init_data_layer()
    supervisor = Supervisor(
        SupervisorSettings.from_config(), queries=queries, started_at=PROCESS_STARTED_AT
    )
    _install_signal_handlers(asyncio.get_running_loop(), supervisor)

    try:
        return await supervisor.run()
    finally:
        await _shutdown()


# ============================================================================
# Process Startup
# ============================================================================


def run() -> None:
    setup_logging()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    exit_code = EXIT_FAILURE

    try:
        exit_code = loop.run_until_complete(main())
    except KeyboardInterrupt:
        logger.info("Bot manually stopped via keyboard interrupt.")
        exit_code = EXIT_OK
    except Exception as exc:
        logger.critical(f"Startup failure: {exc}", exc_info=True)
        exit_code = EXIT_FAILURE
    finally:
        loop.close()
        logger.info("Event loop closed.")
        shutdown_logging()

    sys.exit(exit_code)


if __name__ == "__main__":
    run()

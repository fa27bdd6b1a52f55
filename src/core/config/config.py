"""
Static configuration management for Beacon (2025).

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. Everything the
orchestrator needs at startup (Discord credential, control-plane binding,
discovery locations, service intervals) is resolved here exactly once.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Secrets management (use environment variables)
- Runtime configuration changes
- Deciding what a missing credential means (handled by the Supervisor)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Auto-loads on module import via Config.load()
- validate() is called explicitly by the entrypoint

Environment Variables
---------------------
Required:
- DISCORD_BOT_TOKEN: Bot authentication token

Optional (with defaults):
- WEBHOOK_HOST: Control-plane bind host (default: 0.0.0.0)
- WEBHOOK_PORT: Control-plane port (default: 3001)
- WEBHOOK_SECRET: Shared secret for /notify-bot (default: empty, rejects all)
- MAX_CONCURRENT_SERVERS: Concurrent server bound (default: 6)
- ENVIRONMENT: Deployment tag (default: production)
- DATABASE_URL: SQLAlchemy async URL for stats accessors (default: empty)
- HANDLER_LOCATIONS: Comma separated handler packages
- SERVER_MONITOR_INTERVAL_SECONDS: Monitor tick (default: 60)
- CODE_CLEANUP_INTERVAL_SECONDS: Cleanup tick (default: 3600)
- LOG_LEVEL, LOG_JSON, LOG_TO_FILE: Logging switches
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# ============================================================================
# Enums and Constants
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Unknown values fall back to PRODUCTION, the deployment default.

        Example
        -------
        >>> Environment.from_string("staging") == Environment.STAGING
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger not yet initialized
            logging.warning(f"Unknown environment '{value}', defaulting to production")
            return cls.PRODUCTION


DEFAULT_HANDLER_LOCATIONS: List[str] = [
    "src.commands",
    "src.commands.admin",
    "src.events",
]


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """
    Internal metrics tracker for configuration loading.

    Tracks which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any):
        """Record whether a config value came from environment."""
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        """Record a validation error."""
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration loading summary."""
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the Beacon Discord bot.

    Usage
    -----
    >>> token = Config.DISCORD_BOT_TOKEN
    >>> port = Config.WEBHOOK_PORT
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    """

    # =========================================================================
    # Internal State
    # =========================================================================

    _metrics: Optional[_ConfigLoadMetrics] = None
    _enable_metrics: bool = True
    _validated: bool = False

    # =========================================================================
    # Discord Configuration
    # =========================================================================

    DISCORD_BOT_TOKEN: str = ""

    # =========================================================================
    # Control Plane Configuration
    # =========================================================================

    WEBHOOK_HOST: str = "0.0.0.0"
    WEBHOOK_PORT: int = 3001
    WEBHOOK_SECRET: str = ""

    # =========================================================================
    # Server Orchestration
    # =========================================================================

    MAX_CONCURRENT_SERVERS: int = 6
    SERVER_MONITOR_INTERVAL_SECONDS: int = 60
    CODE_CLEANUP_INTERVAL_SECONDS: int = 3600

    # =========================================================================
    # Handler Discovery
    # =========================================================================

    HANDLER_LOCATIONS: List[str] = list(DEFAULT_HANDLER_LOCATIONS)

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = ""
    DATABASE_ECHO: bool = False

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_TO_FILE: bool = True
    LOG_COLORS: bool = True

    # =========================================================================
    # Directory Configuration
    # =========================================================================

    # Logs live at project root
    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"

    # =========================================================================
    # Bot Metadata
    # =========================================================================

    BOT_NAME: str = "Beacon"
    BOT_VERSION: str = "1.0.0"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls):
        """Initialize metrics tracking if enabled."""
        if cls._enable_metrics and cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set or invalid.
        min_val:
            Minimum allowed value (inclusive).
        max_val:
            Maximum allowed value (inclusive).

        Example
        -------
        >>> Config._safe_int("WEBHOOK_PORT", 3001, min_val=0, max_val=65535)
        3001
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None or raw_value.strip() == "":
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        normalized = raw_value.lower().strip()
        true_values = {"true", "yes", "1", "on"}
        false_values = {"false", "no", "0", "off"}

        if normalized in true_values:
            value = True
        elif normalized in false_values:
            value = False
        else:
            error = f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_str(
        cls,
        key: str,
        default: str,
        required: bool = False,
    ) -> str:
        """
        Safely get string from environment.

        A missing required value is recorded as a validation error; whether
        it is fatal is decided by the caller.
        """
        cls._init_metrics()

        value = os.getenv(key, default)
        from_env = key in os.environ

        if cls._metrics:
            cls._metrics.record_env_load(key, from_env, value, default)

        if required and not value:
            error = f"Required environment variable {key} is not set"
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)

        return value

    @classmethod
    def _safe_list(cls, key: str, default: List[str]) -> List[str]:
        """
        Parse a comma separated list from environment.

        Blank entries are dropped; an empty result falls back to the default.

        Example
        -------
        >>> os.environ["HANDLER_LOCATIONS"] = "src.commands, src.events"
        >>> Config._safe_list("HANDLER_LOCATIONS", [])
        ['src.commands', 'src.events']
        """
        cls._init_metrics()

        raw_value = os.getenv(key)
        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return list(default)

        items = [item.strip() for item in raw_value.split(",") if item.strip()]
        if not items:
            error = f"{key} is empty, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return list(default)

        if cls._metrics:
            cls._metrics.record_env_load(key, True, items, default)
        return items

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called automatically on module import; tests call it again after
        patching the environment.
        """
        cls._metrics = None
        cls._init_metrics()

        # Discord
        cls.DISCORD_BOT_TOKEN = cls._safe_str("DISCORD_BOT_TOKEN", "", required=True)

        # Control plane
        cls.WEBHOOK_HOST = cls._safe_str("WEBHOOK_HOST", "0.0.0.0")
        cls.WEBHOOK_PORT = cls._safe_int("WEBHOOK_PORT", 3001, min_val=0, max_val=65535)
        cls.WEBHOOK_SECRET = cls._safe_str("WEBHOOK_SECRET", "")

        # Server orchestration
        cls.MAX_CONCURRENT_SERVERS = cls._safe_int(
            "MAX_CONCURRENT_SERVERS", 6, min_val=1, max_val=1000
        )
        cls.SERVER_MONITOR_INTERVAL_SECONDS = cls._safe_int(
            "SERVER_MONITOR_INTERVAL_SECONDS", 60, min_val=1
        )
        cls.CODE_CLEANUP_INTERVAL_SECONDS = cls._safe_int(
            "CODE_CLEANUP_INTERVAL_SECONDS", 3600, min_val=1
        )

        # Handler discovery
        cls.HANDLER_LOCATIONS = cls._safe_list(
            "HANDLER_LOCATIONS", DEFAULT_HANDLER_LOCATIONS
        )

        # Database
        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", "")
        cls.DATABASE_ECHO = bool(cls._safe_bool("DATABASE_ECHO", False))

        # Environment
        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "production")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_TO_FILE = bool(cls._safe_bool("LOG_TO_FILE", True))
        cls.LOG_COLORS = bool(cls._safe_bool("LOG_COLORS", True))

        if cls._metrics:
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Validate configuration values on startup.

        Never raises for a missing Discord token: the Supervisor treats that
        as an authentication failure so the control plane still comes up and
        the process exits through a single path.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls.load()

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if cls.LOG_LEVEL.upper() not in valid_log_levels:
            logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"

        if not cls.DISCORD_BOT_TOKEN:
            logger.error("DISCORD_BOT_TOKEN is not set; login will fail")

        if not cls.WEBHOOK_SECRET:
            logger.warning(
                "WEBHOOK_SECRET is not set; /notify-bot will reject every request"
            )

        if not cls.DATABASE_URL:
            logger.info("DATABASE_URL is not set; metrics will report zero aggregates")

        cls._validated = True

        if cls._metrics:
            logger.info("Configuration loaded", extra=cls._metrics.get_summary())

            if cls._metrics.validation_errors:
                logger.warning(
                    "Configuration warnings",
                    extra={"validation_errors": dict(cls._metrics.validation_errors)},
                )

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        """Get configuration loading metrics."""
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["discord_token_set"]
        True
        """
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "webhook_host": cls.WEBHOOK_HOST,
            "webhook_port": cls.WEBHOOK_PORT,
            "max_concurrent_servers": cls.MAX_CONCURRENT_SERVERS,
            "handler_locations": list(cls.HANDLER_LOCATIONS),
            "bot_version": cls.BOT_VERSION,
            "discord_token_set": bool(cls.DISCORD_BOT_TOKEN),
            "webhook_secret_set": bool(cls.WEBHOOK_SECRET),
            "database_url_set": bool(cls.DATABASE_URL),
        }


# Load on import
Config.load()

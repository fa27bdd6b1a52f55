"""Background maintenance services started once the connection has logged in."""

from src.services.base import PeriodicService, ServiceMetrics
from src.services.code_cleanup import CodeCleanupService
from src.services.server_monitor import ServerMonitorService, ServerSnapshot

__all__ = [
    "PeriodicService",
    "ServiceMetrics",
    "ServerMonitorService",
    "ServerSnapshot",
    "CodeCleanupService",
]

"""
Core infrastructure layer for Beacon.

Subpackages
-----------
- config: static, environment-backed configuration
- logging: structured async-safe logging
- event: per-connection event bus
- database: async engine and stats accessors

This module is intentionally thin: no re-exports, no side effects. Import
from the subpackages directly.
"""

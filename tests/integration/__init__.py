"""Integration tests (real SQLite through aiosqlite)."""

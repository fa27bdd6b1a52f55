"""Event handler fixtures."""

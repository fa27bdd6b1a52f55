"""Gateway event handlers. Each module exposes ``name``, ``execute`` and optionally ``once``."""

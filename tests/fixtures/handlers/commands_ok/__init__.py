"""Command handler fixtures: two valid, one override, two broken."""

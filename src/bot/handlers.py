"""
Handler records produced by discovery.

A handler module is plain Python exposing module-level attributes:

Command module::

    data = CommandSchema(name="ping", description="Check latency")

    async def execute(interaction: discord.Interaction) -> None: ...

Event module::

    name = "ready"          # or "on_ready"
    once = True             # optional, default False

    async def execute(*args) -> None: ...

``data`` may also be a plain mapping with at least a ``name`` key, which is
converted with ``CommandSchema.from_data``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

CommandAction = Callable[..., Awaitable[Any]]
EventAction = Callable[..., Any]

# Discord application command type for chat-input (slash) commands
CHAT_INPUT = 1


@dataclass(frozen=True, slots=True)
class CommandSchema:
    """Declarative description of an application command."""

    name: str
    description: str = ""
    options: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def from_data(cls, data: Any) -> Optional["CommandSchema"]:
        """
        Build a schema from a module's ``data`` attribute.

        Returns None when ``data`` carries no usable name.
        """
        if isinstance(data, CommandSchema):
            return data if data.name else None

        if isinstance(data, Mapping):
            name = data.get("name")
            if not isinstance(name, str) or not name:
                return None
            return cls(
                name=name,
                description=str(data.get("description", "")),
                options=tuple(data.get("options", ()) or ()),
            )

        return None

    def to_payload(self) -> Dict[str, Any]:
        """Discord application-command JSON payload."""
        return {
            "type": CHAT_INPUT,
            "name": self.name,
            "description": self.description or self.name,
            "options": [dict(option) for option in self.options],
        }


@dataclass(frozen=True, slots=True)
class CommandHandler:
    schema: CommandSchema
    execute: CommandAction
    module: str

    @property
    def name(self) -> str:
        return self.schema.name


@dataclass(frozen=True, slots=True)
class EventHandler:
    name: str
    execute: EventAction
    once: bool
    module: str


def normalize_event_name(raw: str) -> str:
    """
    Strip discord.py's ``on_`` prefix so ``on_ready`` and ``ready`` match.

    >>> normalize_event_name("on_message")
    'message'
    """
    name = raw.strip()
    if name.startswith("on_"):
        name = name[3:]
    return name

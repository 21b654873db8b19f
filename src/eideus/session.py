"""The explicit per-game session value and its save format."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from eideus.lattice import Lattice, now_ms
from eideus.models import ChatMessage, WorldState
from eideus.registry import ContentRegistry
from eideus.state import initial_world_state, world_state_from_dict, world_state_to_dict


@dataclass
class GameSession:
    """Everything that makes up one game in progress.

    Created at game start, replaced wholesale on load or new game.
    """

    world_state: WorldState = field(default_factory=initial_world_state)
    lattice: Lattice = field(default_factory=Lattice)
    registry: ContentRegistry = field(default_factory=ContentRegistry)
    messages: list[ChatMessage] = field(default_factory=list)
    context_start_index: int = 0
    has_started: bool = False

    def active_history(self) -> list[ChatMessage]:
        """Messages inside the rolling context window."""
        return list(self.messages[self.context_start_index:])

    def add_message(self, role: str, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content, timestamp=now_ms())
        self.messages.append(message)
        return message

    def to_save(self) -> dict[str, Any]:
        """Serialize to the JSON save document."""
        engine_state = world_state_to_dict(self.world_state)
        engine_state["memoryLattices"] = self.lattice.to_list()
        engine_state["memoryRegistry"] = self.registry.to_dict()
        return {
            "engineState": engine_state,
            "messages": [
                {"role": m.role, "content": m.content, "timestamp": m.timestamp}
                for m in self.messages
            ],
            "hasStarted": self.has_started,
            "contextStartIndex": self.context_start_index,
            "timestamp": now_ms(),
        }

    @classmethod
    def from_save(cls, data: dict[str, Any]) -> GameSession:
        """Rebuild a session from a save document.

        Raises:
            ValueError: if the document is not a save file
        """
        engine_state = data.get("engineState") if isinstance(data, dict) else None
        messages = data.get("messages") if isinstance(data, dict) else None
        if not isinstance(engine_state, dict) or not isinstance(messages, list):
            raise ValueError("Invalid Save File Format")

        return cls(
            world_state=world_state_from_dict(engine_state),
            lattice=Lattice.from_list(engine_state.get("memoryLattices")),
            registry=ContentRegistry.from_dict(engine_state.get("memoryRegistry")),
            messages=[
                ChatMessage(
                    role=m.get("role", "system"),
                    content=m.get("content", ""),
                    timestamp=m.get("timestamp", 0),
                )
                for m in messages
                if isinstance(m, dict)
            ],
            context_start_index=int(data.get("contextStartIndex") or 0),
            has_started=bool(data.get("hasStarted", False)),
        )

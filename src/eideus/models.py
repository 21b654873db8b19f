"""Data models for Eideus."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from enum import Enum


@dataclass
class EngineConfig:
    """Configuration for NarrativeEngine."""

    db_path: str | None = None  # sqlite path for the lattice store, None keeps it in memory only
    embedding_backend: str = "local"  # "local" | "openai" | "hash"
    embedding_model: str = "all-MiniLM-L6-v2"  # for local
    openai_embedding_model: str = "text-embedding-3-small"  # if backend="openai"
    vector_dimensions: int = 384  # matches model
    generation_model: str = "gpt-4o-mini"
    analysis_model: str = "gpt-4o-mini"
    temperature: float = 0.7
    api_key: str | None = None
    await_memory_writes: bool = False  # drain background writes before each retrieval

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load config from EIDEUS_* environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            db_path=os.getenv("EIDEUS_DB_PATH") or None,
            embedding_backend=os.getenv("EIDEUS_EMBEDDING_BACKEND", defaults.embedding_backend),
            embedding_model=os.getenv("EIDEUS_EMBEDDING_MODEL", defaults.embedding_model),
            openai_embedding_model=os.getenv(
                "EIDEUS_OPENAI_EMBEDDING_MODEL", defaults.openai_embedding_model
            ),
            vector_dimensions=int(
                os.getenv("EIDEUS_VECTOR_DIMENSIONS", str(defaults.vector_dimensions))
            ),
            generation_model=os.getenv("EIDEUS_GENERATION_MODEL", defaults.generation_model),
            analysis_model=os.getenv("EIDEUS_ANALYSIS_MODEL", defaults.analysis_model),
            temperature=float(os.getenv("EIDEUS_TEMPERATURE", str(defaults.temperature))),
            api_key=os.getenv("EIDEUS_API_KEY") or os.getenv("OPENAI_API_KEY"),
            await_memory_writes=os.getenv("EIDEUS_AWAIT_MEMORY_WRITES", "").lower()
            in ("1", "true", "yes"),
        )


class FaceType(str, Enum):
    """The six content faces of a memory node."""

    FRONT = "FRONT"  # player input
    BACK = "BACK"  # generated output
    TOP = "TOP"  # scene summary
    BOTTOM = "BOTTOM"  # embedding vector
    LEFT = "LEFT"  # thematic tags
    RIGHT = "RIGHT"  # proper names


@dataclass(frozen=True)
class MemoryNode:
    """One recorded turn, placed in a 7x7x7 lattice page."""

    x: int
    y: int
    z: int
    lattice_index: int
    timestamp: int  # epoch milliseconds
    faces: dict[FaceType, str] = field(default_factory=dict, hash=False)

    @property
    def coordinate(self) -> tuple[int, int, int]:
        return (self.x, self.y, self.z)

    def face(self, face_type: FaceType) -> str | None:
        return self.faces.get(face_type)


# -------------------------------------------------------------------------
# World-state tree
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class Slot:
    """One of the seven entries under a modifier."""

    id: str
    name: str = "Empty"
    description: str = "Waiting for narrative emergence..."
    active: bool = False
    associated_with: str | None = None  # name of a linked entity, not an owner


@dataclass(frozen=True)
class Modifier:
    """A named focus of a transform holding seven slots."""

    id: str
    name: str
    type: str
    description: str
    slots: tuple[Slot, ...]
    score: int | None = None  # relationship score for identity NPCs (0-100)


@dataclass(frozen=True)
class Transform:
    """A top-level phase of the world state holding three modifiers."""

    id: str
    name: str
    description: str
    modifiers: tuple[Modifier, ...]


@dataclass(frozen=True)
class PlayerState:
    name: str | None = None
    status: str = "Amnesiac"


@dataclass(frozen=True)
class TavernNPC:
    name: str
    relationship: int = 0
    description: str = ""


@dataclass(frozen=True)
class WorldState:
    """The persistent narrative state the generator is asked to maintain."""

    identity: Transform
    world: Transform
    story: Transform
    player: PlayerState = field(default_factory=PlayerState)
    tavern_npcs: tuple[TavernNPC, ...] = ()
    npc_archive: dict[str, tuple[Slot, ...]] = field(default_factory=dict, hash=False)


# -------------------------------------------------------------------------
# Patches
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class SlotPatch:
    """Sparse update to one slot. None means unchanged."""

    index: int
    name: str | None = None
    description: str | None = None
    active: bool | None = None
    associated_with: str | None = None  # "" clears the link


@dataclass(frozen=True)
class ModifierPatch:
    """Sparse update to one modifier. None means unchanged."""

    index: int
    name: str | None = None
    description: str | None = None
    type: str | None = None
    score: int | None = None
    slots: tuple[SlotPatch, ...] = ()


@dataclass(frozen=True)
class TransformPatch:
    modifiers: tuple[ModifierPatch, ...] = ()


@dataclass(frozen=True)
class PlayerPatch:
    name: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class StateUpdate:
    """A decoded structured-update payload from the generator."""

    scene_change: bool = False
    player: PlayerPatch | None = None
    tavern_npcs: tuple[TavernNPC, ...] | None = None  # full replacement when present
    identity: TransformPatch | None = None
    world: TransformPatch | None = None
    story: TransformPatch | None = None


# -------------------------------------------------------------------------
# Turn records
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class TurnMetadata:
    """Analysis of a turn used to fill the summary, tag, and name faces."""

    scene: str = "Unanalyzed"
    names: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()


@dataclass
class RetrievedMemory:
    """A memory node ranked against a query."""

    node: MemoryNode
    relevance: float
    summary: str
    tags: list[str] = field(default_factory=list)


@dataclass
class ChatMessage:
    role: str  # 'user', 'model', 'system'
    content: str
    timestamp: int


@dataclass
class TurnResult:
    """Outcome of a single turn."""

    narrative: str = ""
    update: StateUpdate | None = None
    memories: list[RetrievedMemory] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None
    memory_task: asyncio.Task | None = None

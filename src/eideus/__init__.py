"""Eideus - Narrative engine with lattice memory for streamed text generators."""

from eideus.models import (
    EngineConfig,
    FaceType,
    MemoryNode,
    Slot,
    Modifier,
    Transform,
    WorldState,
    StateUpdate,
    RetrievedMemory,
    TurnResult,
)
from eideus.registry import ContentRegistry
from eideus.lattice import Lattice, coordinate_of
from eideus.retrieval import query_lattice
from eideus.stream import StreamSplitter, extract_payload
from eideus.patch import apply_update, decode_update, merge_transform
from eideus.session import GameSession
from eideus.engine import NarrativeEngine

__version__ = "0.1.0"

__all__ = [
    "NarrativeEngine",
    "GameSession",
    "EngineConfig",
    "FaceType",
    "MemoryNode",
    "Slot",
    "Modifier",
    "Transform",
    "WorldState",
    "StateUpdate",
    "RetrievedMemory",
    "TurnResult",
    "ContentRegistry",
    "Lattice",
    "coordinate_of",
    "query_lattice",
    "StreamSplitter",
    "extract_payload",
    "apply_update",
    "decode_update",
    "merge_transform",
]

"""Recording finished turns into the lattice."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from eideus.embedding import EmbeddingBackend, embed_or_zero
from eideus.errors import MemoryWriteError
from eideus.generation import TurnAnalyzer
from eideus.lattice import Lattice
from eideus.models import FaceType, MemoryNode, TurnMetadata
from eideus.registry import ContentRegistry

if TYPE_CHECKING:
    from eideus.store import LatticeStore

logger = logging.getLogger(__name__)

MIN_INPUT_LENGTH = 2
MIN_OUTPUT_LENGTH = 5


def turn_context(player_input: str, output: str) -> str:
    """Text embedded for a turn."""
    return f"User: {player_input}\nGM: {output}"


def write_faces(
    registry: ContentRegistry,
    player_input: str,
    output: str,
    embedding: list[float],
    metadata: TurnMetadata,
) -> dict[FaceType, str]:
    """Store a turn's content in the registry and return the face hashes."""
    return {
        FaceType.FRONT: registry.put(player_input),
        FaceType.BACK: registry.put(output),
        FaceType.TOP: registry.put(metadata.scene),
        FaceType.BOTTOM: registry.put(embedding),
        FaceType.LEFT: registry.put(list(metadata.tags)),
        FaceType.RIGHT: registry.put(list(metadata.names)),
    }


async def record_turn(
    player_input: str,
    output: str,
    lattice: Lattice,
    registry: ContentRegistry,
    embedder: EmbeddingBackend,
    analyzer: TurnAnalyzer,
    dimensions: int,
    store_for: Callable[[], LatticeStore | None] | None = None,
) -> MemoryNode:
    """Embed, analyze and append one turn as a memory node.

    Embedding and analysis failures fall back to a zero vector and
    "Unanalyzed" metadata. The registry writes, the lattice append and the
    store write run without yielding to the event loop, so readers never see
    half a node. ``store_for`` is asked for the store only at that point, so
    a game replaced while the turn was being analyzed is not mirrored.

    Raises:
        MemoryWriteError: if the turn is too short to be worth recording
    """
    if len(player_input) < MIN_INPUT_LENGTH or len(output) < MIN_OUTPUT_LENGTH:
        raise MemoryWriteError("Turn data too short for memory processing")

    embedding = await asyncio.to_thread(
        embed_or_zero, embedder, turn_context(player_input, output), dimensions
    )
    try:
        metadata = await analyzer.analyze(player_input, output)
    except Exception as e:
        logger.warning("Turn analysis failed: %s", e)
        metadata = TurnMetadata()

    faces = write_faces(registry, player_input, output, embedding, metadata)
    node = lattice.append(faces)

    store = store_for() if store_for is not None else None
    if store is not None:
        store.append_node(node, {h: registry.get(h) for h in faces.values()})

    logger.debug(
        "Recorded turn at page %s (%s, %s, %s)", node.lattice_index, node.x, node.y, node.z
    )
    return node

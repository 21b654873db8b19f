"""Multi-phase memory retrieval over the lattice.

1. Direct phase: vector similarity on the BOTTOM face plus keyword matching
   on the FRONT/BACK faces.
2. Entanglement phase: tags of the best direct matches become attractors;
   every node sharing them gets a resonance boost, so thematically linked
   but vectorially distant memories can surface.
3. Ranking phase: drop non-positive scores, keep the top results.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

from eideus.lattice import Lattice
from eideus.models import FaceType, MemoryNode, RetrievedMemory
from eideus.registry import ContentRegistry

VECTOR_WEIGHT = 0.6
KEYWORD_WEIGHT = 0.2
RESONANCE_WEIGHT = 0.3
ATTRACTOR_POOL = 5
RESULT_LIMIT = 3
MIN_KEYWORD_LENGTH = 4
DEFAULT_SUMMARY = "Memory Node"


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity, 0.0 for missing, zero-norm, or mismatched vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def keyword_score(text: str | None, query: str | None) -> float:
    """Score literal overlap between a query and a text.

    1.0 if the whole query appears in the text, otherwise the fraction of
    significant query words (4+ characters) that appear.
    """
    if not text or not query:
        return 0.0
    norm_text = text.lower()
    norm_query = query.lower()
    if norm_query in norm_text:
        return 1.0
    words = [w for w in norm_query.split() if len(w) >= MIN_KEYWORD_LENGTH]
    if not words:
        return 0.0
    matches = sum(1 for w in words if w in norm_text)
    return matches / len(words)


def read_tags(value: Any) -> list[str]:
    """Normalize a LEFT/RIGHT face value into a list of strings.

    Accepts tag lists and legacy comma-joined strings.
    """
    if not value:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return []
    tags = []
    for item in items:
        tag = str(item).strip()
        if tag:
            tags.append(tag)
    return tags


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _vector(value: Any) -> list[float] | None:
    if isinstance(value, (list, tuple)) and all(isinstance(v, (int, float)) for v in value):
        return list(value)
    return None


def direct_score(
    node: MemoryNode,
    query_text: str,
    query_embedding: Sequence[float],
    registry: ContentRegistry,
) -> float:
    """Phase one score for a single node."""
    node_vec = _vector(registry.get(node.face(FaceType.BOTTOM)))
    vector_score = cosine_similarity(query_embedding, node_vec)

    input_text = _text(registry.get(node.face(FaceType.FRONT)))
    output_text = _text(registry.get(node.face(FaceType.BACK)))
    literal = max(
        keyword_score(input_text, query_text),
        keyword_score(output_text, query_text),
    )
    return VECTOR_WEIGHT * vector_score + KEYWORD_WEIGHT * literal


def query_lattice(
    query_text: str,
    query_embedding: Sequence[float],
    lattice: Lattice | Iterable[Iterable[MemoryNode]],
    registry: ContentRegistry,
    limit: int = RESULT_LIMIT,
) -> list[RetrievedMemory]:
    """Rank every node in the lattice against a query.

    Args:
        query_text: Raw player input
        query_embedding: Embedding of the player input
        lattice: A Lattice, or any iterable of pages
        registry: Registry the node faces resolve against
        limit: Max memories to return

    Returns:
        Up to ``limit`` memories, highest relevance first
    """
    if isinstance(lattice, Lattice):
        nodes = lattice.flatten()
    else:
        nodes = [node for page in lattice for node in page]
    if not nodes:
        return []

    scores = [direct_score(n, query_text, query_embedding, registry) for n in nodes]
    node_tags = [read_tags(registry.get(n.face(FaceType.LEFT))) for n in nodes]

    # sorted() is stable, so ties keep lattice order
    top_direct = sorted(range(len(nodes)), key=lambda i: scores[i], reverse=True)
    attractors: set[str] = set()
    for i in top_direct[:ATTRACTOR_POOL]:
        attractors.update(node_tags[i])

    if attractors:
        for i, tags in enumerate(node_tags):
            if not tags:
                continue
            overlap = len(attractors.intersection(tags))
            scores[i] += RESONANCE_WEIGHT * overlap / max(1, len(attractors))

    ranked = sorted(
        (i for i in range(len(nodes)) if scores[i] > 0),
        key=lambda i: scores[i],
        reverse=True,
    )[:limit]

    results = []
    for i in ranked:
        summary = _text(registry.get(nodes[i].face(FaceType.TOP)))
        results.append(
            RetrievedMemory(
                node=nodes[i],
                relevance=scores[i],
                summary=summary or DEFAULT_SUMMARY,
                tags=node_tags[i],
            )
        )
    return results

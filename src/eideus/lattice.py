"""Spatial lattice of memory nodes.

Nodes live in pages of 7x7x7 cells. The nth node of a page sits at the base-7
decomposition of n, so earlier turns cluster at low coordinates. A page that
is full is never touched again; the next node opens a new page at (0, 0, 0).
"""

from __future__ import annotations

import time
from typing import Any, Iterator

from eideus.models import FaceType, MemoryNode

EDGE = 7
PAGE_CAPACITY = EDGE**3  # 343


def coordinate_of(sequence: int) -> tuple[int, int, int]:
    """Map a sequence number within a page to its (x, y, z) cell."""
    if not 0 <= sequence < PAGE_CAPACITY:
        raise ValueError(f"Sequence out of page range: {sequence}")
    return (sequence % EDGE, (sequence // EDGE) % EDGE, sequence // (EDGE * EDGE))


def now_ms() -> int:
    return int(time.time() * 1000)


class Lattice:
    """Ordered pages of memory nodes. Append-only."""

    def __init__(self, pages: list[list[MemoryNode]] | None = None):
        self.pages: list[list[MemoryNode]] = [list(p) for p in pages] if pages else [[]]

    @property
    def active_page_index(self) -> int:
        return len(self.pages) - 1

    @property
    def node_count(self) -> int:
        return sum(len(p) for p in self.pages)

    def __len__(self) -> int:
        return self.node_count

    def __iter__(self) -> Iterator[MemoryNode]:
        for page in self.pages:
            yield from page

    def flatten(self) -> list[MemoryNode]:
        return list(self)

    def append(
        self,
        faces: dict[FaceType, str],
        timestamp: int | None = None,
    ) -> MemoryNode:
        """Place a new node at the next free cell, rolling over full pages.

        The coordinate is allocated here, at append time, so two writes that
        were prepared concurrently still land in distinct cells.
        """
        if len(self.pages[-1]) >= PAGE_CAPACITY:
            self.pages.append([])
        page_index = self.active_page_index
        x, y, z = coordinate_of(len(self.pages[page_index]))
        node = MemoryNode(
            x=x,
            y=y,
            z=z,
            lattice_index=page_index,
            timestamp=timestamp if timestamp is not None else now_ms(),
            faces=dict(faces),
        )
        self.pages[page_index].append(node)
        return node

    def node_at(self, page: int, x: int, y: int, z: int) -> MemoryNode | None:
        """Look up the node in a given cell, if that cell is filled."""
        if not 0 <= page < len(self.pages):
            return None
        if not all(0 <= c < EDGE for c in (x, y, z)):
            return None
        sequence = x + y * EDGE + z * EDGE * EDGE
        nodes = self.pages[page]
        return nodes[sequence] if sequence < len(nodes) else None

    def to_list(self) -> list[list[dict[str, Any]]]:
        return [[node_to_dict(n) for n in page] for page in self.pages]

    @classmethod
    def from_list(cls, data: list[list[dict[str, Any]]] | None) -> Lattice:
        if not data:
            return cls()
        return cls([[node_from_dict(n) for n in page] for page in data])


def node_to_dict(node: MemoryNode) -> dict[str, Any]:
    return {
        "x": node.x,
        "y": node.y,
        "z": node.z,
        "latticeIndex": node.lattice_index,
        "timestamp": node.timestamp,
        "faces": {face.value: h for face, h in node.faces.items()},
    }


def node_from_dict(data: dict[str, Any]) -> MemoryNode:
    faces = {}
    for key, value in (data.get("faces") or {}).items():
        try:
            faces[FaceType(key)] = value
        except ValueError:
            continue
    return MemoryNode(
        x=int(data["x"]),
        y=int(data["y"]),
        z=int(data["z"]),
        lattice_index=int(data.get("latticeIndex", 0)),
        timestamp=int(data.get("timestamp", 0)),
        faces=faces,
    )

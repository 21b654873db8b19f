"""sqlite persistence for the lattice and its registry."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from eideus.lattice import Lattice
from eideus.models import MemoryNode
from eideus.queries import (
    FACE_COLUMNS,
    build_clear_store,
    build_insert_node,
    build_insert_registry,
    build_nodes_query,
    build_page_counts_query,
    build_registry_query,
)
from eideus.registry import ContentRegistry


class LatticeStore:
    """Append-only sqlite store mirroring an in-memory lattice."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.db = sqlite3.connect(db_path, check_same_thread=False)
        self.db.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path) as f:
            schema = f.read()
        self.db.executescript(schema)
        self.db.commit()

    def close(self) -> None:
        """Close database connection."""
        self.db.close()

    def __enter__(self) -> LatticeStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def put_entries(self, entries: dict[str, Any]) -> None:
        """Write registry entries. Hashes already stored are left as-is."""
        self.db.executemany(
            build_insert_registry(),
            [(h, json.dumps(v)) for h, v in entries.items()],
        )
        self.db.commit()

    def append_node(self, node: MemoryNode, entries: dict[str, Any] | None = None) -> int:
        """Persist a node and the registry entries its faces point to.

        Returns:
            The row id of the node
        """
        if entries:
            self.db.executemany(
                build_insert_registry(),
                [(h, json.dumps(v)) for h, v in entries.items()],
            )
        params = {
            "lattice_index": node.lattice_index,
            "x": node.x,
            "y": node.y,
            "z": node.z,
            "timestamp": node.timestamp,
        }
        for face, column in FACE_COLUMNS.items():
            params[column] = node.face(face)
        cursor = self.db.execute(build_insert_node(), params)
        self.db.commit()
        return cursor.lastrowid

    def save(self, lattice: Lattice, registry: ContentRegistry) -> None:
        """Write a whole lattice and registry into an empty store."""
        self.put_entries(dict(registry.items()))
        for node in lattice:
            self.append_node(node)

    def load(self) -> tuple[Lattice, ContentRegistry]:
        """Rebuild the lattice and registry from the store."""
        registry = ContentRegistry(
            {
                row["hash"]: json.loads(row["content"])
                for row in self.db.execute(build_registry_query()).fetchall()
            }
        )

        pages: list[list[MemoryNode]] = []
        for row in self.db.execute(build_nodes_query()).fetchall():
            while len(pages) <= row["lattice_index"]:
                pages.append([])
            faces = {
                face: row[column]
                for face, column in FACE_COLUMNS.items()
                if row[column] is not None
            }
            pages[row["lattice_index"]].append(
                MemoryNode(
                    x=row["x"],
                    y=row["y"],
                    z=row["z"],
                    lattice_index=row["lattice_index"],
                    timestamp=row["timestamp"],
                    faces=faces,
                )
            )
        return Lattice(pages), registry

    def clear(self) -> None:
        """Remove every node and registry entry."""
        self.db.executescript(build_clear_store())
        self.db.commit()

    def page_counts(self) -> list[int]:
        """Node count for each stored page."""
        rows = self.db.execute(build_page_counts_query()).fetchall()
        return [row["node_count"] for row in rows]

"""SQL query builders for the lattice store."""

from eideus.models import FaceType

# Column holding each face; LEFT/RIGHT are SQL keywords
FACE_COLUMNS = {
    FaceType.FRONT: "front",
    FaceType.BACK: "back",
    FaceType.TOP: "top",
    FaceType.BOTTOM: "bottom",
    FaceType.LEFT: "left_face",
    FaceType.RIGHT: "right_face",
}


def build_insert_node() -> str:
    """Build insert for a memory node."""
    columns = ", ".join(FACE_COLUMNS.values())
    params = ", ".join(f":{c}" for c in FACE_COLUMNS.values())
    return f"""
    INSERT INTO nodes (lattice_index, x, y, z, timestamp, {columns})
    VALUES (:lattice_index, :x, :y, :z, :timestamp, {params})
    """


def build_insert_registry() -> str:
    """Build insert for a registry entry. Existing hashes are kept."""
    return """
    INSERT OR IGNORE INTO registry (hash, content)
    VALUES (?, ?)
    """


def build_nodes_query() -> str:
    """Build query for all nodes in lattice order.

    Within a page, z-major ordering matches insertion order.
    """
    return """
    SELECT *
    FROM nodes
    ORDER BY lattice_index, z, y, x
    """


def build_registry_query() -> str:
    return """
    SELECT hash, content
    FROM registry
    """


def build_page_counts_query() -> str:
    """Build query for node counts per page."""
    return """
    SELECT lattice_index, COUNT(*) AS node_count
    FROM nodes
    GROUP BY lattice_index
    ORDER BY lattice_index
    """


def build_clear_store() -> str:
    return """
    DELETE FROM nodes;
    DELETE FROM registry;
    """

"""MCP server for the Eideus narrative engine.

Exposes turn play, memory inspection and save handling through Model
Context Protocol tools.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from eideus.engine import NarrativeEngine
from eideus.lattice import node_to_dict
from eideus.models import EngineConfig, FaceType, RetrievedMemory
from eideus.state import slot_to_dict, world_state_to_dict

logger = logging.getLogger(__name__)

# Global engine instance (initialized on first connection)
_engine: NarrativeEngine | None = None


def get_engine() -> NarrativeEngine:
    """Get or initialize the engine instance."""
    global _engine
    if _engine is None:
        _engine = NarrativeEngine(EngineConfig.from_env())
    return _engine


# Initialize server
server = Server("eideus")


# -------------------------------------------------------------------------
# Tool Definitions
# -------------------------------------------------------------------------

TOOLS = [
    Tool(
        name="start_game",
        description="Play the hidden opening turn of a new game",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="take_turn",
        description="Submit player input and advance the story by one turn",
        inputSchema={
            "type": "object",
            "properties": {
                "input": {"type": "string", "description": "What the player says or does"},
            },
            "required": ["input"],
        },
    ),
    Tool(
        name="query_memories",
        description="Rank recorded turns against a query without playing a turn",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Query text"},
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="get_world_state",
        description="Get the current world-state tree, player and tavern patrons",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="get_npc_archive",
        description="Get the slot sets of NPCs who left the identity party",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="inspect_node",
        description="Resolve every face of the memory node at a lattice cell",
        inputSchema={
            "type": "object",
            "properties": {
                "page": {"type": "integer", "description": "Lattice page index"},
                "x": {"type": "integer", "minimum": 0, "maximum": 6},
                "y": {"type": "integer", "minimum": 0, "maximum": 6},
                "z": {"type": "integer", "minimum": 0, "maximum": 6},
            },
            "required": ["page", "x", "y", "z"],
        },
    ),
    Tool(
        name="lattice_summary",
        description="Page and node counts of the memory lattice",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="new_game",
        description="Discard the current game and start over",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="export_save",
        description="Export the current game as a save document",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="load_save",
        description="Replace the current game with a save document",
        inputSchema={
            "type": "object",
            "properties": {
                "save": {"type": "object", "description": "Save document from export_save"},
            },
            "required": ["save"],
        },
    ),
]


def memory_to_dict(memory: RetrievedMemory) -> dict[str, Any]:
    return {
        "relevance": round(memory.relevance, 4),
        "summary": memory.summary,
        "tags": memory.tags,
        "node": {
            "page": memory.node.lattice_index,
            "x": memory.node.x,
            "y": memory.node.y,
            "z": memory.node.z,
        },
    }


def _json(result: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2))]


# -------------------------------------------------------------------------
# MCP Handlers
# -------------------------------------------------------------------------


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    engine = get_engine()

    try:
        if name in ("start_game", "take_turn"):
            if name == "start_game":
                turn = await engine.start()
            else:
                turn = await engine.take_turn(arguments["input"])
            result = {
                "narrative": turn.narrative,
                "memories": [memory_to_dict(m) for m in turn.memories],
                "warnings": turn.warnings,
                "error": turn.error,
                "scene_change": bool(turn.update and turn.update.scene_change),
            }
            return _json(result)

        elif name == "query_memories":
            memories = await engine.recall(arguments["query"])
            return _json([memory_to_dict(m) for m in memories])

        elif name == "get_world_state":
            state = world_state_to_dict(engine.session.world_state)
            state.pop("npcArchive")
            return _json(state)

        elif name == "get_npc_archive":
            archive = engine.session.world_state.npc_archive
            return _json(
                {npc: [slot_to_dict(s) for s in slots] for npc, slots in archive.items()}
            )

        elif name == "inspect_node":
            session = engine.session
            node = session.lattice.node_at(
                arguments["page"], arguments["x"], arguments["y"], arguments["z"]
            )
            if node is None:
                return [TextContent(type="text", text="No memory node at that cell")]
            result = node_to_dict(node)
            result["content"] = {
                face.value: session.registry.get(node.face(face)) for face in FaceType
            }
            return _json(result)

        elif name == "lattice_summary":
            lattice = engine.session.lattice
            result = {
                "pages": len(lattice.pages),
                "active_page": lattice.active_page_index,
                "nodes_per_page": [len(p) for p in lattice.pages],
                "total_nodes": lattice.node_count,
                "registry_entries": len(engine.session.registry),
                "pending_writes": len(engine.pending_writes),
            }
            return _json(result)

        elif name == "new_game":
            engine.new_game()
            return [TextContent(type="text", text="Started a new game")]

        elif name == "export_save":
            await engine.drain()
            return _json(engine.export_save())

        elif name == "load_save":
            engine.load_session(arguments["save"])
            return [TextContent(type="text", text="Game loaded")]

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except Exception as e:
        logger.exception("Tool %s failed", name)
        return [TextContent(type="text", text=f"Error: {str(e)}")]


# -------------------------------------------------------------------------
# Main Entry Point
# -------------------------------------------------------------------------


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def run() -> None:
    """Console entry point. Logs go to stderr; stdout carries the protocol."""
    import asyncio

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()

"""Tests for the MCP tool handlers, driven without a stdio transport."""

import asyncio
import json

import pytest
from eideus import mcp
from eideus.mcp import TOOLS, call_tool, list_tools

GREETING = [
    "The innkeeper nods slowly.",
    "|||JSON|||",
    '{"playerUpdate": {"name": "Aric"}, "identityUpdate": {"modifiers": [{"index": 0, "name": "Grak", "score": 40}]}}',
]


@pytest.fixture
def engine(make_engine, monkeypatch):
    engine = make_engine(GREETING)
    monkeypatch.setattr(mcp, "_engine", engine)
    return engine


def text_of(result):
    assert len(result) == 1
    return result[0].text


def test_tool_names():
    tools = asyncio.run(list_tools())

    assert tools is TOOLS
    assert {t.name for t in tools} == {
        "start_game",
        "take_turn",
        "query_memories",
        "get_world_state",
        "get_npc_archive",
        "inspect_node",
        "lattice_summary",
        "new_game",
        "export_save",
        "load_save",
    }


def test_get_engine_from_env(monkeypatch):
    monkeypatch.setattr(mcp, "_engine", None)
    monkeypatch.setenv("EIDEUS_EMBEDDING_BACKEND", "hash")
    monkeypatch.delenv("EIDEUS_DB_PATH", raising=False)

    engine = mcp.get_engine()

    assert engine.config.embedding_backend == "hash"
    assert engine.store is None
    assert mcp.get_engine() is engine


def test_turn_then_inspect(engine):
    async def play():
        turn = json.loads(text_of(await call_tool("take_turn", {"input": "Hello there"})))
        save = json.loads(text_of(await call_tool("export_save", {})))
        state = json.loads(text_of(await call_tool("get_world_state", {})))
        node = json.loads(text_of(await call_tool("inspect_node", {"page": 0, "x": 0, "y": 0, "z": 0})))
        summary = json.loads(text_of(await call_tool("lattice_summary", {})))
        return turn, save, state, node, summary

    turn, save, state, node, summary = asyncio.run(play())

    assert turn["narrative"] == "The innkeeper nods slowly."
    assert turn["warnings"] == []
    assert turn["scene_change"] is False
    assert len(save["engineState"]["memoryLattices"][0]) == 1
    assert state["player"]["name"] == "Aric"
    assert state["identity"]["modifiers"][0]["name"] == "Grak"
    assert "npcArchive" not in state
    assert node["content"]["FRONT"] == "Hello there"
    assert node["content"]["TOP"] == "A stranger arrives"
    assert summary["total_nodes"] == 1
    assert summary["pending_writes"] == 0


def test_inspect_empty_cell(engine):
    result = asyncio.run(call_tool("inspect_node", {"page": 0, "x": 3, "y": 3, "z": 3}))

    assert text_of(result) == "No memory node at that cell"


def test_bad_save_reported_as_error(engine):
    result = asyncio.run(call_tool("load_save", {"save": {"messages": []}}))

    assert text_of(result) == "Error: Invalid Save File Format"


def test_unknown_tool(engine):
    result = asyncio.run(call_tool("summon_dragon", {}))

    assert text_of(result) == "Unknown tool: summon_dragon"


def test_new_game_resets(engine):
    async def play():
        await call_tool("take_turn", {"input": "Hello there"})
        await engine.drain()
        await call_tool("new_game", {})
        return json.loads(text_of(await call_tool("get_npc_archive", {})))

    archive = asyncio.run(play())

    assert archive == {}
    assert engine.session.lattice.node_count == 0
    assert engine.session.world_state.player.name is None

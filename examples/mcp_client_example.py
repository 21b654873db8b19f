"""Example of playing Eideus through MCP.

This demonstrates how a chat front end or orchestrator would drive the
MCP server: start a game, take turns, and inspect the memory lattice.
"""

import asyncio
import json
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client


async def run_example():
    """Run example MCP interactions."""
    # Connect to the MCP server
    server_params = StdioServerParameters(
        command="eideus-mcp",
        env={
            "EIDEUS_DB_PATH": "example_game.db",
            "EIDEUS_EMBEDDING_BACKEND": "local",
        },
    )

    async with stdio_client(server_params) as (read, write):
        async with ClientSession(read, write) as session:
            # Initialize connection
            await session.initialize()

            # List available tools
            tools = await session.list_tools()
            print(f"Available tools: {[t.name for t in tools.tools]}")

            # Hidden opening turn
            print("\n=== Opening ===")
            opening = await session.call_tool("start_game", {})
            print(json.loads(opening.content[0].text)["narrative"])

            # A few player turns
            for line in [
                "I ask the barkeep what town this is.",
                "I look for anyone who seems to recognise me.",
                "I follow the hooded stranger outside.",
            ]:
                print(f"\n> {line}")
                result = await session.call_tool("take_turn", {"input": line})
                turn = json.loads(result.content[0].text)
                print(turn["narrative"])
                for warning in turn["warnings"]:
                    print(f"  (warning: {warning})")
                if turn["scene_change"]:
                    print("  --- scene transition ---")

            # Who is in the party now?
            print("\n=== Identity bonds ===")
            state = await session.call_tool("get_world_state", {})
            state_data = json.loads(state.content[0].text)
            for modifier in state_data["identity"]["modifiers"]:
                print(f"  - {modifier['name']} ({modifier.get('score', 0)})")

            # What does the lattice remember about the stranger?
            print("\n=== Memories of the stranger ===")
            memories = await session.call_tool("query_memories", {"query": "hooded stranger"})
            for mem in json.loads(memories.content[0].text):
                node = mem["node"]
                print(
                    f"  - [{mem['relevance']:.2f}] {mem['summary']} "
                    f"@ page {node['page']} ({node['x']}, {node['y']}, {node['z']})"
                )

            # Resolve the first recorded turn
            print("\n=== First memory node ===")
            node = await session.call_tool("inspect_node", {"page": 0, "x": 0, "y": 0, "z": 0})
            print(node.content[0].text)

            summary = await session.call_tool("lattice_summary", {})
            print(f"\nLattice: {summary.content[0].text}")


if __name__ == "__main__":
    asyncio.run(run_example())

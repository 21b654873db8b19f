"""Play Eideus in a terminal.

This example demonstrates:
- Streaming narrative to the screen as it arrives
- World-state updates applied after each turn
- Recalled memories from the lattice
- Saving and loading a game

Requires EIDEUS_API_KEY (or OPENAI_API_KEY) in the environment.
"""

import asyncio
import json
import sys

from eideus import NarrativeEngine, EngineConfig


def show(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


async def play(engine: NarrativeEngine) -> None:
    if not engine.session.has_started:
        result = await engine.start(on_narrative=show)
        print()
        if result.error:
            print(f"[{result.error}]")
            return

    while True:
        try:
            line = input("\n> ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line == "/quit":
            break
        if line.startswith("/save "):
            await engine.drain()
            with open(line[6:], "w") as f:
                json.dump(engine.export_save(), f)
            print("Game saved.")
            continue
        if line.startswith("/load "):
            with open(line[6:]) as f:
                engine.load_session(json.load(f))
            print("Game loaded.")
            continue

        result = await engine.take_turn(line, on_narrative=show)
        print()
        if result.error:
            print(f"[{result.error}]")
            continue
        for memory in result.memories:
            print(f"  (recalled: {memory.summary} {memory.tags})")
        if result.update and result.update.scene_change:
            print("--- scene transition ---")

        state = engine.session.world_state
        bonds = ", ".join(f"{m.name} ({m.score})" for m in state.identity.modifiers)
        print(f"  [{state.player.name or '???'} | {state.player.status} | bonds: {bonds}]")

    await engine.drain()


def main():
    config = EngineConfig.from_env()
    config.db_path = config.db_path or "eideus_game.db"
    engine = NarrativeEngine(config)

    try:
        asyncio.run(play(engine))
    finally:
        engine.close()


if __name__ == "__main__":
    main()

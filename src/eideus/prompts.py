"""Prompt text for the narrative generator and the turn analyzer."""

from __future__ import annotations

import json

from eideus.models import ChatMessage, RetrievedMemory, WorldState
from eideus.state import state_context
from eideus.stream import SEPARATOR

UPDATE_SHAPE = """
{
  "meta": { "sceneChange": boolean },
  "playerUpdate": { "name": "string or null", "status": "string or null" },
  "tavernUpdate": [ { "name": "string", "relationship": number, "description": "string" } ],
  "identityUpdate": {
    "modifiers": [
      {
        "index": number, "name": "string", "description": "string", "score": number,
        "slots": [ { "index": number, "name": "string", "description": "string", "active": boolean, "associatedWith": "string" } ]
      }
    ]
  },
  "worldUpdate": {
    "modifiers": [
      {
        "index": number, "name": "string",
        "slots": [ { "index": number, "name": "string", "description": "string", "active": boolean, "associatedWith": "string" } ]
      }
    ]
  },
  "storyUpdate": {
    "modifiers": [
      {
        "index": number, "name": "string",
        "slots": [ { "index": number, "name": "string", "description": "string", "active": boolean, "associatedWith": "string" } ]
      }
    ]
  }
}
"""

SYSTEM_INSTRUCTION = f"""
You are the Game Master and Narrative Architect of the Eideus Dawn RPG engine.
Stay in character as the GM in all narrative text.

**Structure:** The world state is three Transforms (Identity, World, Story),
each with three Modifiers, each with seven Slots.

**Pacing:**
1. Keep descriptions and action concise (about 500 tokens at most).
2. Keep dialogue snappy and reactive (about 300 tokens at most).

**Formatting:**
1. Put all spoken words in double quotes.
2. Put proper names of locations, key items and key NPCs in **double asterisks**.

**Phases:**
1. Opening: the player wakes with amnesia in a tavern with 6 patrons. Prompt
   them to choose a name and get the patrons talking.
2. Identity: track hidden 0-100 relationship scores for the 6 patrons. The top
   3 become the Identity modifiers. Fill each one's 7 slots with related minor
   NPCs or aspects as the player interacts with them.
3. World: Novelty (7 wonders, magic, physics), Geopolitics (7 factions or
   nations) and Local Geography (7 landmarks). Associate landmarks with active
   Identity NPCs through "associatedWith" when the story allows.
4. Story: Protagonists (7 allies), Antagonists (7 opposing forces) and
   Mutation (7 plot twists).

**Identity swaps:** when a new patron enters the top 3, send the full
identityUpdate for that modifier index with the new name and all 7 slots. If
that NPC held a modifier before, restore their earlier slots where the story
allows.

**Updates:**
* Only send fields that changed.
* If the player moves to an entirely new location, set "meta":
  {{"sceneChange": true}}. The chat history will be cleared, so the state must
  carry everything needed for the next scene.
* When a patron's relationship reaches 80 or more, fill all 7 of their
  Identity slots, one Local Geography slot and one Geopolitics slot linked to
  them.
* If the player betrays a main NPC, make their minor NPCs hostile.

**Output protocol (streamed):**
1. Write the narrative first.
2. Then, on a new line, write exactly: {SEPARATOR}
3. Then write one JSON object (minified is fine) shaped like:
{UPDATE_SHAPE}
Do not put the narrative inside the JSON.
"""

ANALYSIS_PROMPT = """
Analyze this RPG turn.
Input: "{input}"
Output: "{output}"

Return JSON with:
- "scene": A short 10-word summary of the event.
- "names": List of proper names mentioned.
- "tags": List of abstract thematic tags (e.g. "Combat", "Betrayal").
"""


def format_memories(memories: list[RetrievedMemory]) -> str:
    if not memories:
        return ""
    lines = ["[RECALLED MEMORIES (Use these to inform the narrative)]:"]
    for i, m in enumerate(memories, start=1):
        lines.append(
            f"{i}. [{m.relevance:.2f}] Summary: {m.summary} | Tags: {', '.join(m.tags)}"
        )
    return "\n".join(lines)


def build_turn_input(
    player_input: str,
    state: WorldState,
    memories: list[RetrievedMemory],
) -> str:
    """The user message for a turn: state, recalled memories, then input."""
    parts = [
        "[PERSISTENT WORLD STATE]:",
        json.dumps(state_context(state)),
    ]
    memory_block = format_memories(memories)
    if memory_block:
        parts.append(memory_block)
    parts.extend(["[PLAYER INPUT]:", player_input])
    return "\n".join(parts)


def build_messages(
    history: list[ChatMessage],
    player_input: str,
    state: WorldState,
    memories: list[RetrievedMemory],
) -> list[dict[str, str]]:
    """Chat-completion messages for a turn.

    System notices in the history are local to the UI and are not sent.
    """
    messages = [{"role": "system", "content": SYSTEM_INSTRUCTION}]
    for msg in history:
        if msg.role == "user":
            messages.append({"role": "user", "content": msg.content})
        elif msg.role == "model":
            messages.append({"role": "assistant", "content": msg.content})
    messages.append(
        {"role": "user", "content": build_turn_input(player_input, state, memories)}
    )
    return messages

"""World-state construction and serialization.

The dict shapes here use the camelCase keys of the save format so that
saves stay loadable across versions.
"""

from __future__ import annotations

from typing import Any

from eideus.models import (
    Modifier,
    PlayerState,
    Slot,
    TavernNPC,
    Transform,
    WorldState,
)

SLOTS_PER_MODIFIER = 7
MODIFIERS_PER_TRANSFORM = 3
TAVERN_SIZE = 6


def create_empty_slots(count: int = SLOTS_PER_MODIFIER) -> tuple[Slot, ...]:
    return tuple(Slot(id=f"slot-{i}") for i in range(count))


def create_modifier(id: str, name: str, type: str, description: str) -> Modifier:
    return Modifier(
        id=id,
        name=name,
        type=type,
        description=description,
        slots=create_empty_slots(),
        score=0,
    )


def initial_world_state() -> WorldState:
    """The world state at the start of a new game."""
    identity = Transform(
        id="transform-identity",
        name="Identity Phase",
        description="The Protagonist and their closest bonds.",
        modifiers=(
            create_modifier("id-mod-1", "Pending Bond A", "Supporting NPC", "Highest relationship NPC will appear here."),
            create_modifier("id-mod-2", "Pending Bond B", "Supporting NPC", "Second highest relationship NPC."),
            create_modifier("id-mod-3", "Pending Bond C", "Supporting NPC", "Third highest relationship NPC."),
        ),
    )
    world = Transform(
        id="transform-world",
        name="World Phase",
        description="The setting and environment.",
        modifiers=(
            create_modifier("world-mod-1", "Novelty", "Theme", "7 unique aspects of this world (Wonders, Magic, Physics)."),
            create_modifier("world-mod-2", "Geopolitics", "Factions", "7 main powers, nations, or cities."),
            create_modifier("world-mod-3", "Local Geography", "Location", "7 key local landmarks relevant to the story."),
        ),
    )
    story = Transform(
        id="transform-story",
        name="Inception Phase",
        description="The narrative drivers.",
        modifiers=(
            create_modifier("story-mod-1", "Protagonists", "Allies", "7 entities or NPCs derived from Identity bonds."),
            create_modifier("story-mod-2", "Antagonists", "Enemies", "7 forces opposing the player."),
            create_modifier("story-mod-3", "Mutation", "Chaos", "7 random story drivers/plot twists."),
        ),
    )
    tavern = tuple(
        TavernNPC(name=f"Unknown Patron {i}", relationship=0, description="A shadowy figure.")
        for i in range(1, TAVERN_SIZE + 1)
    )
    return WorldState(
        identity=identity,
        world=world,
        story=story,
        player=PlayerState(name=None, status="Amnesiac"),
        tavern_npcs=tavern,
        npc_archive={},
    )


# -------------------------------------------------------------------------
# Save-format codec
# -------------------------------------------------------------------------


def slot_to_dict(slot: Slot) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": slot.id,
        "name": slot.name,
        "description": slot.description,
        "active": slot.active,
    }
    if slot.associated_with is not None:
        data["associatedWith"] = slot.associated_with
    return data


def slot_from_dict(data: dict[str, Any], index: int = 0) -> Slot:
    return Slot(
        id=data.get("id") or f"slot-{index}",
        name=data.get("name") or "Empty",
        description=data.get("description") or "",
        active=bool(data.get("active", False)),
        associated_with=data.get("associatedWith") or None,
    )


def modifier_to_dict(modifier: Modifier) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": modifier.id,
        "name": modifier.name,
        "type": modifier.type,
        "description": modifier.description,
        "slots": [slot_to_dict(s) for s in modifier.slots],
    }
    if modifier.score is not None:
        data["score"] = modifier.score
    return data


def _fixed_slots(raw: list[dict[str, Any]] | None) -> tuple[Slot, ...]:
    slots = [slot_from_dict(d, i) for i, d in enumerate((raw or [])[:SLOTS_PER_MODIFIER])]
    slots.extend(Slot(id=f"slot-{i}") for i in range(len(slots), SLOTS_PER_MODIFIER))
    return tuple(slots)


def modifier_from_dict(data: dict[str, Any]) -> Modifier:
    return Modifier(
        id=data.get("id", ""),
        name=data.get("name", ""),
        type=data.get("type", ""),
        description=data.get("description", ""),
        slots=_fixed_slots(data.get("slots")),
        score=data.get("score"),
    )


def transform_to_dict(transform: Transform) -> dict[str, Any]:
    return {
        "id": transform.id,
        "name": transform.name,
        "description": transform.description,
        "modifiers": [modifier_to_dict(m) for m in transform.modifiers],
    }


def transform_from_dict(data: dict[str, Any], default: Transform) -> Transform:
    raw = data.get("modifiers") or []
    modifiers = [modifier_from_dict(d) for d in raw[:MODIFIERS_PER_TRANSFORM]]
    modifiers.extend(default.modifiers[len(modifiers):])
    return Transform(
        id=data.get("id", default.id),
        name=data.get("name", default.name),
        description=data.get("description", default.description),
        modifiers=tuple(modifiers),
    )


def world_state_to_dict(state: WorldState) -> dict[str, Any]:
    return {
        "identity": transform_to_dict(state.identity),
        "world": transform_to_dict(state.world),
        "story": transform_to_dict(state.story),
        "player": {"name": state.player.name, "status": state.player.status},
        "tavernNPCs": [
            {"name": n.name, "relationship": n.relationship, "description": n.description}
            for n in state.tavern_npcs
        ],
        "npcArchive": {
            name: [slot_to_dict(s) for s in slots]
            for name, slots in state.npc_archive.items()
        },
    }


def world_state_from_dict(data: dict[str, Any]) -> WorldState:
    """Rebuild a WorldState, filling anything missing from the initial state."""
    default = initial_world_state()
    player = data.get("player") or {}
    tavern = data.get("tavernNPCs")
    archive = data.get("npcArchive") or {}
    return WorldState(
        identity=transform_from_dict(data.get("identity") or {}, default.identity),
        world=transform_from_dict(data.get("world") or {}, default.world),
        story=transform_from_dict(data.get("story") or {}, default.story),
        player=PlayerState(
            name=player.get("name"),
            status=player.get("status") or default.player.status,
        ),
        tavern_npcs=tuple(
            TavernNPC(
                name=n.get("name", ""),
                relationship=n.get("relationship", 0),
                description=n.get("description", ""),
            )
            for n in tavern
        ) if tavern is not None else default.tavern_npcs,
        npc_archive={
            name: tuple(slot_from_dict(d, i) for i, d in enumerate(slots))
            for name, slots in archive.items()
        },
    )


# -------------------------------------------------------------------------
# Generator context
# -------------------------------------------------------------------------


def _simplify_transform(transform: Transform) -> dict[str, Any]:
    return {
        "modifiers": [
            {
                "name": m.name,
                "description": m.description,
                "score": m.score,
                "slots": [
                    {
                        "name": s.name,
                        "description": s.description,
                        "associatedWith": s.associated_with,
                    }
                    for s in m.slots
                    if s.active or s.name != "Empty"
                ],
            }
            for m in transform.modifiers
        ]
    }


def state_context(state: WorldState) -> dict[str, Any]:
    """Reduced world state sent to the generator.

    Empty inactive slots are dropped to save context tokens.
    """
    return {
        "player": {"name": state.player.name, "status": state.player.status},
        "tavernNPCs": [
            {"name": n.name, "relationship": n.relationship, "description": n.description}
            for n in state.tavern_npcs
        ],
        "identity": _simplify_transform(state.identity),
        "world": _simplify_transform(state.world),
        "story": _simplify_transform(state.story),
    }

"""Sparse, index-addressed updates to the world-state tree.

Patches never resize the tree: indices outside the fixed modifier/slot
ranges are dropped. Every merge builds new Transform/Modifier/Slot values
and leaves its inputs untouched.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from typing import Any

from eideus.models import (
    Modifier,
    ModifierPatch,
    PlayerPatch,
    PlayerState,
    Slot,
    SlotPatch,
    StateUpdate,
    TavernNPC,
    Transform,
    TransformPatch,
    WorldState,
)

logger = logging.getLogger(__name__)

PENDING_SENTINEL = "Pending"
SCORE_RANGE = (0, 100)


# -------------------------------------------------------------------------
# Decoding
# -------------------------------------------------------------------------


def _str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _number(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return int(round(value))


def _bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _decode_slot(data: Any) -> SlotPatch | None:
    if not isinstance(data, dict):
        return None
    index = _int(data.get("index"))
    if index is None:
        return None
    return SlotPatch(
        index=index,
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        active=_bool(data.get("active")),
        associated_with=_str(data.get("associatedWith")),
    )


def _decode_modifier(data: Any) -> ModifierPatch | None:
    if not isinstance(data, dict):
        return None
    index = _int(data.get("index"))
    if index is None:
        return None
    raw_slots = data.get("slots")
    slots = tuple(
        s for s in (_decode_slot(d) for d in raw_slots or ()) if s is not None
    ) if isinstance(raw_slots, list) else ()
    return ModifierPatch(
        index=index,
        name=_str(data.get("name")),
        description=_str(data.get("description")),
        type=_str(data.get("type")),
        score=_number(data.get("score")),
        slots=slots,
    )


def decode_transform_patch(data: Any) -> TransformPatch | None:
    if not isinstance(data, dict) or not isinstance(data.get("modifiers"), list):
        return None
    modifiers = tuple(
        m for m in (_decode_modifier(d) for d in data["modifiers"]) if m is not None
    )
    return TransformPatch(modifiers=modifiers)


def _decode_tavern(data: Any) -> tuple[TavernNPC, ...] | None:
    if not isinstance(data, list):
        return None
    npcs = []
    for item in data:
        if not isinstance(item, dict) or not _str(item.get("name")):
            continue
        npcs.append(
            TavernNPC(
                name=item["name"],
                relationship=_number(item.get("relationship")) or 0,
                description=_str(item.get("description")) or "",
            )
        )
    return tuple(npcs)


def decode_update(data: dict[str, Any]) -> StateUpdate:
    """Build a typed StateUpdate from a raw payload object.

    Unknown keys are ignored and mistyped fields are dropped.
    """
    meta = data.get("meta")
    scene_change = isinstance(meta, dict) and meta.get("sceneChange") is True

    player = None
    raw_player = data.get("playerUpdate")
    if isinstance(raw_player, dict):
        player = PlayerPatch(
            name=_str(raw_player.get("name")),
            status=_str(raw_player.get("status")),
        )

    return StateUpdate(
        scene_change=scene_change,
        player=player,
        tavern_npcs=_decode_tavern(data.get("tavernUpdate")),
        identity=decode_transform_patch(data.get("identityUpdate")),
        world=decode_transform_patch(data.get("worldUpdate")),
        story=decode_transform_patch(data.get("storyUpdate")),
    )


# -------------------------------------------------------------------------
# Merging
# -------------------------------------------------------------------------


def merge_slot(slot: Slot, patch: SlotPatch) -> Slot:
    changes: dict[str, Any] = {}
    if patch.name:
        changes["name"] = patch.name
    if patch.description:
        changes["description"] = patch.description
    if patch.active is not None:
        changes["active"] = patch.active
    if patch.associated_with is not None:
        changes["associated_with"] = patch.associated_with or None
    return dataclasses.replace(slot, **changes) if changes else slot


def merge_modifier(modifier: Modifier, patch: ModifierPatch) -> Modifier:
    changes: dict[str, Any] = {}
    if patch.name:
        changes["name"] = patch.name
    if patch.description:
        changes["description"] = patch.description
    if patch.type:
        changes["type"] = patch.type
    if patch.score is not None:
        low, high = SCORE_RANGE
        changes["score"] = min(high, max(low, patch.score))

    if patch.slots:
        slots = list(modifier.slots)
        for slot_patch in patch.slots:
            if 0 <= slot_patch.index < len(slots):
                slots[slot_patch.index] = merge_slot(slots[slot_patch.index], slot_patch)
        changes["slots"] = tuple(slots)

    return dataclasses.replace(modifier, **changes) if changes else modifier


def is_identity_swap(old_name: str | None, new_name: str | None) -> bool:
    """Whether renaming a modifier retires a real occupant worth archiving."""
    return bool(
        new_name
        and old_name
        and new_name != old_name
        and PENDING_SENTINEL not in old_name
    )


def merge_transform(
    transform: Transform,
    patch: TransformPatch | None,
    archive: dict[str, tuple[Slot, ...]] | None = None,
) -> tuple[Transform, dict[str, tuple[Slot, ...]] | None]:
    """Apply a transform patch.

    Args:
        transform: Current transform
        patch: Sparse patch, or None for no change
        archive: NPC archive to extend with retired occupants. None disables
            archiving for this transform.

    Returns:
        The new transform and the (possibly new) archive
    """
    if patch is None or not patch.modifiers:
        return transform, archive

    modifiers = list(transform.modifiers)
    new_archive = archive
    archived: set[int] = set()
    for mod_patch in patch.modifiers:
        idx = mod_patch.index
        if not 0 <= idx < len(modifiers):
            logger.debug("Dropping modifier patch with index %s", idx)
            continue
        # Swaps are judged against the pre-patch occupant
        previous = transform.modifiers[idx]
        if (
            archive is not None
            and idx not in archived
            and is_identity_swap(previous.name, mod_patch.name)
        ):
            if new_archive is archive:
                new_archive = dict(archive)
            new_archive[previous.name] = previous.slots
            archived.add(idx)
            logger.debug("Archived %s before swap to %s", previous.name, mod_patch.name)
        modifiers[idx] = merge_modifier(modifiers[idx], mod_patch)

    return dataclasses.replace(transform, modifiers=tuple(modifiers)), new_archive


def merge_player(player: PlayerState, patch: PlayerPatch | None) -> PlayerState:
    if patch is None:
        return player
    changes: dict[str, Any] = {}
    if patch.name:
        changes["name"] = patch.name
    if patch.status:
        changes["status"] = patch.status
    return dataclasses.replace(player, **changes) if changes else player


def apply_update(state: WorldState, update: StateUpdate) -> WorldState:
    """Produce the next world state from a decoded update.

    Identity modifiers hold NPCs, so only identity swaps are archived.
    """
    identity, archive = merge_transform(state.identity, update.identity, state.npc_archive)
    world, _ = merge_transform(state.world, update.world)
    story, _ = merge_transform(state.story, update.story)

    return dataclasses.replace(
        state,
        identity=identity,
        world=world,
        story=story,
        player=merge_player(state.player, update.player),
        tavern_npcs=update.tavern_npcs if update.tavern_npcs is not None else state.tavern_npcs,
        npc_archive=archive if archive is not None else state.npc_archive,
    )

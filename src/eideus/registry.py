"""Content-addressed registry backing memory node faces."""

from __future__ import annotations

import copy
import hashlib
import json
from typing import Any, Iterable, Iterator


def serialize_content(content: Any) -> str:
    """Serialize content to the string its hash is computed over."""
    if isinstance(content, str):
        return content
    return json.dumps(content, separators=(",", ":"), ensure_ascii=False)


def generate_hash(content: Any) -> str:
    """Deterministic content hash of the form ``0x<digest>-<length>``."""
    text = serialize_content(content)
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]
    return f"0x{digest}-{len(text)}"


class ContentRegistry:
    """Append-only hash -> value store.

    Values are JSON-compatible (text, tag lists, numeric vectors). The first
    write for a hash wins; later puts of the same hash are no-ops.
    """

    def __init__(self, entries: dict[str, Any] | None = None):
        self._entries: dict[str, Any] = dict(entries) if entries else {}

    def put(self, content: Any) -> str:
        """Store content and return its hash."""
        key = generate_hash(content)
        if key not in self._entries:
            self._entries[key] = copy.deepcopy(content)
        return key

    def put_many(self, contents: Iterable[Any]) -> list[str]:
        return [self.put(c) for c in contents]

    def get(self, key: str | None) -> Any | None:
        """Return the stored value, or None for unknown hashes."""
        if key is None:
            return None
        return self._entries.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self):
        return self._entries.items()

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._entries)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ContentRegistry:
        return cls(copy.deepcopy(data) if data else None)

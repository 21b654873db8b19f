"""Streaming split of generator output into narrative and update payload.

The generator writes ``<narrative>|||JSON|||<payload>`` as one stream of
arbitrarily sized chunks. Narrative is surfaced as soon as it is known not
to be the start of the separator; everything after the separator is the
payload.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, AsyncIterable, Callable

from eideus.errors import MalformedPayloadError

SEPARATOR = "|||JSON|||"


class SplitState(str, Enum):
    NARRATIVE = "narrative"
    PAYLOAD = "payload"


class StreamSplitter:
    """Incremental splitter for one generator stream.

    Call ``feed`` for each chunk and ``finish`` once the stream ends. Both
    return the narrative text that became safe to display.
    """

    def __init__(self, separator: str = SEPARATOR):
        if not separator:
            raise ValueError("Separator must be non-empty")
        self.separator = separator
        self.state = SplitState.NARRATIVE
        self._buffer = ""
        self._narrative: list[str] = []
        self._payload: list[str] = []

    @property
    def narrative(self) -> str:
        """Narrative emitted so far."""
        return "".join(self._narrative)

    @property
    def payload(self) -> str:
        """Raw payload text collected after the separator."""
        return "".join(self._payload)

    @property
    def found_separator(self) -> bool:
        return self.state is SplitState.PAYLOAD

    def feed(self, chunk: str) -> str:
        if not chunk:
            return ""
        if self.state is SplitState.PAYLOAD:
            self._payload.append(chunk)
            return ""

        self._buffer += chunk
        split_index = self._buffer.find(self.separator)
        if split_index != -1:
            emitted = self._buffer[:split_index]
            self._payload.append(self._buffer[split_index + len(self.separator):])
            self._buffer = ""
            self.state = SplitState.PAYLOAD
            return self._emit(emitted)

        # Hold back the tail that could still be a separator prefix
        safe_length = len(self._buffer) - (len(self.separator) - 1)
        if safe_length <= 0:
            return ""
        emitted = self._buffer[:safe_length]
        self._buffer = self._buffer[safe_length:]
        return self._emit(emitted)

    def finish(self) -> str:
        """Flush the held-back tail when no separator ever arrived."""
        if self.state is SplitState.PAYLOAD or not self._buffer:
            return ""
        emitted = self._buffer
        self._buffer = ""
        return self._emit(emitted)

    def _emit(self, text: str) -> str:
        if text:
            self._narrative.append(text)
        return text


async def split_stream(
    chunks: AsyncIterable[str | None],
    on_narrative: Callable[[str], Any] | None = None,
    separator: str = SEPARATOR,
) -> StreamSplitter:
    """Drive a StreamSplitter over an async chunk stream.

    ``on_narrative`` receives each newly displayable piece of narrative.
    """
    splitter = StreamSplitter(separator)
    async for chunk in chunks:
        emitted = splitter.feed(chunk or "")
        if emitted and on_narrative is not None:
            on_narrative(emitted)
    emitted = splitter.finish()
    if emitted and on_narrative is not None:
        on_narrative(emitted)
    return splitter


def _reject_constant(name: str) -> Any:
    raise MalformedPayloadError(f"Non-finite number in update payload: {name}")


def extract_payload(text: str) -> dict[str, Any]:
    """Parse the JSON object inside raw payload text.

    Leading and trailing wrapper text (code fences, chatter) is ignored by
    taking the outermost brace pair. ``NaN`` and ``Infinity`` are rejected.
    """
    text = text or ""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise MalformedPayloadError("No JSON object found in update payload")
    try:
        data = json.loads(text[start : end + 1], parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"Invalid JSON in update payload: {e}") from e
    if not isinstance(data, dict):
        raise MalformedPayloadError("Update payload is not a JSON object")
    return data

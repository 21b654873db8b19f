"""Generator and turn-analyzer contracts, with OpenAI adapters."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, AsyncIterator, Protocol

from eideus.errors import ConfigurationError
from eideus.models import ChatMessage, RetrievedMemory, TurnMetadata, WorldState
from eideus.prompts import ANALYSIS_PROMPT, build_messages

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "API key not found. Set EIDEUS_API_KEY or OPENAI_API_KEY to play."
)


class TextGenerator(Protocol):
    """Produces the streamed narrative + update payload for a turn."""

    def stream(
        self,
        history: list[ChatMessage],
        player_input: str,
        state: WorldState,
        memories: list[RetrievedMemory],
    ) -> AsyncIterator[str]:
        """Yield text chunks of ``<narrative>|||JSON|||<payload>``."""
        ...


class TurnAnalyzer(Protocol):
    """Extracts summary, names and tags from a finished turn."""

    async def analyze(self, player_input: str, output: str) -> TurnMetadata:
        ...


def resolve_api_key(api_key: str | None = None) -> str:
    """Return the configured key or raise a player-facing ConfigurationError."""
    key = api_key or os.getenv("EIDEUS_API_KEY") or os.getenv("OPENAI_API_KEY")
    if not key:
        raise ConfigurationError(MISSING_KEY_MESSAGE)
    return key


def decode_metadata(data: Any) -> TurnMetadata:
    """Build TurnMetadata from an analyzer JSON reply, tolerating bad fields."""
    if not isinstance(data, dict):
        return TurnMetadata()

    def _strings(value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, list):
            return ()
        return tuple(str(v).strip() for v in value if str(v).strip())

    scene = data.get("scene")
    return TurnMetadata(
        scene=scene if isinstance(scene, str) and scene.strip() else "Unanalyzed",
        names=_strings(data.get("names")),
        tags=_strings(data.get("tags")),
    )


class OpenAIGenerator:
    """Streams turns from the OpenAI chat completions API."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        temperature: float = 0.7,
        client: Any | None = None,
    ):
        if client is None:
            key = resolve_api_key(api_key)
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=key)
        self.client = client
        self.model = model
        self.temperature = temperature

    async def stream(
        self,
        history: list[ChatMessage],
        player_input: str,
        state: WorldState,
        memories: list[RetrievedMemory],
    ) -> AsyncIterator[str]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=build_messages(history, player_input, state, memories),
            temperature=self.temperature,
            stream=True,
        )
        async for chunk in response:
            if not chunk.choices:
                continue
            text = chunk.choices[0].delta.content
            if text:
                yield text


class OpenAIAnalyzer:
    """Asks an OpenAI model for turn metadata in JSON mode."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        client: Any | None = None,
    ):
        if client is None:
            key = resolve_api_key(api_key)
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=key)
        self.client = client
        self.model = model

    async def analyze(self, player_input: str, output: str) -> TurnMetadata:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": ANALYSIS_PROMPT.format(input=player_input, output=output),
                    }
                ],
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content if response.choices else None
            if content:
                return decode_metadata(json.loads(content))
        except Exception as e:
            logger.warning("Metadata extraction failed: %s", e)
        return TurnMetadata()

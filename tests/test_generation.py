"""Tests for prompt assembly and the OpenAI adapters, using a fake client."""

import asyncio
import json
from types import SimpleNamespace

import pytest
from eideus.errors import ConfigurationError
from eideus.generation import (
    MISSING_KEY_MESSAGE,
    OpenAIAnalyzer,
    OpenAIGenerator,
    decode_metadata,
    resolve_api_key,
)
from eideus.lattice import Lattice
from eideus.models import ChatMessage, RetrievedMemory, TurnMetadata
from eideus.prompts import SYSTEM_INSTRUCTION, build_messages, format_memories
from eideus.state import initial_world_state
from eideus.stream import SEPARATOR


class FakeCompletions:
    def __init__(self, chunks=(), content=None, error=None):
        self.chunks = list(chunks)
        self.content = content
        self.error = error
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return self._stream()
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    async def _stream(self):
        yield SimpleNamespace(choices=[])
        for text in self.chunks:
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])
        yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=None))])


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def make_memory(summary="Met Grak", tags=("Arrival",)):
    node = Lattice().append({})
    return RetrievedMemory(node=node, relevance=0.75, summary=summary, tags=list(tags))


def test_resolve_api_key(monkeypatch):
    monkeypatch.delenv("EIDEUS_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    assert resolve_api_key("sk-explicit") == "sk-explicit"
    with pytest.raises(ConfigurationError, match="API key not found"):
        resolve_api_key()

    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert resolve_api_key() == "sk-env"


def test_generator_requires_key(monkeypatch):
    monkeypatch.delenv("EIDEUS_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError) as exc_info:
        OpenAIGenerator()

    assert str(exc_info.value) == MISSING_KEY_MESSAGE


def test_decode_metadata():
    metadata = decode_metadata({"scene": "A duel at dawn", "names": ["Grak", " "], "tags": "Combat, Honor"})

    assert metadata == TurnMetadata(scene="A duel at dawn", names=("Grak",), tags=("Combat", "Honor"))
    assert decode_metadata({"scene": ""}).scene == "Unanalyzed"
    assert decode_metadata(["not", "a", "dict"]) == TurnMetadata()


def test_system_instruction_names_separator():
    assert SEPARATOR in SYSTEM_INSTRUCTION


def test_format_memories():
    assert format_memories([]) == ""

    text = format_memories([make_memory()])

    assert "1. [0.75] Summary: Met Grak | Tags: Arrival" in text


def test_build_messages_skips_system_notices():
    history = [
        ChatMessage(role="user", content="Hello", timestamp=1),
        ChatMessage(role="model", content="Welcome, traveller.", timestamp=2),
        ChatMessage(role="system", content="Connection Error: boom", timestamp=3),
    ]

    messages = build_messages(history, "Who are you?", initial_world_state(), [make_memory()])

    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[0]["content"] == SYSTEM_INSTRUCTION
    final = messages[-1]["content"]
    assert "[PERSISTENT WORLD STATE]:" in final
    assert "Met Grak" in final
    assert final.endswith("[PLAYER INPUT]:\nWho are you?")


def test_generator_streams_text():
    completions = FakeCompletions(chunks=["The fire ", "crackles.", SEPARATOR, "{}"])
    generator = OpenAIGenerator(model="test-model", client=fake_client(completions))

    async def collect():
        return [c async for c in generator.stream([], "Hello", initial_world_state(), [])]

    chunks = asyncio.run(collect())

    assert chunks == ["The fire ", "crackles.", SEPARATOR, "{}"]
    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["stream"] is True


def test_analyzer_reads_json_reply():
    reply = json.dumps({"scene": "Grak offers a drink", "names": ["Grak"], "tags": ["Trade"]})
    completions = FakeCompletions(content=reply)
    analyzer = OpenAIAnalyzer(client=fake_client(completions))

    metadata = asyncio.run(analyzer.analyze("I sit down", "Grak offers a drink"))

    assert metadata == TurnMetadata(scene="Grak offers a drink", names=("Grak",), tags=("Trade",))
    assert completions.requests[0]["response_format"] == {"type": "json_object"}
    assert "I sit down" in completions.requests[0]["messages"][0]["content"]


def test_analyzer_falls_back_on_error():
    completions = FakeCompletions(error=RuntimeError("rate limited"))
    analyzer = OpenAIAnalyzer(client=fake_client(completions))

    metadata = asyncio.run(analyzer.analyze("I sit down", "Grak offers a drink"))

    assert metadata == TurnMetadata()

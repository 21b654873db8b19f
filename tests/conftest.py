"""Pytest fixtures for Eideus tests."""

import pytest
from eideus import NarrativeEngine, EngineConfig, ContentRegistry, Lattice
from eideus.embedding import HashEmbedding
from eideus.memory import write_faces
from eideus.models import TurnMetadata

DIMENSIONS = 16


class ScriptedGenerator:
    """Generator that replays canned chunk lists, one list per turn."""

    def __init__(self, *turns):
        self.turns = list(turns)
        self.calls = []

    async def stream(self, history, player_input, state, memories):
        self.calls.append(
            {
                "history": list(history),
                "input": player_input,
                "state": state,
                "memories": list(memories),
            }
        )
        chunks = self.turns.pop(0) if self.turns else []
        for chunk in chunks:
            yield chunk


class FailingGenerator:
    """Generator whose stream breaks after the first chunk."""

    async def stream(self, history, player_input, state, memories):
        yield "The lights flicker"
        raise ConnectionError("stream dropped")


class FakeAnalyzer:
    def __init__(self, metadata=None):
        self.metadata = metadata or TurnMetadata(
            scene="A stranger arrives", names=("Grak",), tags=("Arrival",)
        )
        self.calls = []

    async def analyze(self, player_input, output):
        self.calls.append((player_input, output))
        return self.metadata


class BrokenAnalyzer:
    async def analyze(self, player_input, output):
        raise RuntimeError("analysis service down")


class BrokenEmbedding:
    dimensions = DIMENSIONS

    def embed(self, text):
        raise RuntimeError("embedding service down")


def add_node(lattice, registry, input, output, embedding, tags=(), scene="Scene", names=()):
    """Record a node with explicit content, bypassing embedding and analysis."""
    metadata = TurnMetadata(scene=scene, names=tuple(names), tags=tuple(tags))
    faces = write_faces(registry, input, output, list(embedding), metadata)
    return lattice.append(faces)


@pytest.fixture
def registry():
    return ContentRegistry()


@pytest.fixture
def lattice():
    return Lattice()


@pytest.fixture
def config():
    return EngineConfig(embedding_backend="hash", vector_dimensions=DIMENSIONS)


@pytest.fixture
def make_engine(config):
    """Build engines with scripted collaborators; closes them afterwards."""
    engines = []

    def _make(*turns, generator=None, analyzer=None, embedder=None, **overrides):
        cfg = EngineConfig(**{**config.__dict__, **overrides})
        engine = NarrativeEngine(
            cfg,
            generator=generator or ScriptedGenerator(*turns),
            analyzer=analyzer or FakeAnalyzer(),
            embedder=embedder or HashEmbedding(DIMENSIONS),
        )
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.close()

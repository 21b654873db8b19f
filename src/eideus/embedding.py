"""Embedding backend abstraction for Eideus."""

from __future__ import annotations

import hashlib
import logging
import random
from typing import Protocol

from eideus.models import EngineConfig

logger = logging.getLogger(__name__)


class EmbeddingBackend(Protocol):
    """Protocol for embedding backends."""

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...

    @property
    def dimensions(self) -> int:
        """Return the dimensionality of embeddings."""
        ...


class LocalEmbedding:
    """Local embedding using sentence-transformers."""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        from sentence_transformers import SentenceTransformer

        self.model = SentenceTransformer(model_name)
        self._dimensions = self.model.get_sentence_embedding_dimension()

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        return self.model.encode(text).tolist()

    @property
    def dimensions(self) -> int:
        """Return the dimensionality of embeddings."""
        return self._dimensions


class OpenAIEmbedding:
    """OpenAI API embedding backend."""

    # Known dimensions for OpenAI models
    _MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(self, model: str = "text-embedding-3-small", api_key: str | None = None):
        from openai import OpenAI

        self.model = model
        self.client = OpenAI(api_key=api_key) if api_key else OpenAI()
        self._dimensions = self._MODEL_DIMENSIONS.get(model, 1536)

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        response = self.client.embeddings.create(input=text, model=self.model)
        return response.data[0].embedding

    @property
    def dimensions(self) -> int:
        """Return the dimensionality of embeddings."""
        return self._dimensions


class HashEmbedding:
    """Deterministic, dependency-free embedding backend.

    Intended for tests and constrained environments where heavyweight ML
    dependencies (torch/sentence-transformers) are undesirable.
    """

    def __init__(self, dimensions: int = 384):
        self._dimensions = dimensions

    def _rng_for_text(self, text: str) -> random.Random:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        seed = int.from_bytes(digest[:8], "big", signed=False)
        return random.Random(seed)

    def embed(self, text: str) -> list[float]:
        rng = self._rng_for_text(text)
        return [rng.uniform(-1.0, 1.0) for _ in range(self._dimensions)]

    @property
    def dimensions(self) -> int:
        return self._dimensions


def create_embedding_backend(config: EngineConfig) -> EmbeddingBackend:
    """Build the backend named by ``config.embedding_backend``."""
    if config.embedding_backend == "openai":
        return OpenAIEmbedding(model=config.openai_embedding_model, api_key=config.api_key)
    if config.embedding_backend == "hash":
        return HashEmbedding(dimensions=config.vector_dimensions)
    return LocalEmbedding(model_name=config.embedding_model)


def embed_or_zero(backend: EmbeddingBackend, text: str, dimensions: int) -> list[float]:
    """Embed text, substituting a zero vector when the backend fails.

    A zero vector scores 0 similarity against everything, so retrieval
    degrades instead of failing the turn.
    """
    try:
        vector = backend.embed(text)
        if vector:
            return list(vector)
        logger.warning("Embedding backend returned an empty vector, using placeholder")
    except Exception as e:
        logger.warning("Embedding failed (using placeholder vector): %s", e)
    return [0.0] * dimensions

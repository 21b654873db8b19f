"""Narrative Engine - turn orchestration."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from eideus.embedding import EmbeddingBackend, create_embedding_backend, embed_or_zero
from eideus.errors import ConfigurationError, MalformedPayloadError, MemoryWriteError
from eideus.generation import OpenAIAnalyzer, OpenAIGenerator, TextGenerator, TurnAnalyzer
from eideus.memory import record_turn
from eideus.models import EngineConfig, MemoryNode, RetrievedMemory, TurnResult
from eideus.patch import apply_update, decode_update
from eideus.retrieval import query_lattice
from eideus.session import GameSession
from eideus.store import LatticeStore
from eideus.stream import extract_payload, split_stream

logger = logging.getLogger(__name__)

OPENING_PROMPT = (
    "Start the game. I am in the tavern. I don't remember my name. "
    "Please introduce the key characters."
)
SCENE_TRANSITION_MESSAGE = "--- SCENE TRANSITION: CONTEXT WINDOW REFRESHED ---"
MIN_NARRATIVE_TO_RECORD = 10


class NarrativeEngine:
    """Runs turns against a GameSession and records them into the lattice.

    Memory writes run as background tasks and are not awaited before the
    next turn unless ``config.await_memory_writes`` is set, so a turn's own
    memory may be missing from the very next retrieval.
    """

    def __init__(
        self,
        config: EngineConfig,
        generator: TextGenerator | None = None,
        analyzer: TurnAnalyzer | None = None,
        embedder: EmbeddingBackend | None = None,
        session: GameSession | None = None,
    ):
        self.config = config
        self._generator = generator
        self._analyzer = analyzer
        self._embedder = embedder
        self.pending_writes: set[asyncio.Task] = set()
        self.store = LatticeStore(config.db_path) if config.db_path else None
        self.session = session or self._load_session()

    def _load_session(self) -> GameSession:
        if self.store is None:
            return GameSession()
        lattice, registry = self.store.load()
        return GameSession(lattice=lattice, registry=registry)

    def close(self) -> None:
        """Close the lattice store, if any."""
        if self.store is not None:
            self.store.close()

    def __enter__(self) -> NarrativeEngine:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    @property
    def embedder(self) -> EmbeddingBackend:
        if self._embedder is None:
            self._embedder = create_embedding_backend(self.config)
        return self._embedder

    def _get_generator(self) -> TextGenerator:
        if self._generator is None:
            self._generator = OpenAIGenerator(
                model=self.config.generation_model,
                api_key=self.config.api_key,
                temperature=self.config.temperature,
            )
        return self._generator

    def _get_analyzer(self) -> TurnAnalyzer:
        if self._analyzer is None:
            self._analyzer = OpenAIAnalyzer(
                model=self.config.analysis_model,
                api_key=self.config.api_key,
            )
        return self._analyzer

    # -------------------------------------------------------------------------
    # Session Operations
    # -------------------------------------------------------------------------

    def new_game(self) -> GameSession:
        """Replace the session with a fresh game. Clears the lattice store."""
        self.session = GameSession()
        if self.store is not None:
            self.store.clear()
        return self.session

    def load_session(self, save: dict[str, Any]) -> GameSession:
        """Replace the session with one rebuilt from a save document.

        Raises:
            ValueError: if the document is not a save file
        """
        session = GameSession.from_save(save)
        if self.store is not None:
            self.store.clear()
            self.store.save(session.lattice, session.registry)
        self.session = session
        return session

    def export_save(self) -> dict[str, Any]:
        return self.session.to_save()

    # -------------------------------------------------------------------------
    # Memory Operations
    # -------------------------------------------------------------------------

    async def recall(self, query_text: str) -> list[RetrievedMemory]:
        """Rank lattice memories against player input.

        Failures are logged and yield no memories; they never block a turn.
        """
        session = self.session
        if session.lattice.node_count == 0:
            return []
        try:
            query_embedding = await asyncio.to_thread(
                embed_or_zero, self.embedder, query_text, self.config.vector_dimensions
            )
            memories = query_lattice(
                query_text, query_embedding, session.lattice, session.registry
            )
        except Exception as e:
            logger.warning("Memory retrieval failed (continuing without memory): %s", e)
            return []
        if memories:
            logger.debug("Recalled %d memories for turn", len(memories))
        return memories

    def remember(self, player_input: str, output: str) -> asyncio.Task:
        """Start recording a turn in the background and return its task."""
        task = asyncio.create_task(self._record(self.session, player_input, output))
        self.pending_writes.add(task)
        task.add_done_callback(self.pending_writes.discard)
        return task

    async def _record(
        self, session: GameSession, player_input: str, output: str
    ) -> MemoryNode | None:
        def store_for() -> LatticeStore | None:
            # Nodes of a replaced session are not mirrored into the store
            return self.store if session is self.session else None

        try:
            return await record_turn(
                player_input,
                output,
                session.lattice,
                session.registry,
                self.embedder,
                self._get_analyzer(),
                self.config.vector_dimensions,
                store_for=store_for,
            )
        except MemoryWriteError as e:
            logger.debug("Skipping memory write: %s", e)
        except Exception as e:
            logger.warning("Memory system error: %s", e)
        return None

    async def drain(self) -> None:
        """Wait for all pending background memory writes."""
        if self.pending_writes:
            await asyncio.gather(*list(self.pending_writes), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Turn Operations
    # -------------------------------------------------------------------------

    async def start(self, on_narrative: Callable[[str], Any] | None = None) -> TurnResult:
        """Play the hidden opening turn of a new game."""
        result = await self.take_turn(OPENING_PROMPT, hidden=True, on_narrative=on_narrative)
        self.session.has_started = True
        return result

    async def take_turn(
        self,
        player_input: str,
        hidden: bool = False,
        on_narrative: Callable[[str], Any] | None = None,
    ) -> TurnResult:
        """Advance the game by one turn.

        Args:
            player_input: What the player typed
            hidden: Keep the input out of the chat history
            on_narrative: Called with each newly displayable narrative piece

        Returns:
            TurnResult; configuration and connection failures are reported
            in ``error`` rather than raised
        """
        session = self.session
        result = TurnResult()

        try:
            generator = self._get_generator()
        except ConfigurationError as e:
            session.add_message("system", str(e))
            result.error = str(e)
            return result

        history = session.active_history()
        if not hidden:
            session.add_message("user", player_input)

        if self.config.await_memory_writes:
            await self.drain()
        result.memories = await self.recall(player_input)

        reply = session.add_message("model", "")

        def emit(text: str) -> None:
            reply.content += text
            if on_narrative is not None:
                on_narrative(text)

        try:
            splitter = await split_stream(
                generator.stream(history, player_input, session.world_state, result.memories),
                emit,
            )
        except Exception as e:
            logger.error("Game engine error: %s", e, exc_info=True)
            result.narrative = reply.content
            result.error = f"Connection Error: {e}"
            session.add_message("system", result.error)
            return result

        result.narrative = splitter.narrative
        self._apply_payload(session, splitter.payload, splitter.found_separator, result)

        if len(result.narrative.strip()) > MIN_NARRATIVE_TO_RECORD:
            result.memory_task = self.remember(player_input, result.narrative)
        return result

    def _apply_payload(
        self,
        session: GameSession,
        payload: str,
        found_separator: bool,
        result: TurnResult,
    ) -> None:
        if not found_separator or not payload.strip():
            self._warn(result, "Generator output carried no state update")
            return
        try:
            update = decode_update(extract_payload(payload))
        except MalformedPayloadError as e:
            self._warn(result, f"State update skipped: {e}")
            return

        result.update = update
        if update.scene_change:
            session.context_start_index = len(session.messages)
            session.add_message("system", SCENE_TRANSITION_MESSAGE)
        session.world_state = apply_update(session.world_state, update)

    @staticmethod
    def _warn(result: TurnResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)

"""Automatic classification of newly saved notes.

``process_note`` is called by the save path right after a note is stored.
It returns immediately; classification, embedding and persistence run in
a detached task whose failures end in the log.

Tiering policy per category score:
    score >= auto-confirm threshold      -> confirmed assignment
    suggest <= score < auto-confirm      -> unconfirmed suggestion
    score < suggest threshold            -> discarded
"""

import asyncio
import logging
import time

from .adapter import PersistenceAdapter
from .classifier.llm_classifier import Classifier
from .embeddings import EmbeddingGenerator
from .graceful import spawn_detached
from .models import Action, ClassificationOutcome, ItemKind, ScoreResult

logger = logging.getLogger("pocket.auto_classify")

__all__ = ["AutoClassifyOrchestrator"]


class AutoClassifyOrchestrator:
    """Runs Classifier and EmbeddingGenerator for a saved note and persists results.

    Example:
        >>> orchestrator = AutoClassifyOrchestrator(classifier, embedder, adapter)
        >>> orchestrator.process_note("note-1", "Fix the login bug tomorrow", [])
        # returns at once; work continues in the background
    """

    def __init__(
        self,
        classifier: Classifier,
        embedder: EmbeddingGenerator,
        adapter: PersistenceAdapter,
    ):
        self.classifier = classifier
        self.embedder = embedder
        self.adapter = adapter

    def process_note(self, item_id: str, content: str, urls: list[str] | None = None) -> None:
        """Start background classification and embedding for a saved note.

        Never blocks and never raises. Must be called from inside a running
        event loop.
        """
        spawn_detached(
            self.run(item_id, content, list(urls or [])),
            name=f"process_note:{item_id}",
        )

    async def _safe_classify(self, content: str, urls: list[str]) -> list[ScoreResult]:
        try:
            return await self.classifier.classify(content, urls)
        except Exception as e:
            logger.error(
                "classification_failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return []

    async def _safe_embed(self, content: str, urls: list[str]) -> list[float] | None:
        try:
            return await self.embedder.generate(content, urls)
        except Exception as e:
            logger.error(
                "embedding_generation_failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return None

    async def _persist_category(
        self, item_id: str, result: ScoreResult, confirmed: bool
    ) -> bool:
        try:
            stored = await self.adapter.add_category_assignment(
                item_id,
                result.category,
                result.score / 100,
                confirmed,
                ItemKind.NOTE,
            )
        except Exception as e:
            logger.error(
                "category_persist_failed",
                extra={
                    "item_id": item_id,
                    "category": result.category,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return False
        if not stored:
            logger.error(
                "category_persist_failed",
                extra={"item_id": item_id, "category": result.category, "error": "rejected"},
            )
        return bool(stored)

    async def _persist_embedding(self, item_id: str, vector: list[float]) -> bool:
        try:
            stored = await self.adapter.update_embedding(item_id, vector)
        except Exception as e:
            logger.error(
                "embedding_persist_failed",
                extra={"item_id": item_id, "error": str(e), "error_type": type(e).__name__},
            )
            return False
        if not stored:
            logger.error(
                "embedding_persist_failed", extra={"item_id": item_id, "error": "rejected"}
            )
        return bool(stored)

    async def run(
        self, item_id: str, content: str, urls: list[str]
    ) -> ClassificationOutcome:
        """Classify, embed and persist one note.

        Awaitable form of ``process_note``. Never raises; an unexpected
        failure is logged and recorded in the outcome's ``error``.

        Returns:
            What was persisted for the note
        """
        outcome = ClassificationOutcome(item_id=item_id)
        start_time = time.perf_counter()
        try:
            scores, vector = await asyncio.gather(
                self._safe_classify(content, urls),
                self._safe_embed(content, urls),
            )

            for result in scores:
                if result.action == Action.AUTO_CONFIRM:
                    if await self._persist_category(item_id, result, True):
                        outcome.auto_confirmed.append((result.category, result.score))
                elif result.action == Action.SHOW_SUGGESTION:
                    if await self._persist_category(item_id, result, False):
                        outcome.suggested.append((result.category, result.score))

            if vector is not None and await self._persist_embedding(item_id, vector):
                outcome.embedding = vector

        except Exception as e:
            outcome.error = f"{type(e).__name__}: {e}"
            logger.error(
                "process_note_failed",
                extra={"item_id": item_id, "error": str(e), "error_type": type(e).__name__},
            )

        logger.info(
            "process_note_complete",
            extra={
                **outcome.to_log_context(),
                "duration_ms": (time.perf_counter() - start_time) * 1000,
            },
        )
        return outcome

"""Pipeline composition root.

Wires configuration, providers, the classifier, the embedding generator,
the orchestrator and the batch classifier, and exposes the three entry
points used by the save path and the interactive commands.
"""

import logging

from .adapter import PersistenceAdapter
from .auto_classify import AutoClassifyOrchestrator
from .batch import BatchClassifier, BatchSession
from .categories import load_categories
from .classifier.circuit_breaker import CircuitBreaker
from .classifier.llm_classifier import Classifier, build_fallback_chain, build_rate_limiter
from .classifier.providers import BaseProvider, build_provider
from .config import PipelineConfig, get_config
from .embeddings import EmbeddingGenerator
from .graceful import drain_detached
from .logging_config import configure_logging
from .notify import LoggingNotifier, Notifier
from .status import StatusReporter

logger = logging.getLogger("pocket.pipeline")

__all__ = ["NotePipeline"]


class NotePipeline:
    """Classification and embedding pipeline for one deployment.

    Example:
        >>> pipeline = NotePipeline(adapter, notifier)
        >>> pipeline.process_note("note-1", "Read https://youtu.be/abc later", ["https://youtu.be/abc"])
        >>> session = await pipeline.run_batch_classification("owner-1", 5)
        >>> await pipeline.aclose()
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        notifier: Notifier | None = None,
        config: PipelineConfig | None = None,
        providers: dict[str, BaseProvider] | None = None,
    ):
        """Build the pipeline.

        Args:
            adapter: Persistence adapter supplied by the host application
            notifier: Outbound message channel (logs only when None)
            config: Configuration (global config when None)
            providers: Prebuilt providers by name; missing ones are built from config
        """
        self.config = config or get_config()
        configure_logging(self.config.log_level, self.config.log_format)
        self.adapter = adapter
        self.notifier = notifier or LoggingNotifier()
        self.providers: dict[str, BaseProvider] = dict(providers or {})

        self.rate_limiter = build_rate_limiter(self.config)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=self.config.circuit_failure_threshold,
            reset_timeout=self.config.circuit_reset_seconds,
        )
        self.definitions = load_categories(self.config)
        self.chain = build_fallback_chain(
            self.config, self.providers, self.rate_limiter, self.circuit_breaker
        )
        self.classifier = Classifier(
            self.chain, self.definitions, enabled=self.config.classifier_enabled
        )

        embedding_name = self.config.embedding_provider
        if embedding_name not in self.providers:
            self.providers[embedding_name] = build_provider(embedding_name, self.config)
        self.embedder = EmbeddingGenerator(
            self.providers[embedding_name],
            rate_limiter=self.rate_limiter,
            dimensions=self.config.embedding_dimensions,
            min_length=self.config.min_embedding_length,
            max_chars=self.config.embedding_max_chars,
            max_retries=self.config.embedding_max_retries,
            timeout=self.config.provider_timeout_seconds,
        )

        self.orchestrator = AutoClassifyOrchestrator(self.classifier, self.embedder, adapter)
        self.batch = BatchClassifier(
            self.classifier,
            adapter,
            self.notifier,
            default_batch_size=self.config.batch_default_size,
            max_batch_size=self.config.batch_max_size,
            timeout_seconds=self.config.batch_timeout_seconds,
            item_delay_seconds=self.config.batch_item_delay_seconds,
        )
        self.status = StatusReporter(
            self.notifier,
            show_after_ms=self.config.status_show_after_ms,
            edit_debounce_ms=self.config.status_edit_debounce_ms,
        )

        logger.info(
            "pipeline_initialized",
            extra={
                "strategies": self.chain.names,
                "categories": self.classifier.category_names,
                "embedding_provider": embedding_name,
                "classifier_enabled": self.config.classifier_enabled,
            },
        )

    def process_note(self, item_id: str, content: str, urls: list[str] | None = None) -> None:
        """Fire-and-forget classification and embedding of a saved note."""
        self.orchestrator.process_note(item_id, content, urls)

    async def run_batch_classification(
        self, owner_id: str, batch_size: int | str | None = None
    ) -> BatchSession:
        """Start (or replace) the interactive batch session for an owner."""
        return await self.batch.start(owner_id, batch_size)

    async def handle_user_category_choice(self, token: str, category: str) -> bool:
        """Resolve one pending batch item from a user's choice."""
        return await self.batch.handle_user_category_choice(token, category)

    async def aclose(self, drain_timeout: float = 10.0) -> None:
        """Wait for background work, then close provider clients."""
        await drain_detached(drain_timeout)
        self.batch.cancel_session()
        for provider in self.providers.values():
            try:
                await provider.aclose()
            except Exception as e:
                logger.warning(
                    "provider_close_failed",
                    extra={"provider": provider.name, "error": str(e)},
                )

"""Telepocket pipeline - classification and embedding for saved notes.

Provides the background processing behind note capture:
- Concurrent per-category scoring through an LLM fallback chain
- Confidence-tiered auto-confirm / suggestion policy
- Fixed-dimension embeddings for semantic search
- Interactive batch classification with a shared timeout
- Deferred progress indicators for slow operations

Python Version: 3.10+ required
"""

# Logging Configuration - configure before other imports
from .logging_config import StructuredFormatter, configure_logging

# Initialize structured logging on module import
configure_logging()

from .adapter import PersistenceAdapter
from .auto_classify import AutoClassifyOrchestrator
from .batch import BatchClassifier, BatchSession, BatchState, BatchSummary, PendingBatchItem
from .categories import CategoryDefinition, load_categories
from .classifier import (
    Classifier,
    FallbackChain,
    PatternStrategy,
    ProviderStrategy,
    ProviderUnavailableError,
    RateLimiter,
    RateLimitTimeoutError,
)
from .config import PipelineConfig, get_config, reset_config
from .embeddings import EmbeddingError, EmbeddingGenerator
from .graceful import drain_detached, spawn_detached
from .models import (
    Action,
    ClassificationOutcome,
    ContentItem,
    ItemKind,
    ScoreResult,
    Tier,
    action_for,
    merge_scores,
    tier_for,
)
from .notify import Choice, LoggingNotifier, Notifier
from .pipeline import NotePipeline
from .status import OperationKind, StatusHandle, StatusReporter

__all__ = [
    "Action",
    "AutoClassifyOrchestrator",
    "BatchClassifier",
    "BatchSession",
    "BatchState",
    "BatchSummary",
    "CategoryDefinition",
    "Choice",
    "ClassificationOutcome",
    "Classifier",
    "ContentItem",
    "EmbeddingError",
    "EmbeddingGenerator",
    "FallbackChain",
    "ItemKind",
    "LoggingNotifier",
    "NotePipeline",
    "Notifier",
    "OperationKind",
    "PatternStrategy",
    "PendingBatchItem",
    "PersistenceAdapter",
    "PipelineConfig",
    "ProviderStrategy",
    "ProviderUnavailableError",
    "RateLimitTimeoutError",
    "RateLimiter",
    "ScoreResult",
    "StatusHandle",
    "StatusReporter",
    "StructuredFormatter",
    "Tier",
    "action_for",
    "configure_logging",
    "drain_detached",
    "get_config",
    "load_categories",
    "merge_scores",
    "reset_config",
    "spawn_detached",
    "tier_for",
]

"""Prometheus metrics for note classification and embedding.

All metrics use the ``pocket_`` prefix. Recording helpers never raise; a
metrics failure must not affect classification.
"""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger("pocket.classifier.metrics")

__all__ = [
    "batch_outcomes_total",
    "classifier_fallbacks_total",
    "classifier_latency_seconds",
    "classifier_requests_total",
    "classifier_scores",
    "detached_failures_total",
    "embedding_requests_total",
    "fast_path_matches_total",
    "record_batch_outcome",
    "record_detached_failure",
    "record_embedding",
    "record_fallback",
    "record_fast_path",
    "record_provider_call",
    "record_score",
]

# =============================================================================
# PROMETHEUS METRICS
# =============================================================================

classifier_requests_total = Counter(
    "pocket_classifier_requests_total",
    "Scoring calls per provider",
    ["provider", "status"],
)

classifier_latency_seconds = Histogram(
    "pocket_classifier_latency_seconds",
    "Scoring call latency",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

classifier_fallbacks_total = Counter(
    "pocket_classifier_fallbacks_total",
    "Fallback events in the scoring strategy chain",
    ["from_strategy", "to_strategy", "reason"],
)

fast_path_matches_total = Counter(
    "pocket_classifier_fast_path_matches_total",
    "Deterministic fast-path signals found",
    ["category"],
)

classifier_scores = Histogram(
    "pocket_classifier_scores",
    "Merged category scores (0-100)",
    ["category"],
    buckets=[10, 20, 40, 60, 70, 85, 95, 100],
)

embedding_requests_total = Counter(
    "pocket_embedding_requests_total",
    "Embedding generation attempts",
    ["status"],  # success, skipped, failed
)

batch_outcomes_total = Counter(
    "pocket_batch_outcomes_total",
    "Items resolved by the interactive batch classifier",
    ["outcome"],  # auto_confirmed, manually_confirmed, auto_assigned, failed, auto_confirm_failed
)

detached_failures_total = Counter(
    "pocket_detached_failures_total",
    "Background tasks that ended with an exception",
    ["task"],
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def record_provider_call(provider: str, success: bool, latency_seconds: float) -> None:
    """Record one scoring call against a provider."""
    try:
        status = "success" if success else "failed"
        classifier_requests_total.labels(provider=provider, status=status).inc()
        classifier_latency_seconds.labels(provider=provider).observe(latency_seconds)
    except Exception as e:
        logger.warning("metrics_record_failed", extra={"metric": "provider_call", "error": str(e)})


def record_fallback(from_strategy: str, to_strategy: str, reason: str) -> None:
    """Record a fall-through from one strategy to the next."""
    try:
        classifier_fallbacks_total.labels(
            from_strategy=from_strategy, to_strategy=to_strategy, reason=reason
        ).inc()
    except Exception as e:
        logger.warning("metrics_record_failed", extra={"metric": "fallback", "error": str(e)})


def record_fast_path(category: str) -> None:
    try:
        fast_path_matches_total.labels(category=category).inc()
    except Exception as e:
        logger.warning("metrics_record_failed", extra={"metric": "fast_path", "error": str(e)})


def record_score(category: str, score: int) -> None:
    try:
        classifier_scores.labels(category=category).observe(score)
    except Exception as e:
        logger.warning("metrics_record_failed", extra={"metric": "score", "error": str(e)})


def record_embedding(status: str) -> None:
    try:
        embedding_requests_total.labels(status=status).inc()
    except Exception as e:
        logger.warning("metrics_record_failed", extra={"metric": "embedding", "error": str(e)})


def record_batch_outcome(outcome: str, count: int = 1) -> None:
    try:
        if count > 0:
            batch_outcomes_total.labels(outcome=outcome).inc(count)
    except Exception as e:
        logger.warning("metrics_record_failed", extra={"metric": "batch", "error": str(e)})


def record_detached_failure(task: str) -> None:
    try:
        # Task names carry item ids; keep label cardinality bounded
        detached_failures_total.labels(task=task.split(":", 1)[0]).inc()
    except Exception as e:
        logger.warning("metrics_record_failed", extra={"metric": "detached", "error": str(e)})

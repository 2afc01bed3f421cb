"""Data models for the classification and embedding pipeline.

Tier and action are pure functions of a score and the two thresholds of a
category definition. Both partition [0, 100] into half-open bands with no
gaps or overlaps.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = [
    "Action",
    "ClassificationOutcome",
    "ContentItem",
    "ItemKind",
    "ScoreResult",
    "Tier",
    "action_for",
    "merge_scores",
    "tier_for",
]


class ItemKind(str, Enum):
    """Kinds of saved items the pipeline classifies."""

    NOTE = "note"
    LINK = "link"


class Tier(str, Enum):
    """Named confidence buckets, lowest to highest."""

    INSUFFICIENT = "insufficient"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    DEFINITE = "definite"


class Action(str, Enum):
    """What the pipeline does with a category score."""

    AUTO_CONFIRM = "auto-confirm"
    SHOW_SUGGESTION = "show-suggestion"
    SKIP = "skip"


@dataclass(frozen=True)
class ContentItem:
    """A saved item handed to the pipeline. Never mutated here.

    Attributes:
        id: Item identifier in the persistence layer
        owner_id: Identifier of the user who saved the item
        text: Text that is scored and embedded
        urls: URLs associated with the item
        kind: Note or link
        title: Link title metadata, when known
        description: Link description metadata, when known
    """

    id: str
    owner_id: str
    text: str
    urls: tuple[str, ...] = ()
    kind: ItemKind = ItemKind.NOTE
    title: str | None = None
    description: str | None = None

    def scoring_input(self) -> tuple[str, list[str]]:
        """Return (content, urls) to score for this item.

        Links are scored on their metadata; a link without title or
        description is scored on its URL.
        """
        if self.kind == ItemKind.LINK:
            parts = [p for p in (self.title, self.description) if p]
            url = self.urls[0] if self.urls else self.text
            content = "\n\n".join(parts) if parts else url
            return content, [url] if url else []
        return self.text, list(self.urls)

    def preview(self, limit: int = 80) -> str:
        source = self.text if self.kind == ItemKind.NOTE else (self.title or self.text)
        if len(source) > limit:
            return source[:limit] + "..."
        return source


def tier_for(score: float, auto_confirm_threshold: int, suggest_threshold: int) -> Tier:
    """Map a score to its tier.

    ``definite`` is [auto_confirm, 100], ``insufficient`` is [0, suggest).
    The band in between is split into three equal half-open sub-bands:
    ``low``, ``moderate``, ``high``.
    """
    if score >= auto_confirm_threshold:
        return Tier.DEFINITE
    if score < suggest_threshold:
        return Tier.INSUFFICIENT
    width = (auto_confirm_threshold - suggest_threshold) / 3
    if score >= suggest_threshold + 2 * width:
        return Tier.HIGH
    if score >= suggest_threshold + width:
        return Tier.MODERATE
    return Tier.LOW


def action_for(score: float, auto_confirm_threshold: int, suggest_threshold: int) -> Action:
    """Map a score to the action the pipeline takes."""
    if score >= auto_confirm_threshold:
        return Action.AUTO_CONFIRM
    if score >= suggest_threshold:
        return Action.SHOW_SUGGESTION
    return Action.SKIP


def merge_scores(fast_path: int | None, chain: int) -> int:
    """Combine a fast-path heuristic score with a chain score.

    Higher wins. Commutative and idempotent.
    """
    if fast_path is None:
        return chain
    return max(fast_path, chain)


@dataclass(frozen=True)
class ScoreResult:
    """Score of one item against one category.

    Attributes:
        category: Category name
        score: Integer score in [0, 100]
        tier: Confidence tier derived from the score
        action: Action derived from the score
        source: Strategy that produced the chain score ("fast-path" when the
            heuristic won the merge, "failed" when every strategy failed)
    """

    category: str
    score: int
    tier: Tier
    action: Action
    source: str = ""

    @classmethod
    def build(
        cls,
        category: str,
        score: int,
        auto_confirm_threshold: int,
        suggest_threshold: int,
        source: str = "",
    ) -> "ScoreResult":
        return cls(
            category=category,
            score=score,
            tier=tier_for(score, auto_confirm_threshold, suggest_threshold),
            action=action_for(score, auto_confirm_threshold, suggest_threshold),
            source=source,
        )


@dataclass
class ClassificationOutcome:
    """What one orchestrator run produced. Consumed to drive adapter calls.

    Attributes:
        item_id: Item the outcome belongs to
        auto_confirmed: (category, score) pairs persisted as confirmed
        suggested: (category, score) pairs persisted as unconfirmed suggestions
        embedding: Persisted vector, or None when skipped or failed
        error: Error marker when the run aborted early
    """

    item_id: str
    auto_confirmed: list[tuple[str, int]] = field(default_factory=list)
    suggested: list[tuple[str, int]] = field(default_factory=list)
    embedding: list[float] | None = None
    error: str | None = None

    def to_log_context(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "auto_confirmed": [c for c, _ in self.auto_confirmed],
            "suggested": [c for c, _ in self.suggested],
            "has_embedding": self.embedding is not None,
            "error": self.error,
        }

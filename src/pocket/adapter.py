"""Persistence adapter consumed by the pipeline.

The pipeline never talks to a database directly. The host application
provides an object satisfying ``PersistenceAdapter``; write methods
return False (or raise) on failure, and the pipeline logs and moves on
without retrying. Re-running classification later is safe.
"""

from typing import Protocol, runtime_checkable

from .models import ContentItem, ItemKind

__all__ = ["PersistenceAdapter"]


@runtime_checkable
class PersistenceAdapter(Protocol):
    async def add_category_assignment(
        self,
        item_id: str,
        category: str,
        confidence: float,
        user_confirmed: bool,
        kind: ItemKind = ItemKind.NOTE,
    ) -> bool:
        """Store a category for an item.

        Args:
            item_id: Note or link identifier
            category: Category name
            confidence: Score scaled to [0.0, 1.0]
            user_confirmed: True for confirmed assignments, False for suggestions
            kind: Kind of item being assigned
        """
        ...

    async def update_embedding(self, item_id: str, vector: list[float]) -> bool: ...

    async def fetch_unclassified_items(
        self, owner_id: str, limit: int | None = None
    ) -> list[ContentItem]:
        """Items with no confirmed category, notes and links mixed."""
        ...

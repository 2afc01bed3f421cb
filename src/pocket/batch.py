"""Interactive batch classification of unclassified notes and links.

One run of the workflow is a ``BatchSession``:

    IDLE -> SCORING -> AWAITING_USER_INPUT -> RESOLVED

Items scoring at or above their auto-confirm threshold are stored as
confirmed right away. The rest wait under opaque tokens for the user to
pick a category. A single timer covers the whole pending set; when it
fires, every item still pending gets its own best-scoring category as an
unconfirmed assignment.

Only one session is active. Starting a new run discards the previous
session with its timer and tokens; a token from a discarded or finished
session resolves to nothing.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from enum import Enum

from .adapter import PersistenceAdapter
from .classifier.llm_classifier import Classifier
from .classifier.metrics import record_batch_outcome
from .graceful import graceful_task
from .models import Action, ContentItem, ItemKind, ScoreResult
from .notify import Choice, Notifier

logger = logging.getLogger("pocket.batch")

__all__ = [
    "BatchClassifier",
    "BatchSession",
    "BatchState",
    "BatchSummary",
    "PendingBatchItem",
]


class BatchState(str, Enum):
    IDLE = "idle"
    SCORING = "scoring"
    AWAITING_USER_INPUT = "awaiting_user_input"
    RESOLVED = "resolved"


@dataclass
class PendingBatchItem:
    """An item waiting for the user's category choice.

    Attributes:
        token: Opaque key carried by the choice buttons
        item_id: Item identifier in the persistence layer
        kind: Note or link
        scores: Full score vector, highest first
        item: Snapshot of the item as fetched
    """

    token: str
    item_id: str
    kind: ItemKind
    scores: list[ScoreResult]
    item: ContentItem

    @property
    def best(self) -> ScoreResult | None:
        if not self.scores:
            return None
        return max(self.scores, key=lambda s: s.score)


@dataclass
class BatchSummary:
    auto_confirmed: int = 0
    manually_confirmed: int = 0
    auto_assigned: int = 0
    failed: int = 0
    remaining: int | None = None

    def to_text(self) -> str:
        """Human-readable summary line.

        Example:
            >>> BatchSummary(auto_confirmed=3, auto_assigned=7, failed=1).to_text()
            'Batch complete: 3 auto-confirmed, 7 auto-assigned, 1 failed'
        """
        parts = [f"{self.auto_confirmed} auto-confirmed"]
        if self.manually_confirmed:
            parts.append(f"{self.manually_confirmed} manually confirmed")
        parts.append(f"{self.auto_assigned} auto-assigned")
        if self.failed:
            parts.append(f"{self.failed} failed")
        text = "Batch complete: " + ", ".join(parts)
        if self.remaining:
            text += (
                f"\n{self.remaining} unclassified items remaining. "
                "Run /classify again for the next batch."
            )
        elif self.remaining == 0:
            text += "\nAll items classified!"
        return text


@dataclass
class BatchSession:
    """State of a single batch run.

    The pending map and token registry are only mutated on the event loop.
    Code that touches them after an ``await`` re-checks the entry.

    A user choice moves its entry from ``pending`` to ``in_flight`` while the
    write is awaited. The future resolves to True once the choice is stored.
    """

    id: str
    owner_id: str
    state: BatchState = BatchState.IDLE
    pending: dict[str, PendingBatchItem] = field(default_factory=dict)
    in_flight: dict[str, tuple[PendingBatchItem, asyncio.Future]] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)
    timer: asyncio.Task | None = None
    summary: BatchSummary = field(default_factory=BatchSummary)
    summary_text: str | None = None
    total_items: int = 0
    expiring: bool = False
    resolved: asyncio.Event = field(default_factory=asyncio.Event)

    def lookup(self, token: str) -> PendingBatchItem | None:
        return self.pending.get(token)

    def mint_token(self, item_id: str) -> str:
        token = secrets.token_hex(4)
        while token in self.tokens:
            token = secrets.token_hex(4)
        self.tokens[token] = item_id
        return token


class BatchClassifier:
    """Runs batch sessions and resolves user choices.

    Example:
        >>> batch = BatchClassifier(classifier, adapter, notifier)
        >>> session = await batch.start("owner-1", 5)
        >>> await batch.handle_user_category_choice(token, "todo")
    """

    def __init__(
        self,
        classifier: Classifier,
        adapter: PersistenceAdapter,
        notifier: Notifier,
        default_batch_size: int = 3,
        max_batch_size: int = 50,
        timeout_seconds: float = 180.0,
        item_delay_seconds: float = 0.5,
    ):
        self.classifier = classifier
        self.adapter = adapter
        self.notifier = notifier
        self.default_batch_size = default_batch_size
        self.max_batch_size = max_batch_size
        self.timeout_seconds = timeout_seconds
        self.item_delay_seconds = item_delay_seconds
        self._session: BatchSession | None = None

    @property
    def session(self) -> BatchSession | None:
        """The active session, None when no run is in progress."""
        return self._session

    def validate_batch_size(self, batch_size: int | str | None) -> tuple[int, str | None]:
        """Resolve the requested batch size.

        Returns:
            (size to use, notice for the user or None). Out-of-range numbers
            fall back to the default with a notice; non-numeric input falls
            back silently.
        """
        if batch_size is None:
            return self.default_batch_size, None
        try:
            size = int(batch_size)
        except (TypeError, ValueError):
            return self.default_batch_size, None
        if 1 <= size <= self.max_batch_size:
            return size, None
        return (
            self.default_batch_size,
            f"Batch size must be between 1 and {self.max_batch_size}. "
            f"Using default ({self.default_batch_size}).",
        )

    async def _notify(self, text: str, choices: list[Choice] | None = None) -> None:
        try:
            await self.notifier.send(text, choices)
        except Exception as e:
            logger.warning(
                "batch_notify_failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )

    def _discard(self, session: BatchSession) -> None:
        if session.timer is not None and not session.timer.done():
            session.timer.cancel()
        session.timer = None
        session.pending.clear()
        session.tokens.clear()
        session.state = BatchState.RESOLVED
        session.resolved.set()
        logger.info("batch_session_discarded", extra={"session_id": session.id})

    def cancel_session(self) -> None:
        """Discard the active session without a summary."""
        if self._session is not None:
            self._discard(self._session)
            self._session = None

    async def start(self, owner_id: str, batch_size: int | str | None = None) -> BatchSession:
        """Start a batch run, replacing any active session.

        Returns once every fetched item has been scored. Pending items then
        wait for user choices or the session timer.

        Returns:
            The new session
        """
        if self._session is not None:
            self._discard(self._session)

        session = BatchSession(id=secrets.token_hex(6), owner_id=owner_id)
        self._session = session

        size, notice = self.validate_batch_size(batch_size)
        if notice:
            await self._notify(notice)

        session.state = BatchState.SCORING
        logger.info(
            "batch_started",
            extra={"session_id": session.id, "owner_id": owner_id, "batch_size": size},
        )

        try:
            items = await self.adapter.fetch_unclassified_items(owner_id, size)
        except Exception as e:
            logger.error(
                "batch_fetch_failed",
                extra={"session_id": session.id, "error": str(e), "error_type": type(e).__name__},
            )
            if self._session is session:
                await self._notify("Classification failed. Please try again later.")
                self._discard(session)
                self._session = None
            return session

        if self._session is not session:
            return session

        items = items[:size]
        session.total_items = len(items)
        if not items:
            await self._notify("No unclassified items found. All caught up!")
            self._discard(session)
            self._session = None
            return session

        await self._notify(f"Starting classification...\nProcessing {len(items)} items")

        for index, item in enumerate(items):
            if self._session is not session:
                return session
            if index > 0 and self.item_delay_seconds > 0:
                await asyncio.sleep(self.item_delay_seconds)
                if self._session is not session:
                    return session
            await self._score_item(session, item, index + 1)

        if self._session is not session:
            return session

        if session.pending:
            session.state = BatchState.AWAITING_USER_INPUT
            session.timer = asyncio.create_task(
                self._expire_after(session), name=f"batch_timer:{session.id}"
            )
            minutes = self.timeout_seconds / 60
            await self._notify(
                f"Waiting {minutes:g} minutes for your input.\n"
                "Pick a category above; remaining items will be auto-assigned to their best match."
            )
        else:
            await self._resolve(session)
        return session

    async def _score_item(self, session: BatchSession, item: ContentItem, position: int) -> None:
        content, urls = item.scoring_input()
        try:
            scores = await self.classifier.classify(content, urls)
        except Exception as e:
            session.summary.failed += 1
            logger.error(
                "batch_item_scoring_failed",
                extra={"item_id": item.id, "error": str(e), "error_type": type(e).__name__},
            )
            return

        if self._session is not session:
            return

        confirmed = []
        attempted = []
        for result in scores:
            if result.action != Action.AUTO_CONFIRM:
                continue
            attempted.append(result.category)
            if await self._assign(item.id, item.kind, result.category, result.score / 100, True):
                confirmed.append(result)

        if self._session is not session:
            return

        if attempted and not confirmed:
            # Falls back to the user choice below
            record_batch_outcome("auto_confirm_failed")
            logger.warning(
                "batch_auto_confirm_failed",
                extra={"item_id": item.id, "categories": attempted},
            )

        if confirmed:
            session.summary.auto_confirmed += 1
            labels = ", ".join(f"{r.category} ({r.score})" for r in confirmed)
            await self._notify(f'Auto-confirmed:\n"{item.preview()}"\n\n{labels}')
            return

        token = session.mint_token(item.id)
        session.pending[token] = PendingBatchItem(
            token=token,
            item_id=item.id,
            kind=item.kind,
            scores=list(scores),
            item=item,
        )
        await self._notify(
            f'Item {position}/{session.total_items}:\n"{item.preview(100)}"\n\nAssign category:',
            self._choices(token, scores),
        )

    def _choices(self, token: str, scores: list[ScoreResult]) -> list[Choice]:
        by_category = {s.category: s.score for s in scores}
        ranked = sorted(
            self.classifier.category_names, key=lambda c: by_category.get(c, 0), reverse=True
        )
        choices = []
        for category in ranked:
            definition = self.classifier.definition(category)
            label = definition.display_name if definition else category
            choices.append(
                Choice(label=f"{label} ({by_category.get(category, 0)})", token=token, category=category)
            )
        return choices

    async def _assign(
        self,
        item_id: str,
        kind: ItemKind,
        category: str,
        confidence: float,
        user_confirmed: bool,
    ) -> bool:
        try:
            stored = await self.adapter.add_category_assignment(
                item_id, category, confidence, user_confirmed, kind
            )
        except Exception as e:
            logger.error(
                "batch_assignment_failed",
                extra={
                    "item_id": item_id,
                    "category": category,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return False
        if not stored:
            logger.error(
                "batch_assignment_failed",
                extra={"item_id": item_id, "category": category, "error": "rejected"},
            )
        return bool(stored)

    async def handle_user_category_choice(self, token: str, category: str) -> bool:
        """Resolve one pending item with the category the user picked.

        Unknown, stale or already-resolved tokens are ignored. When the
        pending set empties, the timer is cancelled and the session resolves.

        Returns:
            True if the choice was stored
        """
        session = self._session
        if session is None or session.expiring:
            logger.info("batch_choice_no_session", extra={"token": token})
            return False

        entry = session.lookup(token)
        if entry is None:
            logger.info(
                "batch_choice_unknown_token",
                extra={"session_id": session.id, "token": token},
            )
            return False

        if category not in self.classifier.category_names:
            logger.warning(
                "batch_choice_invalid_category",
                extra={"session_id": session.id, "category": category},
            )
            return False

        # Claim the entry before awaiting so the timer cannot assign it too
        del session.pending[token]
        settled = asyncio.get_running_loop().create_future()
        session.in_flight[token] = (entry, settled)
        stored = False
        try:
            stored = await self._assign(entry.item_id, entry.kind, category, 1.0, True)
            if stored:
                session.tokens.pop(token, None)
                session.summary.manually_confirmed += 1
                logger.info(
                    "batch_choice_stored",
                    extra={
                        "session_id": session.id,
                        "item_id": entry.item_id,
                        "category": category,
                    },
                )
            elif not session.expiring:
                # When expiring, expire() awaits this claim and auto-assigns the entry
                if self._session is session and session.state != BatchState.RESOLVED:
                    session.pending[token] = entry
                else:
                    session.summary.failed += 1
        finally:
            session.in_flight.pop(token, None)
            if not settled.done():
                settled.set_result(stored)

        if (
            stored
            and self._session is session
            and session.state == BatchState.AWAITING_USER_INPUT
            and not session.expiring
            and not session.pending
            and not session.in_flight
        ):
            await self._resolve(session)
        return stored

    @graceful_task("batch_expiry_failed")
    async def _expire_after(self, session: BatchSession) -> None:
        await asyncio.sleep(self.timeout_seconds)
        await self.expire(session)

    async def expire(self, session: BatchSession) -> None:
        """Auto-assign every pending item of the session and resolve it.

        Runs when the session timer fires. The pending map is emptied before
        any assignment is written. Choices whose write is still in flight are
        awaited first; an entry whose choice was not stored is auto-assigned
        with the rest.
        """
        if session.state != BatchState.AWAITING_USER_INPUT or session.expiring:
            return
        session.expiring = True
        expired = list(session.pending.values())
        claims = list(session.in_flight.values())
        session.pending.clear()
        session.tokens.clear()
        logger.info(
            "batch_timer_expired",
            extra={
                "session_id": session.id,
                "pending": len(expired),
                "in_flight": len(claims),
            },
        )

        if claims:
            outcomes = await asyncio.gather(*(settled for _, settled in claims))
            expired.extend(entry for (entry, _), stored in zip(claims, outcomes) if not stored)

        for entry in expired:
            best = entry.best
            if best is None:
                session.summary.failed += 1
                continue
            if await self._assign(entry.item_id, entry.kind, best.category, best.score / 100, False):
                session.summary.auto_assigned += 1
            else:
                session.summary.failed += 1

        await self._resolve(session)

    async def _resolve(self, session: BatchSession) -> None:
        if session.state == BatchState.RESOLVED:
            return
        session.state = BatchState.RESOLVED
        if session.timer is not None and session.timer is not asyncio.current_task():
            session.timer.cancel()
        session.timer = None
        session.pending.clear()
        session.tokens.clear()
        if self._session is session:
            self._session = None

        try:
            remaining = await self.adapter.fetch_unclassified_items(session.owner_id, None)
            session.summary.remaining = len(remaining)
        except Exception as e:
            logger.warning(
                "batch_remaining_count_failed",
                extra={"session_id": session.id, "error": str(e)},
            )

        summary = session.summary
        record_batch_outcome("auto_confirmed", summary.auto_confirmed)
        record_batch_outcome("manually_confirmed", summary.manually_confirmed)
        record_batch_outcome("auto_assigned", summary.auto_assigned)
        record_batch_outcome("failed", summary.failed)

        session.summary_text = summary.to_text()
        logger.info(
            "batch_resolved",
            extra={
                "session_id": session.id,
                "auto_confirmed": summary.auto_confirmed,
                "manually_confirmed": summary.manually_confirmed,
                "auto_assigned": summary.auto_assigned,
                "failed": summary.failed,
                "remaining": summary.remaining,
            },
        )
        await self._notify(session.summary_text)
        session.resolved.set()

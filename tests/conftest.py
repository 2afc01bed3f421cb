"""Shared pytest fixtures for the note pipeline tests.

Fixture Organization:
    - Fakes for the consumed interfaces (persistence adapter, notifier, providers)
    - Category definitions whose prompts name their category, so fake
      providers can answer per category
    - Configuration built without reading the environment's .env file
"""

import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from src.pocket.categories import CategoryDefinition
from src.pocket.classifier.circuit_breaker import CircuitBreaker
from src.pocket.classifier.llm_classifier import Classifier
from src.pocket.classifier.providers.base import BaseProvider
from src.pocket.classifier.rate_limiter import RateLimiter
from src.pocket.classifier.strategies import FallbackChain, PatternStrategy, ProviderStrategy
from src.pocket.config import PipelineConfig, reset_config
from src.pocket.graceful import drain_detached
from src.pocket.models import ContentItem, ItemKind

# Let test modules in subdirectories import the fakes below
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

ALL_CATEGORIES = ["todo", "idea", "blog", "youtube", "reference", "japanese"]

_CATEGORY_RE = re.compile(r"^category:(\w+)")


# =============================================================================
# Fakes
# =============================================================================


class FakeProvider(BaseProvider):
    """Provider answering from a per-category table.

    Values may be an int (returned as text), a str (returned verbatim) or an
    exception instance (raised).
    """

    def __init__(self, name: str = "fake", scores: dict[str, Any] | None = None, default: Any = 0):
        super().__init__(timeout=1.0)
        self._name = name
        self.scores = scores or {}
        self.default = default
        self.calls: list[str] = []
        self.embed_calls: list[str] = []
        self.embedding: Any = [0.1] * 768
        self.delay = 0.0
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return True

    async def score(self, prompt: str) -> str:
        match = _CATEGORY_RE.match(prompt)
        category = match.group(1) if match else ""
        self.calls.append(category)
        if self.delay:
            await asyncio.sleep(self.delay)
        value = self.scores.get(category, self.default)
        if isinstance(value, BaseException):
            raise value
        return str(value)

    async def embed(self, text: str) -> list[float]:
        self.embed_calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.embedding, BaseException):
            raise self.embedding
        return list(self.embedding)

    async def aclose(self) -> None:
        self.closed = True


class FakeAdapter:
    """In-memory persistence adapter recording every call."""

    def __init__(self, items: list[ContentItem] | None = None):
        self.items = list(items or [])
        self.assignments: list[tuple[str, str, float, bool, ItemKind]] = []
        self.embeddings: dict[str, list[float]] = {}
        self.reject_categories: set[str] = set()
        self.raise_on_assign: Exception | None = None
        self.raise_on_embedding: Exception | None = None
        self.fetch_calls: list[tuple[str, int | None]] = []
        # Holds user choices (confidence 1.0) until set
        self.choice_gate: asyncio.Event | None = None

    async def add_category_assignment(
        self,
        item_id: str,
        category: str,
        confidence: float,
        user_confirmed: bool,
        kind: ItemKind = ItemKind.NOTE,
    ) -> bool:
        if self.choice_gate is not None and user_confirmed and confidence == 1.0:
            await self.choice_gate.wait()
        if self.raise_on_assign is not None:
            raise self.raise_on_assign
        if category in self.reject_categories:
            return False
        self.assignments.append((item_id, category, confidence, user_confirmed, kind))
        return True

    async def update_embedding(self, item_id: str, vector: list[float]) -> bool:
        if self.raise_on_embedding is not None:
            raise self.raise_on_embedding
        self.embeddings[item_id] = vector
        return True

    async def fetch_unclassified_items(
        self, owner_id: str, limit: int | None = None
    ) -> list[ContentItem]:
        self.fetch_calls.append((owner_id, limit))
        assigned = {a[0] for a in self.assignments}
        pending = [i for i in self.items if i.owner_id == owner_id and i.id not in assigned]
        return pending if limit is None else pending[:limit]

    def assignments_for(self, item_id: str) -> list[tuple[str, float, bool]]:
        return [(c, conf, uc) for i, c, conf, uc, _ in self.assignments if i == item_id]


class FakeNotifier:
    """Notifier recording sent, edited and deleted messages."""

    def __init__(self):
        self.sent: list[tuple[int, str, list]] = []
        self.edits: list[tuple[int, str]] = []
        self.deleted: list[int] = []
        self.send_gate: asyncio.Event | None = None
        self.fail_edit = False
        self._next = 0

    async def send(self, text: str, choices=None) -> int:
        if self.send_gate is not None:
            await self.send_gate.wait()
        self._next += 1
        self.sent.append((self._next, text, list(choices or [])))
        return self._next

    async def edit(self, ref: Any, text: str) -> None:
        if self.fail_edit:
            raise ConnectionError("edit failed")
        self.edits.append((ref, text))

    async def delete(self, ref: Any) -> None:
        self.deleted.append(ref)

    @property
    def texts(self) -> list[str]:
        return [t for _, t, _ in self.sent]

    def messages_with_choices(self) -> list[tuple[int, str, list]]:
        return [m for m in self.sent if m[2]]


# =============================================================================
# Builders
# =============================================================================


def make_definitions(
    names: list[str] | None = None, auto: int = 95, suggest: int = 60
) -> list[CategoryDefinition]:
    return [
        CategoryDefinition(
            name=name,
            prompt_template=f"category:{name}\nCONTENT: {{content}}\nURLS: {{urls}}",
            auto_confirm_threshold=auto,
            suggest_threshold=suggest,
        )
        for name in (names or ALL_CATEGORIES)
    ]


def make_chain(*providers: BaseProvider, max_wait: float = 1.0) -> FallbackChain:
    limiter = RateLimiter(default_burst=100, default_per_minute=6000, max_wait=max_wait)
    breaker = CircuitBreaker(failure_threshold=100, reset_timeout=60)
    strategies = [ProviderStrategy(p, limiter, breaker, timeout=1.0) for p in providers]
    strategies.append(PatternStrategy())
    return FallbackChain(strategies)


def make_classifier(*providers: BaseProvider, names: list[str] | None = None, **kwargs) -> Classifier:
    return Classifier(make_chain(*providers), make_definitions(names, **kwargs))


def note(item_id: str, text: str, owner: str = "owner-1", urls: tuple = ()) -> ContentItem:
    return ContentItem(id=item_id, owner_id=owner, text=text, urls=urls)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig(_env_file=None)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider("primary")


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture(autouse=True)
def _reset_config():
    reset_config()
    yield
    reset_config()


@pytest_asyncio.fixture
async def drained():
    """Wait for detached tasks spawned by the test before finishing."""
    yield
    await drain_detached(timeout=5.0)


@pytest.fixture(autouse=True)
def _restore_pocket_logger():
    """Undo logger setup done by NotePipeline construction."""
    logger = logging.getLogger("pocket")
    level, handlers = logger.level, list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers = handlers

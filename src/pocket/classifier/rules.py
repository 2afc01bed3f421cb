"""Rule-based category signals.

Deterministic checks on URLs and character ranges that score a category
without an LLM call. Used two ways: as the fast-path evaluated next to the
strategy chain, and as the last chain link, which never fails.
"""

import logging
import re

from .metrics import record_fast_path

logger = logging.getLogger("pocket.classifier.rules")

__all__ = [
    "BLOG_PATH_PATTERNS",
    "BLOG_PLATFORM_DOMAINS",
    "DOCUMENTATION_PATTERNS",
    "JAPANESE_LEARNING_DOMAINS",
    "VIDEO_PLATFORM_DOMAINS",
    "detect_by_pattern",
    "pattern_score",
]

HIRAGANA_RE = re.compile(r"[぀-ゟ]")
KATAKANA_RE = re.compile(r"[゠-ヿ]")
KANJI_RE = re.compile(r"[一-鿿]")
JAPANESE_CHAR_RE = re.compile(r"[぀-ゟ゠-ヿ一-鿿]")

JAPANESE_LEARNING_DOMAINS = (
    "jisho.org",
    "bunpro.jp",
    "wanikani.com",
    "jpdb.io",
    "tangorin.com",
    "guidetojapanese.org",
    "nhk.or.jp/lesson",
)

BLOG_PLATFORM_DOMAINS = ("medium.com", "dev.to", "hashnode.dev", "substack.com", "ghost.io")

BLOG_PATH_PATTERNS = ("/blog/", "/article/", "/post/", "/posts/")

YOUTUBE_DOMAINS = ("youtube.com", "youtu.be")

VIDEO_PLATFORM_DOMAINS = ("vimeo.com", "twitch.tv", "loom.com")

DOCUMENTATION_PATTERNS = (
    "docs.",
    "api.",
    "developer.",
    "reference.",
    "readthedocs.io",
    "github.com/",
    "/docs/",
)

# (category, patterns, score) applied to every lower-cased URL
URL_RULES = (
    ("youtube", YOUTUBE_DOMAINS, 100),
    ("youtube", VIDEO_PLATFORM_DOMAINS, 95),
    ("japanese", JAPANESE_LEARNING_DOMAINS, 95),
    ("blog", BLOG_PLATFORM_DOMAINS, 95),
    ("blog", BLOG_PATH_PATTERNS, 85),
    ("reference", DOCUMENTATION_PATTERNS, 90),
)


def _japanese_text_score(content: str) -> int | None:
    """Score Japanese script in the text.

    Kana is unambiguous. Kanji alone may be Chinese, so it scores lower.
    """
    char_count = len(JAPANESE_CHAR_RE.findall(content))
    if not char_count:
        return None
    if HIRAGANA_RE.search(content) or KATAKANA_RE.search(content):
        return 95 if char_count >= 3 else 85
    if KANJI_RE.search(content):
        return 75 if char_count >= 3 else 65
    return None


def _collect_signals(content: str, urls: list[str]) -> dict[str, int]:
    scores: dict[str, int] = {}

    if content:
        japanese = _japanese_text_score(content)
        if japanese is not None:
            scores["japanese"] = japanese

    for url in urls:
        lower_url = url.lower()
        for category, patterns, score in URL_RULES:
            if any(pattern in lower_url for pattern in patterns):
                scores[category] = max(scores.get(category, 0), score)
    return scores


def detect_by_pattern(content: str, urls: list[str]) -> dict[str, int]:
    """Find deterministic category signals in content and URLs.

    Several signals for the same category combine by max.

    Args:
        content: Item text
        urls: URLs associated with the item

    Returns:
        Mapping of category name to heuristic score, only for categories
        with at least one signal.

    Examples:
        >>> detect_by_pattern("", ["https://youtu.be/abc"])
        {'youtube': 100}
        >>> detect_by_pattern("ありがとう", [])
        {'japanese': 95}
    """
    scores = _collect_signals(content, urls)
    if scores:
        for category in scores:
            record_fast_path(category)
        logger.debug("fast_path_match", extra={"scores": scores})
    return scores


def pattern_score(content: str, urls: list[str], category: str) -> int:
    """Heuristic score for one category, 0 when nothing matches."""
    return _collect_signals(content, urls).get(category, 0)

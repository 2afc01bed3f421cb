"""Category definitions and their scoring prompt templates.

Each category is scored independently with its own prompt. Templates use
``{content}`` and ``{urls}`` placeholders; every prompt asks for a single
integer between 0 and 100.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from .config import PipelineConfig

logger = logging.getLogger("pocket.categories")

__all__ = [
    "CATEGORY_LABELS",
    "CATEGORY_PROMPTS",
    "DEFAULT_CATEGORY_NAMES",
    "CategoryDefinition",
    "load_categories",
    "render_prompt",
]

DEFAULT_CATEGORY_NAMES = ["todo", "idea", "blog", "youtube", "reference", "japanese"]

CATEGORY_LABELS = {
    "todo": "Todo",
    "idea": "Idea",
    "blog": "Blog",
    "youtube": "YouTube",
    "reference": "Reference",
    "japanese": "Japanese",
}

CATEGORY_PROMPTS = {
    "todo": """You are a task detection AI. Analyze the content and score how likely it represents a TODO/task/action item.

CONTENT: "{content}"
URLS: {urls}

Score 0-100 based on:
- Task verbs (need, must, should, remind, fix, implement): +40
- Temporal indicators (tomorrow, deadline, by date): +30
- Urgency markers (important, urgent, ASAP): +20
- Checkbox format or action list: +10

Return ONLY an integer 0-100. No explanation.""",
    "idea": """You are an idea detection AI. Analyze the content and score how likely it represents a creative IDEA/concept/brainstorm.

CONTENT: "{content}"
URLS: {urls}

Score 0-100 based on:
- Explicit idea markers (idea:, what if, concept): +40
- Creative/speculative language (could build, imagine, new approach): +30
- Innovation terms (novel, creative, unique): +20
- Hypothetical scenarios (if we, suppose, consider): +10

Return ONLY an integer 0-100. No explanation.""",
    "blog": """You are a blog/article detection AI. Analyze the content and score how likely it contains blog posts or written articles.

CONTENT: "{content}"
URLS: {urls}

Score 0-100 based on:
- Known blog platforms (medium.com, dev.to, substack.com): +50
- URL path indicators (/blog/, /article/, /post/): +30
- Reading material mentions (article, blog post, wrote about): +15
- Content structure hints (long-form, tutorial): +5

Return ONLY an integer 0-100. No explanation.""",
    "youtube": """You are a video content detection AI. Analyze the content and score how likely it contains video/YouTube content.

CONTENT: "{content}"
URLS: {urls}

Score 0-100 based on:
- YouTube URL (youtube.com, youtu.be): +60
- Other video platforms (vimeo, twitch, loom): +50
- Video keywords (video, watch, tutorial, talk): +30
- Streaming/recording mentions (webinar, conference, recorded): +10

Return ONLY an integer 0-100. No explanation.""",
    "reference": """You are a reference/documentation detection AI. Analyze the content and score how likely it contains reference material or documentation.

CONTENT: "{content}"
URLS: {urls}

Score 0-100 based on:
- Official docs URLs (docs.*, api.*, developer.*): +50
- Documentation mentions (docs, API reference, manual): +30
- Knowledge bases (stackoverflow, wiki, MDN): +15
- Learning resources (guide, tutorial, how-to): +5

Return ONLY an integer 0-100. No explanation.""",
    "japanese": """You are a Japanese language study material detection AI. Analyze the content and score how likely it contains Japanese learning content.

CONTENT: "{content}"
URLS: {urls}

Score 0-100 based on:
- Contains hiragana or katakana: +50 (if 3+ chars: +60)
- Japanese learning site URLs (jisho.org, bunpro.jp, wanikani.com): +50
- Language keywords (Japanese, 日本語, JLPT, kanji, grammar): +30
- Romanized Japanese in educational context: +20
- Learning context (study, vocabulary, syntax): +10

Special rules:
- If hiragana or katakana present: minimum score 85
- If 3+ Japanese kana/kanji characters: minimum score 95
- Pure Chinese text (kanji only, no kana): score 0-30 (not Japanese)

Return ONLY an integer 0-100. No explanation.""",
}


class CategoryDefinition(BaseModel):
    """One category the pipeline scores items against.

    Invariant: 0 <= suggest_threshold <= auto_confirm_threshold <= 100.
    """

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    prompt_template: str = Field(min_length=1)
    auto_confirm_threshold: int = Field(default=95, ge=0, le=100)
    suggest_threshold: int = Field(default=60, ge=0, le=100)
    enabled: bool = True
    label: str | None = None

    @model_validator(mode="after")
    def validate_thresholds(self) -> "CategoryDefinition":
        if self.auto_confirm_threshold < self.suggest_threshold:
            raise ValueError(
                f"Category '{self.name}': auto_confirm_threshold must be >= suggest_threshold"
            )
        return self

    @property
    def display_name(self) -> str:
        return self.label or CATEGORY_LABELS.get(self.name, self.name.title())


_definitions_adapter = TypeAdapter(list[CategoryDefinition])


def render_prompt(template: str, content: str, urls: list[str]) -> str:
    """Substitute content and URL list into a scoring prompt template.

    Uses plain replacement so literal braces elsewhere in a user-written
    template survive.
    """
    urls_text = ", ".join(urls) if urls else "none"
    return template.replace("{content}", content).replace("{urls}", urls_text)


def _default_definitions(config: PipelineConfig) -> list[CategoryDefinition]:
    return [
        CategoryDefinition(
            name=name,
            prompt_template=CATEGORY_PROMPTS[name],
            auto_confirm_threshold=config.auto_confirm_threshold,
            suggest_threshold=config.suggest_threshold,
        )
        for name in DEFAULT_CATEGORY_NAMES
    ]


def _file_definitions(path: Path) -> list[CategoryDefinition]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    return _definitions_adapter.validate_python(raw)


def load_categories(config: PipelineConfig) -> list[CategoryDefinition]:
    """Build the enabled category definitions for this deployment.

    Args:
        config: Pipeline configuration

    Returns:
        Enabled definitions in scoring order

    Raises:
        ValidationError: If a categories file holds invalid definitions
        OSError: If the categories file cannot be read
    """
    if config.categories_file is not None:
        definitions = _file_definitions(config.categories_file)
        logger.info(
            "categories_loaded_from_file",
            extra={"path": str(config.categories_file), "count": len(definitions)},
        )
    else:
        definitions = _default_definitions(config)

    disabled = {name.lower() for name in config.disabled_categories}
    if not config.japanese_category_enabled:
        disabled.add("japanese")

    enabled = [d for d in definitions if d.enabled and d.name.lower() not in disabled]
    logger.debug(
        "categories_enabled",
        extra={"categories": [d.name for d in enabled]},
    )
    return enabled

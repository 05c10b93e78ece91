"""Structured filter and keyword extraction from free-text prompts.

Filters come from a fixed vocabulary (VocabularyConfig), not open-ended NLP:
a prompt term counts only if it matches a canonical entry or one of its
aliases on word boundaries.
"""

import logging
import re

from src.core.config import VocabularyConfig
from src.core.schemas import SearchFilters

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "a", "an", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should", "can", "may",
    "might", "must", "need", "want", "looking", "find", "search", "some", "you",
    "give", "me", "who", "any", "students", "student", "candidates", "candidate",
    "people", "someone",
})

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9+#/-]*")

MAX_KEYWORDS = 10


def _term_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(term.lower())}(?![a-z0-9])")


def _match_vocabulary(text: str, entries: dict[str, tuple[str, ...]]) -> list[str]:
    """Return canonical entries mentioned in ``text``, in order of first mention."""
    hits: list[tuple[int, str]] = []
    for canonical, aliases in entries.items():
        positions = []
        for term in (canonical, *aliases):
            match = _term_pattern(term).search(text)
            if match:
                positions.append(match.start())
        if positions:
            hits.append((min(positions), canonical))
    hits.sort()
    return [canonical for _, canonical in hits]


def extract_filters(prompt: str, vocabulary: VocabularyConfig) -> SearchFilters:
    """Extract university, major and skill filters from a prompt."""
    text = prompt.lower()
    filters = SearchFilters(
        universities=_match_vocabulary(text, vocabulary.universities),
        majors=_match_vocabulary(text, vocabulary.majors),
        skills=_match_vocabulary(text, vocabulary.skills),
    )
    logger.debug(
        "Filters: universities=%s majors=%s skills=%s",
        filters.universities, filters.majors, filters.skills,
    )
    return filters


def extract_keywords(prompt: str) -> list[str]:
    """Lower-case content words longer than two characters, first ten, deduplicated."""
    keywords: list[str] = []
    for word in _WORD_RE.findall(prompt.lower()):
        word = word.strip("-/")
        if len(word) <= 2 or word in STOP_WORDS or word in keywords:
            continue
        keywords.append(word)
        if len(keywords) == MAX_KEYWORDS:
            break
    return keywords

"""Caption and hashtag building for wisdom entries."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .models import ContentItem

MAX_HASHTAGS = 3
FALLBACK_HASHTAGS: list[str] = ["wisdom", "wisdombook", "dailywisdom"]

STOP_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "it", "as", "was", "are", "be",
    "this", "that", "these", "those", "has", "have", "had", "not", "no",
    "do", "does", "did", "will", "would", "could", "should", "may",
    "can", "shall", "might", "must", "been", "being", "its", "his",
    "her", "he", "she", "they", "them", "their", "we", "our", "you",
    "your", "who", "whom", "which", "what", "when", "where", "how",
    "all", "each", "every", "both", "few", "more", "most", "other",
    "some", "such", "than", "too", "very", "just", "about", "above",
    "after", "again", "also", "any", "because", "before", "between",
    "come", "into", "know", "let", "like", "make", "many", "much",
    "now", "only", "over", "own", "said", "same", "so", "still",
    "then", "there", "through", "under", "upon", "well", "were",
    "while", "why", "yet", "one", "two", "even", "out", "up", "down",
})

_WORD_SPLIT = re.compile(r"[^0-9a-z]+")


def extract_keywords(text: str) -> list[str]:
    """Lowercase words longer than two letters, minus stop words and numbers."""
    words = _WORD_SPLIT.split(text.lower())
    return [
        w for w in words
        if len(w) > 2 and w not in STOP_WORDS and not any(c.isdigit() for c in w)
    ]


@dataclass
class CaptionBuilder:
    """Builds the shared caption posted to every platform.

    Example:
        builder = CaptionBuilder()
        builder.hashtags(ContentItem(title="Patience", body="...", link=url))
        # ['#patience', '#endurance', '#wisdom']
    """

    max_hashtags: int = MAX_HASHTAGS
    fallbacks: list[str] = field(default_factory=lambda: list(FALLBACK_HASHTAGS))

    def hashtags(self, item: ContentItem) -> list[str]:
        seen: set[str] = set()
        selected: list[str] = []

        def take(word: str) -> None:
            if word not in seen and len(selected) < self.max_hashtags:
                seen.add(word)
                selected.append(word)

        for word in extract_keywords(item.title):
            take(word)

        # Longest body words first; ties keep text order
        for word in sorted(extract_keywords(item.body), key=len, reverse=True):
            take(word)

        for word in self.fallbacks:
            take(word)

        return [f"#{word}" for word in selected]

    def build(self, item: ContentItem) -> str:
        """Body, citation, link and hashtags separated by blank lines."""
        if item.is_introduction:
            return f"{item.body}\n\n{item.link}"

        parts = [item.body]
        if item.citation:
            parts.append(f"- {item.citation}")
        parts.append(item.link)
        parts.append(" ".join(self.hashtags(item)))
        return "\n\n".join(parts)

"""Deterministic selection of a board/page/account under an authenticated user."""

from __future__ import annotations

from typing import Callable, Optional, Sequence, TypeVar

T = TypeVar("T")

DEFAULT_KEYWORDS = ("wisdom", "book")


def select_sub_resource(
    candidates: Sequence[T],
    keywords: Sequence[str] = DEFAULT_KEYWORDS,
    name: Callable[[T], str] = str,
) -> Optional[T]:
    """Pick a sub-resource by name-substring preference.

    Keywords are tried in order (case-insensitive substring match); within a
    keyword the first matching candidate in list order wins. With no match
    the first candidate is returned, and None for an empty list.

    Example:
        select_sub_resource(["Travel", "My Wisdom Board", "Book Club"]) -> "My Wisdom Board"
        select_sub_resource(["Travel", "Book Club"]) -> "Book Club"
        select_sub_resource(["Travel"]) -> "Travel"
    """
    if not candidates:
        return None

    for keyword in keywords:
        needle = keyword.lower()
        for candidate in candidates:
            if needle in (name(candidate) or "").lower():
                return candidate

    return candidates[0]

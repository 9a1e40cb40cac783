"""Content sources: the local queue and the wisdombook.life RSS feeds."""

from __future__ import annotations

import asyncio
import html
import logging
import random
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

import feedparser
import httpx

from ..errors import NetworkError
from ..http import client_session
from .models import ContentCategory, ContentItem, Post, PostStatus, utcnow
from .store import PostRecordStore

_logger = logging.getLogger("content")

FEED_URLS = {
    "daily": "https://www.wisdombook.life/feed/daily.xml",
    "wisdom": "https://www.wisdombook.life/feed/wisdom.xml",
    "thoughts": "https://www.wisdombook.life/feed/thoughts.xml",
    "quotes": "https://www.wisdombook.life/feed/quotes.xml",
    "passages": "https://www.wisdombook.life/feed/passages.xml",
}

INTRO_TEXT = (
    "Welcome to The Book of Wisdom. Every day we share one entry from the "
    "collection to read slowly and come back to."
)

# Lines the site adds around entries that are not part of the text
_NOISE_LINES = [
    re.compile(r"(?m)^\s*#\s*Thought:.*$"),
    re.compile(r"(?m)^\s*(Thought|Quote|Passage|Introduction)\s*-\s*Level\s*\d+\s*$"),
    re.compile(r"(?m)^\s*Level\s*\d+\s*(Thought|Quote|Passage|Introduction)\s*$"),
    re.compile(r"(?m)^\s*Level\s*\d+(\s*-\s*.*)?$"),
    re.compile(r"(?m)^\s*From:?\s*Topic:?\s*.*$"),
    re.compile(r"(?m)^\s*Parent\s+Topic:?\s*.*$"),
]
_REFERENCE_RE = re.compile(r"([1-3]?\s?[A-Z][a-z]+(?:\s+[a-z]+[A-Za-z]*)*\s+\d+:\d+(?:[-,]\d+)*)")
_BOOK_RE = re.compile(r"<em>\s*(?!Parent\s+Topic)(?!Topic)(?!From)([^<]+?)\s*</em>", re.IGNORECASE)


def extract_book_name(raw_html: str) -> Optional[str]:
    """First emphasized name in the entry that is not a topic/level marker."""
    for match in _BOOK_RE.finditer(raw_html or ""):
        name = match.group(1).strip()
        if name and not name.startswith("Level"):
            return name
    return None


def extract_reference(text: str) -> Optional[str]:
    """Scripture-style reference such as ``Proverbs 3:5-6``."""
    match = _REFERENCE_RE.search(text or "")
    return match.group(1) if match else None


def clean_html(raw_html: str) -> str:
    """Convert entry HTML into plain paragraphs."""
    text = re.sub(r"</p>", "\n", raw_html or "", flags=re.IGNORECASE)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = text.replace("<![CDATA[", "").replace("]]>", "")
    text = html.unescape(text)
    text = re.sub(r"\[![^\]]+\]", "", text)
    for pattern in _NOISE_LINES:
        text = pattern.sub("", text)

    book = extract_book_name(raw_html)
    if book:
        text = re.sub(r"(?m)^\s*" + re.escape(book) + r"\s*$", "", text)

    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def split_title(title: str) -> tuple[str, Optional[str]]:
    """Split ``"Title - Book 1:2"`` into title and reference.

    The suffix after the last `` - `` is a reference only if it contains ``:``.
    """
    title = title.strip()
    head, sep, tail = title.rpartition(" - ")
    if sep and ":" in tail:
        return head.strip(), tail.strip()
    return title, None


def _published(entry: Any) -> Optional[datetime]:
    parsed = entry.get("published_parsed")
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=timezone.utc)


def entry_to_item(entry: Any) -> Optional[ContentItem]:
    """Build a ContentItem from a feedparser entry (None if it has no text)."""
    raw = entry.get("description") or entry.get("summary") or ""
    body = clean_html(raw)
    if not body:
        return None

    title, reference = split_title(entry.get("title") or "")
    if reference is None:
        reference = extract_book_name(raw) or extract_reference(raw)

    labels = " ".join(tag.get("term", "") for tag in entry.get("tags") or [])
    return ContentItem(
        title=title,
        body=body,
        link=(entry.get("link") or "https://wisdombook.life").strip(),
        category=ContentCategory.from_label(labels),
        citation=reference,
        published_at=_published(entry),
    )


def parse_feed(content: bytes) -> list[ContentItem]:
    parsed = feedparser.parse(content)
    if parsed.bozo and not parsed.entries:
        _logger.warning(f"Feed could not be parsed: {parsed.get('bozo_exception')}")
    items = [entry_to_item(entry) for entry in parsed.entries]
    return [item for item in items if item is not None]


def introduction_item(link: str, text: Optional[str] = None) -> ContentItem:
    return ContentItem(
        title="Introduction",
        body=text or INTRO_TEXT,
        link=link,
        category=ContentCategory.INTRODUCTION,
    )


class ContentSource(ABC):
    """Provides the next Post to distribute, or None."""

    @abstractmethod
    async def select(self, now: Optional[datetime] = None) -> Optional[Post]:
        ...


class QueueContentSource(ContentSource):
    """Posts queued in the record store."""

    def __init__(self, store: PostRecordStore):
        self.store = store

    async def select(self, now: Optional[datetime] = None) -> Optional[Post]:
        """Oldest pending post that is due."""
        due = self.store.due_posts(now)
        return due[0] if due else None

    def enqueue(
        self,
        item: ContentItem,
        scheduled_at: Optional[datetime] = None,
        media_path: Optional[Path] = None,
    ) -> Post:
        """Queue an item, optionally with its own image or video."""
        post = Post.from_content(item, scheduled_at)
        post.media_path = media_path
        return self.store.create_post(post)


class FeedContentSource(ContentSource):
    """Random entry from the RSS feeds, preferring entries never posted.

    The returned Post is transient; the scheduler stores it when recording
    results.
    """

    def __init__(
        self,
        urls: Sequence[str],
        store: Optional[PostRecordStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        rng: Optional[random.Random] = None,
    ):
        self.urls = list(urls)
        self.store = store
        self._http = http_client
        self.timeout = timeout
        self.rng = rng or random.Random()

    async def fetch_feed(self, url: str) -> list[ContentItem]:
        _logger.info(f"Fetching feed: {url}")
        try:
            async with client_session(self._http, self.timeout) as client:
                response = await client.get(url, timeout=self.timeout, follow_redirects=True)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkError(f"Feed fetch failed for {url}: {e}") from e

        # feedparser is sync
        loop = asyncio.get_running_loop()
        items = await loop.run_in_executor(None, parse_feed, response.content)
        _logger.info(f"Parsed {len(items)} entries from {url.rsplit('/', 1)[-1]}")
        return items

    async def fetch_items(self) -> list[ContentItem]:
        """Entries from the first feed that yields any.

        Raises:
            NetworkError: Every feed failed to download.
        """
        last_error: Optional[NetworkError] = None
        for url in self.urls:
            try:
                items = await self.fetch_feed(url)
            except NetworkError as e:
                _logger.warning(str(e))
                last_error = e
                continue
            if items:
                return items
        if last_error is not None:
            raise last_error
        return []

    def _posted_links(self) -> set[str]:
        if self.store is None:
            return set()
        return {p.link for p in self.store.list_posts(PostStatus.POSTED)}

    async def select(self, now: Optional[datetime] = None) -> Optional[Post]:
        items = await self.fetch_items()
        if not items:
            return None
        posted = self._posted_links()
        fresh = [item for item in items if item.link not in posted]
        item = self.rng.choice(fresh or items)
        _logger.info(f"Selected feed entry: {item.title or item.link}")
        return Post.from_content(item, now or utcnow())


class ChainedContentSource(ContentSource):
    """Tries each source in order and returns the first selection."""

    def __init__(self, *sources: ContentSource):
        self.sources = sources

    async def select(self, now: Optional[datetime] = None) -> Optional[Post]:
        for source in self.sources:
            post = await source.select(now)
            if post is not None:
                return post
        return None

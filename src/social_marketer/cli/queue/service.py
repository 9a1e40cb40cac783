"""Stateless service for queue operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ...scheduler.models import ContentCategory, ContentItem, Post, PostLog, PostStatus
from ...services import Services
from ..core.types import Failure, Result, Success


@dataclass
class QueueEntry:
    """A post with its recorded platform attempts."""

    post: Post
    logs: List[PostLog]

    @property
    def succeeded(self) -> List[str]:
        return [log.platform for log in self.logs if log.success]

    @property
    def failed(self) -> List[str]:
        return [log.platform for log in self.logs if not log.success]


def list_queue(services: Services, status: Optional[PostStatus] = None) -> List[QueueEntry]:
    """Posts ordered by scheduled time, each with its stored attempts."""
    return [
        QueueEntry(post=post, logs=services.store.logs_for(post.id))
        for post in services.store.list_posts(status)
    ]


def parse_when(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp; naive values are local time."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed.astimezone(timezone.utc)


def add_to_queue(
    services: Services,
    text: str,
    link: str,
    title: str = "",
    citation: Optional[str] = None,
    category: str = ContentCategory.THOUGHT.value,
    when: Optional[str] = None,
    media: Optional[Path] = None,
) -> Result[Post]:
    if not text.strip():
        return Failure("Post text cannot be empty")
    try:
        scheduled_at = parse_when(when)
    except ValueError:
        return Failure(f"Invalid time: {when}", {"expected": "YYYY-MM-DDTHH:MM"})
    if media is not None and not media.exists():
        return Failure(f"Media file not found: {media}")

    item = ContentItem(
        title=title,
        body=text.strip(),
        link=link,
        category=ContentCategory.from_label(category),
        citation=citation,
    )
    post = services.queue.enqueue(item, scheduled_at, media_path=media.resolve() if media else None)
    return Success(post)

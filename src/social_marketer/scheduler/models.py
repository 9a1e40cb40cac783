"""Records owned by the scheduler: content items, posts and post logs."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ContentCategory(str, Enum):
    THOUGHT = "thought"
    QUOTE = "quote"
    PASSAGE = "passage"
    INTRODUCTION = "introduction"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "ContentCategory":
        """Map a feed category label onto a category (Passage when unknown)."""
        text = (label or "").lower()
        if "thought" in text:
            return cls.THOUGHT
        if "quote" in text:
            return cls.QUOTE
        if "intro" in text:
            return cls.INTRODUCTION
        return cls.PASSAGE


class PostStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    FAILED = "failed"


@dataclass(frozen=True)
class ContentItem:
    """One wisdom entry to distribute."""

    title: str
    body: str
    link: str
    category: ContentCategory = ContentCategory.PASSAGE
    citation: Optional[str] = None
    published_at: Optional[datetime] = None

    @property
    def is_introduction(self) -> bool:
        return self.category == ContentCategory.INTRODUCTION


@dataclass
class Post:
    """A piece of content scheduled for distribution.

    Only the scheduler changes ``status``.
    """

    content: str
    link: str
    scheduled_at: datetime = field(default_factory=utcnow)
    status: PostStatus = PostStatus.PENDING
    title: str = ""
    citation: Optional[str] = None
    category: ContentCategory = ContentCategory.PASSAGE
    media_path: Optional[Path] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_content(cls, item: ContentItem, scheduled_at: Optional[datetime] = None) -> "Post":
        return cls(
            content=item.body,
            link=item.link,
            scheduled_at=scheduled_at or utcnow(),
            title=item.title,
            citation=item.citation,
            category=item.category,
        )

    def to_content_item(self) -> ContentItem:
        return ContentItem(
            title=self.title,
            body=self.content,
            link=self.link,
            category=self.category,
            citation=self.citation,
        )

    def is_due(self, now: Optional[datetime] = None) -> bool:
        return self.status == PostStatus.PENDING and self.scheduled_at <= (now or utcnow())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "link": self.link,
            "scheduled_at": self.scheduled_at.isoformat(),
            "status": self.status.value,
            "title": self.title,
            "citation": self.citation,
            "category": self.category.value,
            "media_path": str(self.media_path) if self.media_path else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Post":
        return cls(
            id=data["id"],
            content=data["content"],
            link=data.get("link", ""),
            scheduled_at=_parse_dt(data.get("scheduled_at")) or utcnow(),
            status=PostStatus(data.get("status", PostStatus.PENDING.value)),
            title=data.get("title", ""),
            citation=data.get("citation"),
            category=ContentCategory(data.get("category", ContentCategory.PASSAGE.value)),
            media_path=Path(data["media_path"]) if data.get("media_path") else None,
            created_at=_parse_dt(data.get("created_at")) or utcnow(),
        )


@dataclass
class PostLog:
    """Outcome of one platform attempt for one post. Append-only."""

    post_id: str
    platform: str
    success: bool
    remote_post_id: Optional[str] = None
    remote_post_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PostLog":
        data = dict(data)
        data["timestamp"] = _parse_dt(data.get("timestamp")) or utcnow()
        return cls(**data)

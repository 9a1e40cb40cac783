"""Post and PostLog persistence."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from filelock import FileLock

from .models import ContentCategory, Post, PostLog, PostStatus, utcnow

_logger = logging.getLogger("scheduler")


class PostRecordStore(ABC):
    """Storage for posts and their append-only attempt logs."""

    @abstractmethod
    def create_post(self, post: Post) -> Post:
        ...

    @abstractmethod
    def get_post(self, post_id: str) -> Optional[Post]:
        ...

    @abstractmethod
    def update_post(self, post: Post) -> None:
        ...

    @abstractmethod
    def list_posts(self, status: Optional[PostStatus] = None) -> list[Post]:
        """Posts ordered by scheduled time, oldest first."""
        ...

    @abstractmethod
    def append_log(self, log: PostLog) -> None:
        ...

    @abstractmethod
    def logs_for(self, post_id: str) -> list[PostLog]:
        ...

    def due_posts(self, now: Optional[datetime] = None) -> list[Post]:
        """Pending posts whose scheduled time has passed, oldest first."""
        now = now or utcnow()
        return [p for p in self.list_posts(PostStatus.PENDING) if p.scheduled_at <= now]

    def last_posted(self, category: Optional[ContentCategory] = None) -> Optional[Post]:
        """Most recently scheduled posted Post, optionally of one category."""
        posted = [
            p for p in self.list_posts(PostStatus.POSTED)
            if category is None or p.category == category
        ]
        return posted[-1] if posted else None


class JsonPostStore(PostRecordStore):
    """Posts and logs in one JSON document, replaced atomically on write.

    Every access holds an OS file lock beside the document, so stores in
    separate processes (the OS trigger and a manual run) never interleave
    a read-modify-write.
    """

    def __init__(self, path: Path, lock_timeout: float = 30.0):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = FileLock(str(self.path) + ".lock", timeout=lock_timeout)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"posts": {}, "logs": []}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        data.setdefault("posts", {})
        data.setdefault("logs", [])
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)

    def create_post(self, post: Post) -> Post:
        with self._lock:
            data = self._load()
            if post.id in data["posts"]:
                raise ValueError(f"Post already exists: {post.id}")
            data["posts"][post.id] = post.to_dict()
            self._save(data)
        _logger.info(f"Post created: {post.id} ({post.category.value}, due {post.scheduled_at.isoformat()})")
        return post

    def get_post(self, post_id: str) -> Optional[Post]:
        with self._lock:
            raw = self._load()["posts"].get(post_id)
        return Post.from_dict(raw) if raw else None

    def update_post(self, post: Post) -> None:
        with self._lock:
            data = self._load()
            if post.id not in data["posts"]:
                raise KeyError(f"Unknown post: {post.id}")
            data["posts"][post.id] = post.to_dict()
            self._save(data)

    def list_posts(self, status: Optional[PostStatus] = None) -> list[Post]:
        with self._lock:
            raw_posts = list(self._load()["posts"].values())
        posts = [Post.from_dict(raw) for raw in raw_posts]
        if status is not None:
            posts = [p for p in posts if p.status == status]
        return sorted(posts, key=lambda p: (p.scheduled_at, p.created_at))

    def append_log(self, log: PostLog) -> None:
        with self._lock:
            data = self._load()
            data["logs"].append(log.to_dict())
            self._save(data)

    def logs_for(self, post_id: str) -> list[PostLog]:
        with self._lock:
            raw_logs = self._load()["logs"]
        return [PostLog.from_dict(raw) for raw in raw_logs if raw.get("post_id") == post_id]

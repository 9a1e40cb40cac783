"""Distribution cycle: content selection, media, fan-out and records.

Architecture:
- PostScheduler: runs one cycle and owns Post status transitions
- ContentSource: queue first, then the RSS feeds
- MediaGenerator: quote card, with a plain card fallback
- PostRecordStore: Post and PostLog persistence
- TriggerManager: daily OS trigger that starts a scheduled cycle
"""

from .caption import CaptionBuilder
from .content import (
    ChainedContentSource,
    ContentSource,
    FeedContentSource,
    QueueContentSource,
    introduction_item,
)
from .media import MediaGenerator, PlainCardGenerator, PreparedMedia, QuoteCardGenerator
from .models import ContentCategory, ContentItem, Post, PostLog, PostStatus
from .orchestrator import CycleReport, PostScheduler, SchedulerState, choose_media
from .store import JsonPostStore, PostRecordStore
from .trigger import (
    CrontabTriggerInstaller,
    InstalledTrigger,
    LaunchdTriggerInstaller,
    TriggerInstaller,
    TriggerManager,
)

__all__ = [
    # Orchestration
    "CycleReport",
    "PostScheduler",
    "SchedulerState",
    "choose_media",
    # Models
    "ContentCategory",
    "ContentItem",
    "Post",
    "PostLog",
    "PostStatus",
    # Collaborators
    "CaptionBuilder",
    "ChainedContentSource",
    "ContentSource",
    "FeedContentSource",
    "JsonPostStore",
    "MediaGenerator",
    "PlainCardGenerator",
    "PostRecordStore",
    "PreparedMedia",
    "QueueContentSource",
    "QuoteCardGenerator",
    "introduction_item",
    # Trigger
    "CrontabTriggerInstaller",
    "InstalledTrigger",
    "LaunchdTriggerInstaller",
    "TriggerInstaller",
    "TriggerManager",
]

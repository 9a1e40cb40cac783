"""Post scheduler: one distribution cycle from content selection to records.

The scheduler is the only component that changes a Post's status. Each
cycle walks ``Idle -> SelectingContent -> PreparingMedia -> Publishing ->
RecordingResults -> Idle``; a trigger arriving while a cycle is active, in this
process or another one sharing the run lock, is ignored rather than queued.

Usage:
    scheduler = PostScheduler(
        store=store,
        content_source=ChainedContentSource(queue, feed),
        media_generator=QuoteCardGenerator(media_dir),
        connectors=connectors,
        platforms=config.enabled_platforms(),
    )
    report = await scheduler.run_cycle()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from filelock import FileLock, Timeout

from ..errors import GenerationError, NetworkError
from ..platforms.base import PlatformConnector, PostResult
from ..platforms.types import MediaKind, PlatformType
from .caption import CaptionBuilder
from .content import ContentSource
from .media import MediaGenerator, PreparedMedia, prepare_media
from .models import ContentCategory, ContentItem, Post, PostLog, PostStatus, utcnow
from .store import PostRecordStore

_logger = logging.getLogger("scheduler")


class SchedulerState(str, Enum):
    IDLE = "idle"
    SELECTING_CONTENT = "selecting_content"
    PREPARING_MEDIA = "preparing_media"
    PUBLISHING = "publishing"
    RECORDING_RESULTS = "recording_results"


@dataclass
class CycleReport:
    """What one cycle did.

    ``results`` holds one entry per platform attempt; ``skipped`` names the
    platforms that were not attempted.
    """

    post: Optional[Post] = None
    results: list[PostResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False
    error: Optional[str] = None

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def status(self) -> Optional[PostStatus]:
        return self.post.status if self.post else None


def choose_media(
    platform: PlatformType,
    media: PreparedMedia,
    category: ContentCategory = ContentCategory.PASSAGE,
) -> Optional[tuple[MediaKind, Optional[Path]]]:
    """Pick the publish call for one platform, or None to skip it.

    Introductions are text-only. Otherwise video wins on platforms that
    prefer it, then image, then text.
    """
    if category == ContentCategory.INTRODUCTION:
        return (MediaKind.TEXT, None) if platform.supports(MediaKind.TEXT) else None

    if (
        media.video is not None
        and platform.preferred_media == MediaKind.VIDEO
        and platform.supports(MediaKind.VIDEO)
    ):
        return MediaKind.VIDEO, media.video
    if media.image is not None and platform.supports(MediaKind.IMAGE):
        return MediaKind.IMAGE, media.image
    if platform.supports(MediaKind.TEXT):
        return MediaKind.TEXT, None
    return None


class PostScheduler:
    """Runs distribution cycles over the injected services."""

    def __init__(
        self,
        store: PostRecordStore,
        content_source: ContentSource,
        media_generator: MediaGenerator,
        connectors: dict[PlatformType, PlatformConnector],
        platforms: Optional[Sequence[PlatformType]] = None,
        fallback_generator: Optional[MediaGenerator] = None,
        caption_builder: Optional[CaptionBuilder] = None,
        max_concurrency: int = 1,
        intro_interval_days: int = 90,
        intro_item: Optional[ContentItem] = None,
        lock_path: Optional[Path] = None,
    ):
        """Initialize the scheduler.

        Args:
            store: Post and PostLog records.
            content_source: Queue and feed selection.
            media_generator: Primary quote card generator.
            connectors: Connector per platform.
            platforms: Enabled platforms, in attempt order (all connectors if omitted).
            fallback_generator: Plain card generator used when the primary fails.
            caption_builder: Caption and hashtag builder.
            max_concurrency: Parallel platform attempts; 1 means sequential.
            intro_interval_days: Days between introduction posts.
            intro_item: Introduction content; None disables introductions.
            lock_path: Run lock file shared by every process using the same
                records; None limits the one-run rule to this instance.
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.store = store
        self.content_source = content_source
        self.media_generator = media_generator
        self.fallback_generator = fallback_generator
        self.connectors = connectors
        self.platforms = list(platforms) if platforms is not None else list(connectors)
        self.caption_builder = caption_builder or CaptionBuilder()
        self.max_concurrency = max_concurrency
        self.intro_interval = timedelta(days=intro_interval_days)
        self.intro_item = intro_item
        self._state = SchedulerState.IDLE
        self._running = False
        self._run_lock = None
        if lock_path is not None:
            Path(lock_path).parent.mkdir(parents=True, exist_ok=True)
            self._run_lock = FileLock(str(lock_path))

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    def _set_state(self, state: SchedulerState) -> None:
        if state != self._state:
            _logger.debug(f"Scheduler state: {self._state.value} -> {state.value}")
        self._state = state

    # =========================================================================
    # Entry points
    # =========================================================================

    async def run_cycle(
        self,
        cancel_event: Optional[asyncio.Event] = None,
        now: Optional[datetime] = None,
    ) -> Optional[CycleReport]:
        """Run one cycle.

        Args:
            cancel_event: Set by the caller to cancel before publishing starts.
            now: Clock override.

        Returns:
            The cycle report, or None if another cycle was already running.
        """
        if not self._begin("Cycle"):
            return None
        try:
            return await self._run(cancel_event, now or utcnow())
        finally:
            self._finish()

    async def process_queue(self, now: Optional[datetime] = None) -> Optional[list[CycleReport]]:
        """Publish every due pending post in the queue, oldest first.

        Returns:
            One report per post, or None if a cycle was already running.
        """
        if not self._begin("Queue processing"):
            return None
        try:
            now = now or utcnow()
            due = self.store.due_posts(now)
            if not due:
                _logger.info("No due posts in queue")
                return []
            _logger.info(f"Processing {len(due)} due post(s)")
            reports = []
            for post in due:
                reports.append(await self._run(None, now, post=post))
                self._set_state(SchedulerState.IDLE)
            return reports
        finally:
            self._finish()

    def _begin(self, what: str) -> bool:
        if self._running:
            _logger.warning(f"{what} requested while a cycle is running; ignored")
            return False
        if self._run_lock is not None:
            try:
                self._run_lock.acquire(timeout=0)
            except Timeout:
                _logger.warning(f"{what} requested while another process holds {self._run_lock.lock_file}; ignored")
                return False
        self._running = True
        return True

    def _finish(self) -> None:
        self._set_state(SchedulerState.IDLE)
        self._running = False
        if self._run_lock is not None:
            self._run_lock.release()

    # =========================================================================
    # Cycle
    # =========================================================================

    async def _run(
        self,
        cancel_event: Optional[asyncio.Event],
        now: datetime,
        post: Optional[Post] = None,
    ) -> CycleReport:
        report = CycleReport()

        self._set_state(SchedulerState.SELECTING_CONTENT)
        if post is None:
            try:
                post = await self.select_post(now)
            except NetworkError as e:
                _logger.error(f"Content selection failed: {e}")
                report.error = str(e)
                return report
        if post is None:
            _logger.warning("No content available for this cycle")
            report.error = "No content available"
            return report
        report.post = post
        _logger.info(f"Cycle content: {post.title or post.link} ({post.category.value})")

        if _cancelled(cancel_event):
            return _cancel(report)

        self._set_state(SchedulerState.PREPARING_MEDIA)
        if post.category == ContentCategory.INTRODUCTION:
            media = PreparedMedia()
        else:
            try:
                media = await prepare_media(post, self.media_generator, self.fallback_generator)
            except GenerationError as e:
                _logger.error(f"Media generation failed, cycle abandoned: {e}")
                report.error = str(e)
                return report

        if _cancelled(cancel_event):
            return _cancel(report)

        self._set_state(SchedulerState.PUBLISHING)
        caption = self.caption_builder.build(post.to_content_item())
        await self.publish(post, caption, media, report)

        self._set_state(SchedulerState.RECORDING_RESULTS)
        self._record(post, report)
        return report

    async def select_post(self, now: Optional[datetime] = None) -> Optional[Post]:
        """Introduction when due, else the content source's selection."""
        now = now or utcnow()
        if self._intro_due(now):
            _logger.info("Introduction post is due")
            return Post.from_content(self.intro_item, now)
        return await self.content_source.select(now)

    def _intro_due(self, now: datetime) -> bool:
        if self.intro_item is None:
            return False
        if not any(p.supports(MediaKind.TEXT) for p in self.platforms):
            return False
        last = self.store.last_posted(ContentCategory.INTRODUCTION)
        if last is None:
            return True
        return now - last.scheduled_at >= self.intro_interval

    async def publish(
        self,
        post: Post,
        caption: str,
        media: PreparedMedia,
        report: CycleReport,
    ) -> list[PostResult]:
        """Attempt every enabled, configured platform.

        Attempts are independent: a failed platform never stops the rest.
        Each finished attempt is appended to the store as a PostLog.
        """
        attempts: list[tuple[PlatformType, PlatformConnector, MediaKind, Optional[Path]]] = []
        for platform in self.platforms:
            connector = self.connectors.get(platform)
            if connector is None:
                _logger.info(f"{platform.display_name}: no connector, skipping")
                report.skipped.append(platform.value)
                continue
            if not await connector.is_configured():
                _logger.info(f"{platform.display_name}: not configured, skipping")
                report.skipped.append(platform.value)
                continue
            choice = choose_media(platform, media, post.category)
            if choice is None:
                report.skipped.append(platform.value)
                continue
            attempts.append((platform, connector, *choice))

        if not attempts:
            _logger.warning("No platform could take this post")
            report.error = "No configured platform could take this post"
            return []

        if self.store.get_post(post.id) is None:
            self.store.create_post(post)

        lock = asyncio.Lock()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def attempt(platform: PlatformType, connector: PlatformConnector, kind: MediaKind, path: Optional[Path]) -> None:
            async with semaphore:
                _logger.info(f"{platform.display_name}: publishing {kind.value}")
                result = await connector.publish(kind, caption, path, post.link)
            log = PostLog(
                post_id=post.id,
                platform=platform.value,
                success=result.success,
                remote_post_id=result.remote_post_id,
                remote_post_url=result.remote_post_url,
                error=result.error,
                error_kind=result.error_kind,
            )
            async with lock:
                self.store.append_log(log)
                report.results.append(result)
            _logger.info(str(result))

        if self.max_concurrency == 1:
            for item in attempts:
                await attempt(*item)
        else:
            await asyncio.gather(*(attempt(*item) for item in attempts))
        return report.results

    def _record(self, post: Post, report: CycleReport) -> None:
        if not report.results:
            # Nothing attempted: a queued post stays pending for the next cycle
            return
        logs = self.store.logs_for(post.id)
        post.status = PostStatus.POSTED if any(log.success for log in logs) else PostStatus.FAILED
        self.store.update_post(post)
        _logger.info(
            f"Post {post.id} {post.status.value}: "
            f"{report.success_count} succeeded, {report.failure_count} failed"
        )


def _cancelled(event: Optional[asyncio.Event]) -> bool:
    return event is not None and event.is_set()


def _cancel(report: CycleReport) -> CycleReport:
    _logger.info("Cycle cancelled before publishing")
    report.cancelled = True
    return report

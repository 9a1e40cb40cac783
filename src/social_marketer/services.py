"""Explicit construction of the application services.

Everything is built once here and injected; tests build the same objects
with in-memory stores and mocked HTTP clients instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .auth.oauth import OAuthOrchestrator
from .auth.secret_store import JsonFileSecretStore, SecretStore
from .config import MarketerConfig, MarketerSettings, load_config
from .platforms.base import PlatformConnector
from .platforms.registry import ConnectorRegistry
from .platforms.types import PlatformType
from .scheduler.caption import CaptionBuilder
from .scheduler.content import (
    ChainedContentSource,
    FeedContentSource,
    QueueContentSource,
    introduction_item,
)
from .scheduler.media import PlainCardGenerator, QuoteCardGenerator
from .scheduler.orchestrator import PostScheduler
from .scheduler.store import JsonPostStore, PostRecordStore
from .scheduler.trigger import TriggerInstaller, TriggerManager, default_installer


@dataclass
class Services:
    settings: MarketerSettings
    config: MarketerConfig
    secrets: SecretStore
    oauth: OAuthOrchestrator
    registry: ConnectorRegistry
    connectors: dict[PlatformType, PlatformConnector]
    store: PostRecordStore
    queue: QueueContentSource
    feed: FeedContentSource
    scheduler: PostScheduler
    triggers: TriggerManager


def build_services(
    settings: Optional[MarketerSettings] = None,
    config: Optional[MarketerConfig] = None,
    secrets: Optional[SecretStore] = None,
    store: Optional[PostRecordStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    installer: Optional[TriggerInstaller] = None,
    open_browser: Optional[Callable[[str], object]] = None,
) -> Services:
    """Wire settings, stores, connectors and the scheduler together.

    Args:
        settings: Process settings (read from the environment if omitted).
        config: YAML configuration (loaded from ``settings.config_path`` if omitted).
        secrets: Secret store (JSON file under the data dir if omitted).
        store: Post record store (JSON file under the data dir if omitted).
        http_client: Shared client for every outbound call.
        installer: OS trigger mechanism (launchd on macOS, cron elsewhere).
        open_browser: Browser opener for authorization flows.
    """
    settings = settings or MarketerSettings()
    config = config or load_config(settings.config_path)
    secrets = secrets or JsonFileSecretStore(settings.secrets_path)
    store = store or JsonPostStore(settings.records_path)

    oauth_kwargs = {}
    if open_browser is not None:
        oauth_kwargs["open_browser"] = open_browser
    oauth = OAuthOrchestrator(
        secrets,
        http_client=http_client,
        callback_port=settings.callback_port,
        flow_timeout=settings.callback_timeout_seconds,
        http_timeout=settings.http_timeout_seconds,
        **oauth_kwargs,
    )

    registry = ConnectorRegistry()
    connectors = registry.build_all(
        secrets,
        oauth,
        config,
        http_client=http_client,
        timeout=settings.http_timeout_seconds,
    )

    queue = QueueContentSource(store)
    feed = FeedContentSource(
        [config.feed.url, *config.feed.fallback_urls],
        store=store,
        http_client=http_client,
        timeout=config.feed.timeout_seconds,
    )

    media = config.media
    scheduler = PostScheduler(
        store=store,
        content_source=ChainedContentSource(queue, feed),
        media_generator=QuoteCardGenerator(
            settings.media_dir,
            width=media.width,
            height=media.height,
            background_start=media.background_start,
            background_end=media.background_end,
            text_color=media.text_color,
            fonts_dir=media.fonts_dir,
        ),
        fallback_generator=PlainCardGenerator(settings.media_dir, width=media.width, height=media.height),
        connectors=connectors,
        platforms=config.enabled_platforms(),
        caption_builder=CaptionBuilder(),
        max_concurrency=config.scheduler.max_concurrency,
        intro_interval_days=config.scheduler.intro_interval_days,
        intro_item=introduction_item(config.feed.intro_link, config.feed.intro_text),
        lock_path=settings.run_lock_path,
    )

    triggers = TriggerManager(
        installer or default_installer(),
        schedule=config.schedule,
        config_path=settings.config_path,
    )

    return Services(
        settings=settings,
        config=config,
        secrets=secrets,
        oauth=oauth,
        registry=registry,
        connectors=connectors,
        store=store,
        queue=queue,
        feed=feed,
        scheduler=scheduler,
        triggers=triggers,
    )

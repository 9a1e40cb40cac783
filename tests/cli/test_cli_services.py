"""Tests for the services behind the CLI commands.

Services are built the same way the CLI builds them, with the secret
store in memory, records and config under tmp_path, a fake crontab and a
mocked HTTP client.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
import yaml
from rich.console import Console

from social_marketer.auth.secret_store import MemorySecretStore
from social_marketer.cli.auth.service import (
    connect,
    disconnect,
    paste_token,
    platform_statuses,
    set_keys,
    set_twitter_keys,
)
from social_marketer.cli.core.console import print_error
from social_marketer.cli.core.types import Failure, Success
from social_marketer.cli.queue.display import show_queue_table
from social_marketer.cli.queue.service import add_to_queue, list_queue, parse_when
from social_marketer.cli.run.service import process_queue, run_cycle
from social_marketer.cli.schedule.service import (
    get_status,
    install_trigger,
    set_schedule,
    uninstall_trigger,
)
from social_marketer.config import MarketerSettings
from social_marketer.platforms.types import PlatformType
from social_marketer.scheduler.models import ContentCategory, PostLog, PostStatus
from social_marketer.scheduler.store import JsonPostStore
from social_marketer.scheduler.trigger import CrontabTriggerInstaller
from social_marketer.services import Services, build_services

from helpers import FakeCrontab

PAGES = {"data": [{"id": "p1", "name": "The Wisdom Book", "access_token": "page-token"}]}


def graph_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/me/accounts"):
        return httpx.Response(200, json=PAGES)
    return httpx.Response(404, json={"error": {"code": 803, "message": "unknown"}})


@pytest.fixture
def crontab() -> FakeCrontab:
    return FakeCrontab()


@pytest.fixture
def services(tmp_path: Path, mock_client, crontab: FakeCrontab) -> Services:
    settings = MarketerSettings(
        data_dir=tmp_path / "data",
        logs_dir=tmp_path / "logs",
        config_path=tmp_path / "marketer.yaml",
    )
    return build_services(
        settings=settings,
        secrets=MemorySecretStore(),
        store=JsonPostStore(tmp_path / "posts.json"),
        http_client=mock_client(graph_handler),
        installer=CrontabTriggerInstaller(runner=crontab),
        open_browser=lambda url: None,
    )


class TestQueueService:
    """Tests for queue add/list."""

    def test_add_and_list(self, services: Services):
        result = add_to_queue(
            services,
            "  Be still.  ",
            "https://wisdombook.life/s",
            title="Stillness",
            citation="Psalm 46:10",
            category="quote",
        )

        assert isinstance(result, Success)
        post = result.value
        assert post.content == "Be still."
        assert post.category == ContentCategory.QUOTE
        assert post.status == PostStatus.PENDING

        (entry,) = list_queue(services)
        assert entry.post.id == post.id
        assert entry.logs == []

    def test_entries_split_logs_by_outcome(self, services: Services):
        post = add_to_queue(services, "Text", "https://wisdombook.life").value
        services.store.append_log(PostLog(post_id=post.id, platform="linkedin", success=True, remote_post_id="1"))
        services.store.append_log(PostLog(post_id=post.id, platform="pinterest", success=False, error="boom"))

        (entry,) = list_queue(services)

        assert entry.succeeded == ["linkedin"]
        assert entry.failed == ["pinterest"]

    def test_list_filters_by_status(self, services: Services):
        add_to_queue(services, "Text", "https://wisdombook.life")
        assert list_queue(services, PostStatus.POSTED) == []

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"text": "   "}, "empty"),
            ({"when": "tomorrow-ish"}, "Invalid time"),
            ({"media": Path("/nonexistent/clip.mp4")}, "not found"),
        ],
    )
    def test_add_rejects(self, services: Services, kwargs: dict, message: str):
        args = {"text": "Text", "link": "https://wisdombook.life", **kwargs}

        result = add_to_queue(services, **args)

        assert isinstance(result, Failure)
        assert message in result.error
        assert services.store.list_posts() == []

    def test_add_with_media(self, services: Services, sample_video: Path):
        result = add_to_queue(services, "Text", "https://wisdombook.life", media=sample_video)
        assert result.value.media_path == sample_video.resolve()

    def test_parse_when(self):
        assert parse_when(None) is None
        assert parse_when("2026-10-18T09:00:00+02:00") == datetime(2026, 10, 18, 7, 0, tzinfo=timezone.utc)
        assert parse_when("2026-10-18T09:00").tzinfo == timezone.utc

    def test_queue_table_renders(self, services: Services):
        add_to_queue(services, "A fairly long line of wisdom that will be cut short", "https://wisdombook.life")
        console = Console(record=True, width=120)

        show_queue_table(console, list_queue(services))

        output = console.export_text()
        assert "Post Queue" in output
        assert "Pending: 1" in output


class TestAuthService:
    """Tests for keys, pasted tokens and status rows."""

    def test_set_keys(self, services: Services):
        result = set_keys(services, PlatformType.LINKEDIN, " client ", None)

        assert isinstance(result, Success)
        credential = services.oauth.get_credential("linkedin")
        assert credential.client_id == "client"
        assert credential.client_secret is None

    def test_set_keys_rejects_twitter(self, services: Services):
        assert isinstance(set_keys(services, PlatformType.TWITTER, "id", "secret"), Failure)

    def test_set_keys_rejects_empty_id(self, services: Services):
        assert isinstance(set_keys(services, PlatformType.PINTEREST, "  ", "secret"), Failure)

    @pytest.mark.asyncio
    async def test_twitter_keys(self, services: Services):
        assert isinstance(set_twitter_keys(services, "ck", "cs", "at", ""), Failure)

        result = set_twitter_keys(services, "ck", "cs", "at", "ats")

        assert isinstance(result, Success)
        assert await services.connectors[PlatformType.TWITTER].is_configured()

    @pytest.mark.asyncio
    async def test_connect_twitter_refused(self, services: Services):
        assert isinstance(await connect(services, PlatformType.TWITTER), Failure)

    @pytest.mark.asyncio
    async def test_connect_without_keys(self, services: Services):
        result = await connect(services, PlatformType.LINKEDIN)

        assert isinstance(result, Failure)
        assert result.details == {"kind": "missing_credential"}

        console = Console(record=True, width=120)
        print_error(result.error, result.details, out=console)
        lines = console.export_text().splitlines()
        assert lines[0] == f"Error: {result.error}"
        assert lines[1] == "  kind: missing_credential"

    @pytest.mark.asyncio
    async def test_paste_token_facebook(self, services: Services):
        result = await paste_token(services, PlatformType.FACEBOOK, "user-token")

        assert isinstance(result, Success)
        assert result.value.setup == "Page: The Wisdom Book"
        assert result.value.token_status == "connected"
        assert await services.connectors[PlatformType.FACEBOOK].is_configured()

    @pytest.mark.asyncio
    async def test_paste_token_other_platform(self, services: Services):
        result = await paste_token(services, PlatformType.LINKEDIN, "token")

        assert isinstance(result, Failure)
        assert services.oauth.get_token("linkedin") is None

    @pytest.mark.asyncio
    async def test_paste_empty_token(self, services: Services):
        assert isinstance(await paste_token(services, PlatformType.FACEBOOK, "  "), Failure)

    @pytest.mark.asyncio
    async def test_disconnect(self, services: Services):
        set_keys(services, PlatformType.FACEBOOK, "id", "secret")
        await paste_token(services, PlatformType.FACEBOOK, "user-token")

        disconnect(services, PlatformType.FACEBOOK)

        assert not await services.connectors[PlatformType.FACEBOOK].is_configured()
        assert services.oauth.get_credential("facebook").client_id == "id"

    @pytest.mark.asyncio
    async def test_platform_statuses(self, services: Services):
        set_keys(services, PlatformType.LINKEDIN, "id", "secret")
        set_twitter_keys(services, "ck", "cs", "at", "ats")

        rows = {row.platform: row for row in await platform_statuses(services)}

        assert set(rows) == set(PlatformType)
        assert rows[PlatformType.TWITTER].token_status == "signed requests"
        assert rows[PlatformType.TWITTER].configured
        assert rows[PlatformType.LINKEDIN].has_keys
        assert rows[PlatformType.LINKEDIN].token_status == "not connected"
        assert not rows[PlatformType.PINTEREST].has_keys
        assert all(row.enabled for row in rows.values())


class TestScheduleService:
    """Tests for the daily trigger commands."""

    def test_set_schedule_without_trigger(self, services: Services, crontab: FakeCrontab):
        result = set_schedule(services, 7, 30)

        assert isinstance(result, Success)
        assert not result.value.reinstalled
        assert crontab.tagged_lines() == []
        saved = yaml.safe_load(services.settings.config_path.read_text())
        assert saved["schedule"] == {"hour": 7, "minute": 30}

    def test_set_schedule_invalid(self, services: Services):
        result = set_schedule(services, 7, 60)

        assert isinstance(result, Failure)
        assert not services.settings.config_path.exists()

    def test_install_then_reschedule(self, services: Services, crontab: FakeCrontab):
        installed = install_trigger(services)
        assert isinstance(installed, Success)
        assert installed.value.current

        changed = set_schedule(services, 18, 0)

        assert changed.value.reinstalled
        (line,) = crontab.tagged_lines()
        assert line.startswith("0 18 * * * ")
        status = get_status(services)
        assert (status.hour, status.minute, status.current) == (18, 0, True)

    def test_uninstall(self, services: Services, crontab: FakeCrontab):
        install_trigger(services)

        assert isinstance(uninstall_trigger(services), Success)
        assert crontab.tagged_lines() == []
        assert get_status(services).installed is None

    def test_trigger_failure(self, services: Services):
        def broken(args, **kwargs):
            raise FileNotFoundError("crontab")

        services.triggers.installer = CrontabTriggerInstaller(runner=broken)

        assert isinstance(install_trigger(services), Failure)


class TestRunService:
    """Tests for the run commands' busy handling."""

    @pytest.mark.asyncio
    async def test_cycle_already_running(self, services: Services):
        services.scheduler = AsyncMock()
        services.scheduler.run_cycle.return_value = None

        result = await run_cycle(services, scheduled=True)

        assert isinstance(result, Failure)
        assert "already running" in result.error

    @pytest.mark.asyncio
    async def test_cycle_report_passed_through(self, services: Services):
        services.scheduler = AsyncMock()
        services.scheduler.run_cycle.return_value = "report"

        result = await run_cycle(services, scheduled=True)

        assert result == Success("report")
        assert services.scheduler.run_cycle.await_args.kwargs["cancel_event"] is not None

    @pytest.mark.asyncio
    async def test_process_queue_empty(self, services: Services):
        result = await process_queue(services)

        assert isinstance(result, Success)
        assert result.value == []

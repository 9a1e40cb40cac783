"""Shared test fixtures.

HTTP is never real: connectors and the OAuth layer get an
``httpx.AsyncClient`` backed by ``httpx.MockTransport``, and every store
lives in memory or under ``tmp_path``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from PIL import Image

from social_marketer.auth.oauth import OAuthOrchestrator
from social_marketer.auth.secret_store import MemorySecretStore
from social_marketer.scheduler.store import JsonPostStore

Handler = Callable[[httpx.Request], Any]


@pytest.fixture
def secrets() -> MemorySecretStore:
    """Empty in-memory secret store."""
    return MemorySecretStore()


@pytest.fixture
def oauth(secrets: MemorySecretStore) -> OAuthOrchestrator:
    """OAuth orchestrator over the in-memory store, without a browser."""
    return OAuthOrchestrator(secrets, open_browser=lambda url: None)


@pytest.fixture
def mock_client() -> Callable[[Handler], httpx.AsyncClient]:
    """Factory for clients whose requests are answered by ``handler``.

    Usage:
        def handler(request):
            return httpx.Response(200, json={"id": "1"})

        client = mock_client(handler)
    """
    def _make(handler: Handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def store(tmp_path: Path) -> JsonPostStore:
    """Post store in a temporary directory."""
    return JsonPostStore(tmp_path / "posts.json")


@pytest.fixture
def sample_image(tmp_path: Path) -> Path:
    """Small JPEG on disk."""
    path = tmp_path / "card.jpg"
    Image.new("RGB", (32, 40), (30, 40, 70)).save(path, "JPEG")
    return path


@pytest.fixture
def sample_video(tmp_path: Path) -> Path:
    """Ten-byte stand-in for an MP4 file."""
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"0123456789")
    return path

